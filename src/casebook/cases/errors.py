"""
Exceptions raised by the case subsystem.

Command handlers catch :class:`CaseError` subclasses to pick the message
shown to the moderator; anything else is a bug.
"""

from __future__ import annotations


class CaseError(Exception):
    """Base class for every case-management failure."""


class CaseValidationError(CaseError):
    """Malformed case ID, unknown update field, bad filter value or page."""


class CaseNotFoundError(CaseError):
    """No case matches the given display ID (globally or within the guild)."""

    def __init__(self, case_id: str, guild_id: str | None = None) -> None:
        self.case_id = case_id
        self.guild_id = guild_id
        scope = f" in guild {guild_id}" if guild_id is not None else ""
        super().__init__(f"No case found with ID {case_id}{scope}")


class CaseConflictError(CaseError):
    """The case is in a state that forbids the requested change."""

    def __init__(self, case_id: str, message: str) -> None:
        self.case_id = case_id
        super().__init__(message)


class DuplicateCaseIdError(CaseConflictError):
    """The unique index rejected a display case ID on insert."""

    def __init__(self, case_id: str) -> None:
        super().__init__(case_id, f"Case ID {case_id} is already taken")


class StoreUnavailableError(CaseError):
    """The case store could not be reached or a query against it failed."""

    def __init__(self, message: str = "unable to access case data") -> None:
        super().__init__(message)


class CaseIdExhaustedError(CaseError):
    """No free display case ID was found within the retry budget."""
