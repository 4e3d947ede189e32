"""
Allocation of globally unique display case IDs.

The allocator only answers "which ID is free right now"; it never writes.
The check and the later insert are not atomic, so the UNIQUE index on
``moderation_cases.case_id`` stays the final arbiter and callers retry the
whole create on :class:`~casebook.cases.errors.DuplicateCaseIdError`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Protocol

from casebook.cases.case_ids import CASE_ID_LENGTH, FALLBACK_CASE_ID_LENGTH, generate_case_id
from casebook.cases.errors import CaseIdExhaustedError
from casebook.util.logger import get_logger

logger = get_logger("case_id_allocator")

DEFAULT_MAX_ATTEMPTS = 50


class CaseIdRegistry(Protocol):
    """Anything that can tell whether a display case ID is already in use."""

    async def exists(self, case_id: str) -> bool:
        ...


@dataclass(frozen=True, slots=True)
class AllocatedCaseId:
    """A fresh internal UUID paired with a display case ID that was free when checked."""

    id: str
    case_id: str


class UniqueIdAllocator:
    """
    Generates candidate case IDs until the registry reports one as unused.

    Candidates of ``id_length`` are tried ``max_attempts`` times. If all of
    them are taken the keyspace is treated as saturated: a warning is logged
    and the same budget is spent on ``fallback_length`` candidates, each of
    which is checked as well. Only when both budgets run out does
    :meth:`allocate` raise.

    Errors from the registry propagate untouched; an unreachable store never
    counts as "free".
    """

    def __init__(
        self,
        registry: CaseIdRegistry,
        *,
        id_length: int = CASE_ID_LENGTH,
        fallback_length: int = FALLBACK_CASE_ID_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        generator: Callable[[int], str] = generate_case_id,
    ) -> None:
        self._registry = registry
        self._id_length = id_length
        self._fallback_length = fallback_length
        self._max_attempts = max_attempts
        self._generator = generator
        # Generations spent by the most recent allocate() call
        self.attempts = 0

    async def allocate(self) -> AllocatedCaseId:
        """Return an internal UUID and a display case ID not present in the registry.

        Raises:
            CaseIdExhaustedError: If no free ID was found at either length.
        """
        case_id, attempts = await self._find_free(self._id_length)
        if case_id is None:
            logger.warning(
                "[CASE IDS] No free %d-character case ID after %d attempts, falling back to %d characters",
                self._id_length, attempts, self._fallback_length,
            )
            case_id, fallback_attempts = await self._find_free(self._fallback_length)
            attempts += fallback_attempts

        self.attempts = attempts
        if case_id is None:
            logger.error("[CASE IDS] Case ID keyspace exhausted after %d attempts", attempts)
            raise CaseIdExhaustedError(f"No free case ID found after {attempts} attempts")

        if attempts > 1:
            logger.debug("[CASE IDS] Allocated %s after %d attempts", case_id, attempts)
        return AllocatedCaseId(id=str(uuid.uuid4()), case_id=case_id)

    async def _find_free(self, length: int) -> tuple[str | None, int]:
        for attempt in range(1, self._max_attempts + 1):
            candidate = self._generator(length)
            if not await self._registry.exists(candidate):
                return candidate, attempt
        return None, self._max_attempts
