"""
Case types and data structures for moderation cases.

This module defines the enums and dataclasses that flow between the case
service, the repositories and the command handlers that render cases:

- `CaseType`: Every kind of moderation action a case can record.
- `CaseStatus`: Status filter values accepted by case listings.
- `CaseField`: The closed set of fields a moderator may edit after the fact.
- `ModerationCase`: One stored case row.
- `CaseDraft`: What a moderation command knows when it creates a case.
- `CaseFilter`: Conjunctive filter for case listings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from casebook.cases.errors import CaseValidationError
from casebook.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID


class CaseType(Enum):
    """Enumeration of recorded moderation actions."""

    BAN = "ban"
    KICK = "kick"
    TIMEOUT = "timeout"
    WARN = "warn"
    NOTE = "note"
    UNBAN = "unban"
    UNTIMEOUT = "untimeout"
    MASSBAN = "massban"
    MASSKICK = "masskick"
    MASSWARN = "masswarn"
    MASSMUTE = "massmute"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "CaseType | str") -> "CaseType":
        """Coerce user input into a CaseType, raising CaseValidationError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise CaseValidationError(f"Unknown case type: {value!r}") from None


class CaseStatus(Enum):
    """Status filter for case listings."""

    ACTIVE = "active"
    CLOSED = "closed"
    APPEALED = "appealed"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "CaseStatus | str") -> "CaseStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise CaseValidationError(f"Unknown case status: {value!r}") from None


class CaseField(Enum):
    """Fields that can be edited on an open case. Values are column names."""

    REASON = "reason"
    NOTES = "notes"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "CaseField | str") -> "CaseField":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise CaseValidationError(
                f"Field {value!r} cannot be updated; expected one of: "
                + ", ".join(member.value for member in cls)
            ) from None


class AppealDecision(Enum):
    """Lifecycle of an appeal attached to a case."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ModerationCase:
    """A single row of the ``moderation_cases`` table.

    Attributes:
        id: Internal UUID primary key, never shown to users
        case_id: Display case ID (uppercase, 10 or 12 characters)
        guild_id: Guild the case belongs to
        case_type: Kind of action recorded
        user_id: Subject of the action
        moderator_id: Moderator who took the action
        duration: Length of a timed action in milliseconds
        expires_at: When a timed action lapses
    """
    id: str
    case_id: str
    guild_id: str
    case_type: CaseType
    user_id: str
    moderator_id: str
    created_at: datetime
    updated_at: datetime
    reason: Optional[str] = None
    duration: Optional[int] = None
    expires_at: Optional[datetime] = None
    active: bool = True
    closed: bool = False
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    close_reason: Optional[str] = None
    appealed: bool = False
    appeal_reason: Optional[str] = None
    appealed_at: Optional[datetime] = None
    appeal_decision: Optional[AppealDecision] = None
    evidence: List[str] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    channel_id: Optional[str] = None
    message_id: Optional[str] = None
    mass_action_id: Optional[str] = None

    def value_of(self, case_field: CaseField) -> Optional[str]:
        """Return the current value of an editable field."""
        return getattr(self, case_field.value)


@dataclass(slots=True)
class CaseDraft:
    """Everything a moderation command supplies when recording an action.

    IDs, timestamps and lifecycle flags are filled in by the case service.
    """
    guild_id: GuildID
    case_type: CaseType
    user_id: UserID
    moderator_id: UserID
    reason: Optional[str] = None
    duration: Optional[int] = None
    evidence: List[str] = field(default_factory=list)
    attachments: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    channel_id: Optional[str] = None
    message_id: Optional[str] = None
    mass_action_id: Optional[str] = None

    def __post_init__(self) -> None:
        self.guild_id = as_guild_id(self.guild_id)
        self.user_id = as_user_id(self.user_id)
        self.moderator_id = as_user_id(self.moderator_id)
        self.case_type = CaseType.parse(self.case_type)
        try:
            if self.channel_id is not None:
                self.channel_id = str(ChannelID(self.channel_id))
            if self.message_id is not None:
                self.message_id = str(MessageID(self.message_id))
        except ValueError as exc:
            raise CaseValidationError(f"Invalid channel or message reference: {exc}") from exc
        if self.duration is not None and self.duration <= 0:
            raise CaseValidationError(f"Duration must be positive, got {self.duration}")


@dataclass(slots=True)
class CaseFilter:
    """Conjunctive filter over a guild's cases.

    ``guild_id`` is mandatory; every other attribute narrows the result when
    set. Status ``active`` means not closed, ``closed`` means closed and
    ``appealed`` means an appeal was filed.
    """
    guild_id: GuildID
    user_id: Optional[UserID] = None
    moderator_id: Optional[UserID] = None
    case_type: Optional[CaseType] = None
    status: Optional[CaseStatus] = None

    def __post_init__(self) -> None:
        self.guild_id = as_guild_id(self.guild_id)
        if self.user_id is not None:
            self.user_id = as_user_id(self.user_id)
        if self.moderator_id is not None:
            self.moderator_id = as_user_id(self.moderator_id)
        if self.case_type is not None:
            self.case_type = CaseType.parse(self.case_type)
        if self.status is not None:
            self.status = CaseStatus.parse(self.status)


@dataclass(slots=True)
class CasePage:
    """One page of a case listing plus what a paginator needs."""
    cases: List[ModerationCase]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True, slots=True)
class CaseUpdateResult:
    """Before/after values of an edited field, for the audit message."""
    case_id: str
    field: CaseField
    old_value: Optional[str]
    new_value: str


@dataclass(slots=True)
class CaseUpdate:
    """A single row of the ``case_updates`` audit table."""
    id: str
    case_ref: str
    updated_by: str
    field: CaseField
    old_value: Optional[str]
    new_value: Optional[str]
    reason: Optional[str]
    created_at: datetime


def _zero_counts() -> Dict[str, int]:
    return {case_type.value: 0 for case_type in CaseType}


@dataclass(slots=True)
class CaseStats:
    """Aggregate counts for a guild's cases.

    ``cases_by_type`` always holds every :class:`CaseType` value.
    """
    total_cases: int = 0
    active_cases: int = 0
    closed_cases: int = 0
    appealed_cases: int = 0
    cases_by_type: Dict[str, int] = field(default_factory=_zero_counts)

    @classmethod
    def empty(cls) -> "CaseStats":
        return cls()


def zero_type_counts() -> Dict[str, int]:
    """A fresh per-type counter with every case type at zero."""
    return _zero_counts()


def as_guild_id(value) -> GuildID:
    try:
        return GuildID(value)
    except ValueError as exc:
        raise CaseValidationError(f"Invalid guild ID: {value!r}") from exc


def as_user_id(value) -> UserID:
    try:
        return UserID(value)
    except ValueError as exc:
        raise CaseValidationError(f"Invalid user ID: {value!r}") from exc
