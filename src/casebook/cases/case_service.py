"""
CaseService: the async API moderation commands use to record and manage cases.

Responsibilities:
- Allocate globally unique display case IDs and create case rows, retrying the
  whole allocate+insert when the unique index rejects an ID
- Guild-scoped and global lookup by display ID
- Filtered, paginated listing and search
- One-way close, field edits with an audit trail, appeals

All SQL lives in the repositories; this layer validates input, enforces the
case lifecycle and maps storage failures to :class:`StoreUnavailableError`.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional

import aiosqlite

from casebook.cases.allocator import AllocatedCaseId, UniqueIdAllocator
from casebook.cases.case_ids import (
    CASE_ID_LENGTH,
    FALLBACK_CASE_ID_LENGTH,
    is_valid_case_id,
    normalize_case_id,
)
from casebook.cases.case_stats import stats_cache_prefix
from casebook.cases.errors import (
    CaseConflictError,
    CaseIdExhaustedError,
    CaseNotFoundError,
    CaseValidationError,
    DuplicateCaseIdError,
    StoreUnavailableError,
)
from casebook.configuration.case_settings import CaseSettings
from casebook.database.db_cache import DatabaseQueryCache
from casebook.database.db_connection import ConnectionManager
from casebook.database.db_perf_mon import DatabasePerformanceMonitor
from casebook.datatypes.case_datatypes import (
    AppealDecision,
    CaseDraft,
    CaseField,
    CaseFilter,
    CasePage,
    CaseStatus,
    CaseType,
    CaseUpdate,
    CaseUpdateResult,
    ModerationCase,
    as_guild_id,
    as_user_id,
)
from casebook.repositories import CaseRepository, CaseUpdateRepository
from casebook.util.logger import get_logger

logger = get_logger("case_service")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except aiosqlite.Error as exc:
        logger.error("[CASES] %s failed: %s", operation, exc)
        raise StoreUnavailableError() from exc


class StoredCaseIds:
    """CaseIdRegistry backed by the ``moderation_cases`` table."""

    def __init__(self, connection: ConnectionManager, repository: CaseRepository) -> None:
        self._connection = connection
        self._repository = repository

    async def exists(self, case_id: str) -> bool:
        with _store_errors("case_id_exists"):
            async with self._connection.read() as conn:
                return await self._repository.case_id_exists(conn, case_id)


class CaseService:
    """
    Orchestrates case reads and writes over the case repositories.

    Every public method is timed in the performance monitor. Writes that can
    change statistics drop the guild's cached stats.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        *,
        settings: Optional[CaseSettings] = None,
        cache: Optional[DatabaseQueryCache] = None,
        performance: Optional[DatabasePerformanceMonitor] = None,
        allocator: Optional[UniqueIdAllocator] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._connection = connection
        self._settings = settings or CaseSettings()
        self._cache = cache or DatabaseQueryCache(ttl_seconds=self._settings.stats_cache_ttl_seconds)
        self._performance = performance or DatabasePerformanceMonitor(self._settings.slow_query_threshold_ms)
        self._cases = CaseRepository()
        self._updates = CaseUpdateRepository()
        self._allocator = allocator or UniqueIdAllocator(
            StoredCaseIds(connection, self._cases),
            id_length=CASE_ID_LENGTH,
            fallback_length=FALLBACK_CASE_ID_LENGTH,
            max_attempts=self._settings.max_attempts,
        )
        self._now = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _clamp_limit(self, limit: int) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise CaseValidationError(f"Limit must be an integer, got {limit!r}")
        return max(1, min(limit, self._settings.max_page_size))

    def _invalidate_stats(self, guild_id: str) -> None:
        self._cache.invalidate(stats_cache_prefix(guild_id))

    async def _resolve(
        self,
        conn: aiosqlite.Connection,
        case_id: str,
        guild_id: Optional[str],
    ) -> ModerationCase:
        case = await self._cases.get_by_case_id(conn, case_id, guild_id)
        if case is None:
            raise CaseNotFoundError(case_id, guild_id)
        return case

    @staticmethod
    def _optional_guild(guild_id) -> Optional[str]:
        return str(as_guild_id(guild_id)) if guild_id is not None else None

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def generate_unique_case_id(self) -> AllocatedCaseId:
        """Return a fresh internal UUID and a display case ID unused in every guild.

        Nothing is reserved: the caller must insert the case promptly and be
        ready for :class:`DuplicateCaseIdError` if another task wins the race.
        """
        with self._performance.timed("generate_unique_case_id"):
            return await self._allocator.allocate()

    async def create_case(self, draft: CaseDraft) -> ModerationCase:
        """Record a moderation action and return the stored case.

        Raises:
            CaseIdExhaustedError: If every attempt hit an already-used case ID.
            StoreUnavailableError: If the store could not be read or written.
        """
        attempts = self._settings.create_attempts
        for attempt in range(1, attempts + 1):
            allocated = await self.generate_unique_case_id()
            now = self._now()
            case = ModerationCase(
                id=allocated.id,
                case_id=allocated.case_id,
                guild_id=str(draft.guild_id),
                case_type=draft.case_type,
                user_id=str(draft.user_id),
                moderator_id=str(draft.moderator_id),
                reason=draft.reason,
                duration=draft.duration,
                expires_at=now + timedelta(milliseconds=draft.duration) if draft.duration else None,
                evidence=list(draft.evidence),
                attachments=list(draft.attachments),
                notes=draft.notes,
                channel_id=draft.channel_id,
                message_id=draft.message_id,
                mass_action_id=draft.mass_action_id,
                created_at=now,
                updated_at=now,
            )

            try:
                with self._performance.timed("create_case"), _store_errors("create_case"):
                    async with self._connection.transaction() as conn:
                        await self._cases.insert(conn, case)
            except DuplicateCaseIdError:
                logger.warning(
                    "[CASES] Case ID %s was taken before insert (attempt %d/%d), retrying",
                    case.case_id, attempt, attempts,
                )
                continue

            self._invalidate_stats(case.guild_id)
            logger.info(
                "[CASES] Created %s case %s for user %s in guild %s",
                case.case_type, case.case_id, case.user_id, case.guild_id,
            )
            return case

        raise CaseIdExhaustedError(f"Could not store a case with a unique ID after {attempts} attempts")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def find_case_by_id(self, case_id: str) -> Optional[ModerationCase]:
        """Find a case by display ID in any guild. Input is case-insensitive."""
        normalized = normalize_case_id(case_id)
        with self._performance.timed("find_case_by_id"), _store_errors("find_case_by_id"):
            async with self._connection.read() as conn:
                return await self._cases.get_by_case_id(conn, normalized)

    async def find_case_by_id_in_guild(self, guild_id, case_id: str) -> Optional[ModerationCase]:
        """Find a case by display ID, only if it belongs to ``guild_id``."""
        gid = str(as_guild_id(guild_id))
        normalized = normalize_case_id(case_id)
        with self._performance.timed("find_case_by_id_in_guild"), _store_errors("find_case_by_id_in_guild"):
            async with self._connection.read() as conn:
                return await self._cases.get_by_case_id(conn, normalized, gid)

    async def get_case(self, case_id: str, *, guild_id=None) -> ModerationCase:
        """Like the finders, but a missing case raises :class:`CaseNotFoundError`."""
        gid = self._optional_guild(guild_id)
        normalized = normalize_case_id(case_id)
        with self._performance.timed("get_case"), _store_errors("get_case"):
            async with self._connection.read() as conn:
                return await self._resolve(conn, normalized, gid)

    # ------------------------------------------------------------------
    # Listing and search
    # ------------------------------------------------------------------

    async def list_cases(self, filters: CaseFilter, *, page: int = 1, limit: int = 10) -> CasePage:
        """Return one page of a guild's cases matching ``filters``, newest first."""
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise CaseValidationError(f"Page must be a positive integer, got {page!r}")
        limit = self._clamp_limit(limit)
        offset = (page - 1) * limit

        with self._performance.timed("list_cases"), _store_errors("list_cases"):
            async with self._connection.read() as conn:
                cases, total = await self._cases.list(conn, filters, limit, offset)

        return CasePage(cases=cases, total_count=total, page=page, limit=limit)

    async def search_cases(self, guild_id, query: str, *, limit: int = 20, offset: int = 0) -> List[ModerationCase]:
        """Search a guild's cases.

        A query shaped like a 10-character display case ID is an exact lookup (zero or one
        result). Anything else matches cases whose user ID equals the query or
        whose reason contains it, ignoring case.
        """
        gid = str(as_guild_id(guild_id))
        query = query.strip() if isinstance(query, str) else ""
        if not query:
            raise CaseValidationError("Search query must not be empty")
        limit = self._clamp_limit(limit)
        offset = max(0, offset)

        with self._performance.timed("search_cases"), _store_errors("search_cases"):
            async with self._connection.read() as conn:
                if is_valid_case_id(query):
                    case = await self._cases.get_by_case_id(conn, query.upper(), gid)
                    return [case] if case is not None else []
                return await self._cases.search(conn, gid, query, limit, offset)

    async def get_user_cases(
        self,
        guild_id,
        user_id,
        *,
        limit: int = 10,
        offset: int = 0,
        case_type: Optional[CaseType] = None,
        active_only: bool = False,
    ) -> List[ModerationCase]:
        """A user's cases in a guild, newest first."""
        filters = CaseFilter(
            guild_id=guild_id,
            user_id=user_id,
            case_type=case_type,
            status=CaseStatus.ACTIVE if active_only else None,
        )
        with self._performance.timed("get_user_cases"), _store_errors("get_user_cases"):
            async with self._connection.read() as conn:
                cases, _ = await self._cases.list(conn, filters, self._clamp_limit(limit), max(0, offset))
        return cases

    async def get_recent_cases(self, guild_id, limit: int = 10) -> List[ModerationCase]:
        """The newest cases of a guild."""
        filters = CaseFilter(guild_id=guild_id)
        with self._performance.timed("get_recent_cases"), _store_errors("get_recent_cases"):
            async with self._connection.read() as conn:
                cases, _ = await self._cases.list(conn, filters, self._clamp_limit(limit), 0)
        return cases

    async def get_active_punishments(self, guild_id, user_id) -> List[ModerationCase]:
        """Open, active cases against a user that have not expired yet."""
        gid = str(as_guild_id(guild_id))
        uid = str(as_user_id(user_id))
        with self._performance.timed("get_active_punishments"), _store_errors("get_active_punishments"):
            async with self._connection.read() as conn:
                return await self._cases.get_active_punishments(conn, gid, uid, self._now())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close_case(
        self,
        case_id: str,
        closed_by,
        close_reason: Optional[str] = None,
        *,
        guild_id=None,
    ) -> ModerationCase:
        """Close an open case. Closing is one-way.

        Raises:
            CaseNotFoundError: No such case (in the guild, when given).
            CaseConflictError: The case is already closed.
        """
        gid = self._optional_guild(guild_id)
        normalized = normalize_case_id(case_id)
        moderator = str(as_user_id(closed_by))

        with self._performance.timed("close_case"), _store_errors("close_case"):
            async with self._connection.transaction() as conn:
                case = await self._resolve(conn, normalized, gid)
                if case.closed or not await self._cases.close(conn, case.id, moderator, close_reason, self._now()):
                    raise CaseConflictError(normalized, f"Case {normalized} is already closed")
                closed = await self._cases.get_by_internal_id(conn, case.id)

        self._invalidate_stats(case.guild_id)
        logger.info("[CASES] Case %s closed by %s", normalized, moderator)
        return closed

    async def update_case(
        self,
        case_id: str,
        field: CaseField | str,
        new_value: str,
        updated_by,
        update_reason: Optional[str] = None,
        *,
        guild_id=None,
    ) -> CaseUpdateResult:
        """Edit the reason or notes of an open case and record the edit.

        Raises:
            CaseValidationError: Unknown field or a non-string value.
            CaseNotFoundError: No such case.
            CaseConflictError: The case is closed.
        """
        case_field = CaseField.parse(field)
        if not isinstance(new_value, str):
            raise CaseValidationError(f"New {case_field} must be a string")
        gid = self._optional_guild(guild_id)
        normalized = normalize_case_id(case_id)
        moderator = str(as_user_id(updated_by))

        with self._performance.timed("update_case"), _store_errors("update_case"):
            async with self._connection.transaction() as conn:
                case = await self._resolve(conn, normalized, gid)
                now = self._now()
                if case.closed or not await self._cases.update_field(conn, case.id, case_field, new_value, now):
                    raise CaseConflictError(normalized, f"Cannot update closed case {normalized}")

                old_value = case.value_of(case_field)
                await self._updates.insert(conn, CaseUpdate(
                    id=str(uuid.uuid4()),
                    case_ref=case.id,
                    updated_by=moderator,
                    field=case_field,
                    old_value=old_value,
                    new_value=new_value,
                    reason=update_reason,
                    created_at=now,
                ))

        logger.info("[CASES] Case %s %s updated by %s", normalized, case_field, moderator)
        return CaseUpdateResult(case_id=normalized, field=case_field, old_value=old_value, new_value=new_value)

    async def get_case_history(self, case_id: str, *, guild_id=None) -> List[CaseUpdate]:
        """All recorded edits of a case, oldest first."""
        gid = self._optional_guild(guild_id)
        normalized = normalize_case_id(case_id)
        with self._performance.timed("get_case_history"), _store_errors("get_case_history"):
            async with self._connection.read() as conn:
                case = await self._resolve(conn, normalized, gid)
                return await self._updates.list_for_case(conn, case.id)

    async def appeal_case(self, case_id: str, appeal_reason: str, *, guild_id=None) -> ModerationCase:
        """File a pending appeal against an open case.

        Raises:
            CaseConflictError: The case is closed or was already appealed.
        """
        if not isinstance(appeal_reason, str) or not appeal_reason.strip():
            raise CaseValidationError("Appeal reason must not be empty")
        gid = self._optional_guild(guild_id)
        normalized = normalize_case_id(case_id)

        with self._performance.timed("appeal_case"), _store_errors("appeal_case"):
            async with self._connection.transaction() as conn:
                case = await self._resolve(conn, normalized, gid)
                if case.closed:
                    raise CaseConflictError(normalized, f"Cannot appeal closed case {normalized}")
                if not await self._cases.mark_appealed(conn, case.id, appeal_reason.strip(), self._now()):
                    raise CaseConflictError(normalized, f"Case {normalized} has already been appealed")
                appealed = await self._cases.get_by_internal_id(conn, case.id)

        self._invalidate_stats(case.guild_id)
        logger.info("[CASES] Appeal filed for case %s", normalized)
        return appealed

    async def decide_appeal(self, case_id: str, decision: AppealDecision | str, *, guild_id=None) -> ModerationCase:
        """Approve or deny a pending appeal.

        Raises:
            CaseValidationError: The decision is not approved/denied.
            CaseConflictError: There is no pending appeal on the case.
        """
        try:
            resolved = decision if isinstance(decision, AppealDecision) else AppealDecision(str(decision).strip().lower())
        except ValueError:
            raise CaseValidationError(f"Unknown appeal decision: {decision!r}") from None
        if resolved is AppealDecision.PENDING:
            raise CaseValidationError("An appeal decision must be approved or denied")
        gid = self._optional_guild(guild_id)
        normalized = normalize_case_id(case_id)

        with self._performance.timed("decide_appeal"), _store_errors("decide_appeal"):
            async with self._connection.transaction() as conn:
                case = await self._resolve(conn, normalized, gid)
                if not await self._cases.set_appeal_decision(conn, case.id, resolved, self._now()):
                    raise CaseConflictError(normalized, f"Case {normalized} has no pending appeal")
                decided = await self._cases.get_by_internal_id(conn, case.id)

        logger.info("[CASES] Appeal on case %s %s", normalized, resolved)
        return decided
