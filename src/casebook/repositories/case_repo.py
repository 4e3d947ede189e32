"""
Repository for the ``moderation_cases`` table.

Pure SQL, no policy: the repository never decides whether a case may be
closed or edited. Conditional writes report whether a row changed and the
case service turns that into not-found/conflict errors.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiosqlite

from casebook.cases.errors import DuplicateCaseIdError
from casebook.datatypes.case_datatypes import (
    AppealDecision,
    CaseField,
    CaseFilter,
    CaseStatus,
    CaseType,
    ModerationCase,
)
from casebook.util.logger import get_logger

logger = get_logger("case_repo")

_COLUMNS = (
    "id", "case_id", "guild_id", "type", "user_id", "moderator_id", "reason",
    "duration", "expires_at", "active", "closed", "closed_at", "closed_by",
    "close_reason", "appealed", "appeal_reason", "appealed_at", "appeal_decision",
    "evidence", "attachments", "notes", "channel_id", "message_id",
    "mass_action_id", "created_at", "updated_at",
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM moderation_cases"

# rowid breaks ties between cases created within the same microsecond
_NEWEST_FIRST = "ORDER BY created_at DESC, rowid DESC"

_STATUS_PREDICATES = {
    CaseStatus.ACTIVE: "closed = 0",
    CaseStatus.CLOSED: "closed = 1",
    CaseStatus.APPEALED: "appealed = 1",
}


def to_db_time(value: datetime) -> str:
    """Serialise a datetime as sortable UTC ISO-8601 text. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _filter_clause(filters: CaseFilter) -> Tuple[str, List[Any]]:
    conditions = ["guild_id = ?"]
    params: List[Any] = [str(filters.guild_id)]

    if filters.user_id is not None:
        conditions.append("user_id = ?")
        params.append(str(filters.user_id))
    if filters.moderator_id is not None:
        conditions.append("moderator_id = ?")
        params.append(str(filters.moderator_id))
    if filters.case_type is not None:
        conditions.append("type = ?")
        params.append(filters.case_type.value)
    if filters.status is not None:
        conditions.append(_STATUS_PREDICATES[filters.status])

    return " AND ".join(conditions), params


def _row_to_case(row: aiosqlite.Row) -> ModerationCase:
    decision = row["appeal_decision"]
    return ModerationCase(
        id=row["id"],
        case_id=row["case_id"],
        guild_id=row["guild_id"],
        case_type=CaseType(row["type"]),
        user_id=row["user_id"],
        moderator_id=row["moderator_id"],
        reason=row["reason"],
        duration=row["duration"],
        expires_at=from_db_time(row["expires_at"]),
        active=bool(row["active"]),
        closed=bool(row["closed"]),
        closed_at=from_db_time(row["closed_at"]),
        closed_by=row["closed_by"],
        close_reason=row["close_reason"],
        appealed=bool(row["appealed"]),
        appeal_reason=row["appeal_reason"],
        appealed_at=from_db_time(row["appealed_at"]),
        appeal_decision=AppealDecision(decision) if decision else None,
        evidence=json.loads(row["evidence"] or "[]"),
        attachments=json.loads(row["attachments"] or "[]"),
        notes=row["notes"],
        channel_id=row["channel_id"],
        message_id=row["message_id"],
        mass_action_id=row["mass_action_id"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


def _case_to_params(case: ModerationCase) -> Tuple[Any, ...]:
    return (
        case.id,
        case.case_id,
        case.guild_id,
        case.case_type.value,
        case.user_id,
        case.moderator_id,
        case.reason,
        case.duration,
        to_db_time(case.expires_at) if case.expires_at else None,
        int(case.active),
        int(case.closed),
        to_db_time(case.closed_at) if case.closed_at else None,
        case.closed_by,
        case.close_reason,
        int(case.appealed),
        case.appeal_reason,
        to_db_time(case.appealed_at) if case.appealed_at else None,
        case.appeal_decision.value if case.appeal_decision else None,
        json.dumps(list(case.evidence)),
        json.dumps(list(case.attachments)),
        case.notes,
        case.channel_id,
        case.message_id,
        case.mass_action_id,
        to_db_time(case.created_at),
        to_db_time(case.updated_at),
    )


class CaseRepository:
    """Low-level CRUD and aggregate queries for ``moderation_cases``."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, conn: aiosqlite.Connection, case: ModerationCase) -> None:
        """Insert a new case row.

        Raises:
            DuplicateCaseIdError: If the display case ID is already stored.
        """
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            await conn.execute(
                f"INSERT INTO moderation_cases ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                _case_to_params(case),
            )
        except aiosqlite.IntegrityError as exc:
            if "moderation_cases.case_id" in str(exc):
                raise DuplicateCaseIdError(case.case_id) from exc
            raise

    async def close(
        self,
        conn: aiosqlite.Connection,
        internal_id: str,
        closed_by: str,
        close_reason: Optional[str],
        now: datetime,
    ) -> bool:
        """Close an open case. Returns False if the row is missing or already closed."""
        stamp = to_db_time(now)
        cursor = await conn.execute(
            """
            UPDATE moderation_cases
            SET closed = 1, closed_at = ?, closed_by = ?, close_reason = ?, updated_at = ?
            WHERE id = ? AND closed = 0
            """,
            (stamp, closed_by, close_reason, stamp, internal_id),
        )
        return cursor.rowcount == 1

    async def update_field(
        self,
        conn: aiosqlite.Connection,
        internal_id: str,
        case_field: CaseField,
        value: str,
        now: datetime,
    ) -> bool:
        """Set an editable field on an open case. Returns False if nothing changed."""
        # Column name comes from the CaseField enum, never from user input
        cursor = await conn.execute(
            f"UPDATE moderation_cases SET {case_field.value} = ?, updated_at = ? WHERE id = ? AND closed = 0",
            (value, to_db_time(now), internal_id),
        )
        return cursor.rowcount == 1

    async def mark_appealed(
        self,
        conn: aiosqlite.Connection,
        internal_id: str,
        appeal_reason: str,
        now: datetime,
    ) -> bool:
        """Attach a pending appeal. Returns False if the case was already appealed."""
        stamp = to_db_time(now)
        cursor = await conn.execute(
            """
            UPDATE moderation_cases
            SET appealed = 1, appeal_reason = ?, appealed_at = ?, appeal_decision = ?, updated_at = ?
            WHERE id = ? AND appealed = 0
            """,
            (appeal_reason, stamp, AppealDecision.PENDING.value, stamp, internal_id),
        )
        return cursor.rowcount == 1

    async def set_appeal_decision(
        self,
        conn: aiosqlite.Connection,
        internal_id: str,
        decision: AppealDecision,
        now: datetime,
    ) -> bool:
        """Resolve a pending appeal. Returns False if there is no pending appeal."""
        cursor = await conn.execute(
            """
            UPDATE moderation_cases
            SET appeal_decision = ?, updated_at = ?
            WHERE id = ? AND appealed = 1 AND appeal_decision = ?
            """,
            (decision.value, to_db_time(now), internal_id, AppealDecision.PENDING.value),
        )
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def case_id_exists(self, conn: aiosqlite.Connection, case_id: str) -> bool:
        """Return True if any guild already uses ``case_id``."""
        async with conn.execute(
            "SELECT 1 FROM moderation_cases WHERE case_id = ? LIMIT 1",
            (case_id,),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def get_by_case_id(
        self,
        conn: aiosqlite.Connection,
        case_id: str,
        guild_id: Optional[str] = None,
    ) -> Optional[ModerationCase]:
        """Fetch a case by normalised display ID, optionally restricted to one guild."""
        if guild_id is None:
            query, params = f"{_SELECT} WHERE case_id = ? LIMIT 1", (case_id,)
        else:
            query, params = f"{_SELECT} WHERE guild_id = ? AND case_id = ? LIMIT 1", (guild_id, case_id)

        async with conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return _row_to_case(row) if row is not None else None

    async def get_by_internal_id(self, conn: aiosqlite.Connection, internal_id: str) -> Optional[ModerationCase]:
        async with conn.execute(f"{_SELECT} WHERE id = ?", (internal_id,)) as cursor:
            row = await cursor.fetchone()
        return _row_to_case(row) if row is not None else None

    async def list(
        self,
        conn: aiosqlite.Connection,
        filters: CaseFilter,
        limit: int,
        offset: int,
    ) -> Tuple[List[ModerationCase], int]:
        """Return one page of matching cases (newest first) and the total match count."""
        where, params = _filter_clause(filters)

        async with conn.execute(f"SELECT COUNT(*) FROM moderation_cases WHERE {where}", params) as cursor:
            row = await cursor.fetchone()
        total = row[0] if row else 0

        async with conn.execute(
            f"{_SELECT} WHERE {where} {_NEWEST_FIRST} LIMIT ? OFFSET ?",
            [*params, limit, offset],
        ) as cursor:
            rows = await cursor.fetchall()

        return [_row_to_case(r) for r in rows], total

    async def search(
        self,
        conn: aiosqlite.Connection,
        guild_id: str,
        query: str,
        limit: int,
        offset: int = 0,
    ) -> List[ModerationCase]:
        """Cases whose subject is ``query`` or whose reason contains it, ignoring case."""
        async with conn.execute(
            f"""
            {_SELECT}
            WHERE guild_id = ? AND (user_id = ? OR instr(casefold(reason), ?) > 0)
            {_NEWEST_FIRST}
            LIMIT ? OFFSET ?
            """,
            (guild_id, query, query.casefold(), limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_case(r) for r in rows]

    async def get_active_punishments(
        self,
        conn: aiosqlite.Connection,
        guild_id: str,
        user_id: str,
        now: datetime,
    ) -> List[ModerationCase]:
        """Open, active cases for a user that have not expired, oldest first."""
        async with conn.execute(
            f"""
            {_SELECT}
            WHERE guild_id = ? AND user_id = ? AND active = 1 AND closed = 0
              AND (expires_at IS NULL OR expires_at > ?)
            ORDER BY created_at ASC, rowid ASC
            """,
            (guild_id, user_id, to_db_time(now)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_case(r) for r in rows]

    async def count_by_type(self, conn: aiosqlite.Connection, guild_id: str) -> Dict[str, Dict[str, int]]:
        """Per-type totals for a guild: ``{type: {"total", "active", "closed", "appealed"}}``."""
        async with conn.execute(
            """
            SELECT type,
                   COUNT(*) AS total,
                   SUM(CASE WHEN closed = 0 THEN 1 ELSE 0 END) AS active,
                   SUM(CASE WHEN closed = 1 THEN 1 ELSE 0 END) AS closed,
                   SUM(CASE WHEN appealed = 1 THEN 1 ELSE 0 END) AS appealed
            FROM moderation_cases
            WHERE guild_id = ?
            GROUP BY type
            """,
            (guild_id,),
        ) as cursor:
            rows = await cursor.fetchall()

        return {
            row["type"]: {
                "total": row["total"],
                "active": row["active"] or 0,
                "closed": row["closed"] or 0,
                "appealed": row["appealed"] or 0,
            }
            for row in rows
        }

    async def count_by_moderator(
        self,
        conn: aiosqlite.Connection,
        guild_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sequence[Tuple[str, str, int]]:
        """``(moderator_id, type, count)`` rows, optionally bounded (inclusive) on created_at."""
        conditions = ["guild_id = ?"]
        params: List[Any] = [guild_id]
        if start is not None:
            conditions.append("created_at >= ?")
            params.append(to_db_time(start))
        if end is not None:
            conditions.append("created_at <= ?")
            params.append(to_db_time(end))

        async with conn.execute(
            f"""
            SELECT moderator_id, type, COUNT(*) AS count
            FROM moderation_cases
            WHERE {' AND '.join(conditions)}
            GROUP BY moderator_id, type
            ORDER BY moderator_id
            """,
            params,
        ) as cursor:
            rows = await cursor.fetchall()
        return [(row["moderator_id"], row["type"], row["count"]) for row in rows]
