"""
Repository for the ``case_updates`` audit table.

One row per successful field edit, written in the same transaction as the
edit itself so the history never disagrees with the case.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from casebook.datatypes.case_datatypes import CaseField, CaseUpdate
from casebook.repositories.case_repo import from_db_time, to_db_time


class CaseUpdateRepository:
    """Append-only access to ``case_updates``."""

    async def insert(self, conn: aiosqlite.Connection, update: CaseUpdate) -> None:
        await conn.execute(
            """
            INSERT INTO case_updates (id, case_ref, updated_by, field, old_value, new_value, reason, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                update.id,
                update.case_ref,
                update.updated_by,
                update.field.value,
                update.old_value,
                update.new_value,
                update.reason,
                to_db_time(update.created_at),
            ),
        )

    async def list_for_case(self, conn: aiosqlite.Connection, case_ref: str) -> List[CaseUpdate]:
        """All edits of one case, oldest first."""
        async with conn.execute(
            """
            SELECT id, case_ref, updated_by, field, old_value, new_value, reason, created_at
            FROM case_updates
            WHERE case_ref = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (case_ref,),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            CaseUpdate(
                id=row["id"],
                case_ref=row["case_ref"],
                updated_by=row["updated_by"],
                field=CaseField(row["field"]),
                old_value=row["old_value"],
                new_value=row["new_value"],
                reason=row["reason"],
                created_at=from_db_time(row["created_at"]),
            )
            for row in rows
        ]
