"""
Case statistics for dashboards and the ``/case stats`` command.

Statistics are advisory. A failing query must never block a moderation
action, so storage failures are logged and answered with zeroed results.
A malformed guild ID is still a caller error and raises.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional

from casebook.database.db_cache import DatabaseQueryCache
from casebook.database.db_connection import ConnectionManager
from casebook.datatypes.case_datatypes import CaseStats, as_guild_id, zero_type_counts
from casebook.repositories.case_repo import CaseRepository
from casebook.util.logger import get_logger

logger = get_logger("case_stats")


def stats_cache_prefix(guild_id) -> str:
    """Cache key prefix for everything cached about one guild's statistics."""
    return f"case_stats:{guild_id}:"


class CaseStatsAggregator:
    """Computes per-guild case counts and per-moderator breakdowns."""

    def __init__(
        self,
        connection: ConnectionManager,
        repository: Optional[CaseRepository] = None,
        cache: Optional[DatabaseQueryCache] = None,
    ) -> None:
        self._connection = connection
        self._repository = repository or CaseRepository()
        self._cache = cache or DatabaseQueryCache()

    async def get_case_stats(self, guild_id) -> CaseStats:
        """Totals for a guild: all, active (not closed), closed, appealed, and per type.

        Every case type appears in ``cases_by_type``, with zero when unused.
        """
        gid = str(as_guild_id(guild_id))
        cache_key = f"{stats_cache_prefix(gid)}totals"
        try:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return replace(cached, cases_by_type=dict(cached.cases_by_type))

            async with self._connection.read() as conn:
                by_type = await self._repository.count_by_type(conn, gid)
        except Exception:
            logger.exception("[CASE STATS] Failed to compute case statistics for guild %s", gid)
            return CaseStats.empty()

        stats = CaseStats()
        for type_name, counts in by_type.items():
            if type_name in stats.cases_by_type:
                stats.cases_by_type[type_name] = counts["total"]
            else:
                logger.warning("[CASE STATS] Ignoring unknown case type %r in guild %s", type_name, gid)
            stats.total_cases += counts["total"]
            stats.active_cases += counts["active"]
            stats.closed_cases += counts["closed"]
            stats.appealed_cases += counts["appealed"]

        self._cache.set(cache_key, replace(stats, cases_by_type=dict(stats.cases_by_type)))
        return stats

    async def get_moderator_stats(
        self,
        guild_id,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Dict[str, int]]:
        """Cases per moderator and type, optionally within ``[start_date, end_date]``.

        Returns ``{moderator_id: {case_type: count}}`` with every case type
        present for each moderator that has at least one case in the window.
        """
        gid = str(as_guild_id(guild_id))
        try:
            async with self._connection.read() as conn:
                rows = await self._repository.count_by_moderator(conn, gid, start_date, end_date)
        except Exception:
            logger.exception("[CASE STATS] Failed to compute moderator statistics for guild %s", gid)
            return {}

        by_moderator: Dict[str, Dict[str, int]] = {}
        for moderator_id, type_name, count in rows:
            counts = by_moderator.setdefault(moderator_id, zero_type_counts())
            counts[type_name] = count
        return by_moderator
