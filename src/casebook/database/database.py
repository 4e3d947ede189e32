"""
Database initialization and wiring for the case store.

This module provides a central Database class that owns the connection and
builds the case-facing services on top of it:
- connection: single aiosqlite connection with serialised writes
- schema: table/index creation
- cases: CaseService (creation, lookup, listing, lifecycle)
- stats: CaseStatsAggregator (advisory counts)
- cache / performance: shared by the services above

Lifecycle:
    1. ``await database.initialize()`` at bot startup
    2. use ``database.cases`` and ``database.stats``
    3. ``await database.shutdown()`` at bot shutdown
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import aiosqlite

from casebook.cases.case_service import CaseService
from casebook.cases.case_stats import CaseStatsAggregator
from casebook.configuration.app_configuration import app_config
from casebook.configuration.case_settings import CaseSettings
from casebook.database.db_cache import DatabaseQueryCache
from casebook.database.db_connection import ConnectionManager
from casebook.database.db_perf_mon import DatabasePerformanceMonitor
from casebook.database.db_schema import SchemaManager
from casebook.repositories import CaseRepository
from casebook.util.logger import get_logger

logger = get_logger("database")


class Database:
    """
    Central coordinator for the case store.

    Attributes:
        connection: The shared ConnectionManager
        cases: CaseService bound to this database
        stats: CaseStatsAggregator bound to this database
    """

    def __init__(self, db_path: Path, settings: Optional[CaseSettings] = None):
        """
        Args:
            db_path: Path to the SQLite database file
            settings: Case settings; defaults apply when omitted
        """
        self.db_path = db_path
        self.settings = settings or CaseSettings()
        self._initialized = False

        self.connection = ConnectionManager()
        self.db_perf_mon = DatabasePerformanceMonitor(self.settings.slow_query_threshold_ms)
        self._cache = DatabaseQueryCache(ttl_seconds=self.settings.stats_cache_ttl_seconds)
        self.cases = CaseService(
            self.connection,
            settings=self.settings,
            cache=self._cache,
            performance=self.db_perf_mon,
        )
        self.stats = CaseStatsAggregator(self.connection, CaseRepository(), self._cache)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connection.open(self.db_path)
            async with self.connection.transaction() as conn:
                await SchemaManager.initialize_schema(conn)
        except (aiosqlite.Error, OSError) as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            await self.connection.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Case database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        """Flush and close the connection."""
        if not self._initialized:
            return

        await self.connection.close()
        self._cache.invalidate()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    def get_db_performance_stats(self) -> Dict[str, Dict[str, float]]:
        """Per-operation timing statistics."""
        return self.db_perf_mon.get_statistics()

    def reset_db_performance_stats(self) -> None:
        self.db_perf_mon.reset()

    def clear_query_cache(self, prefix: Optional[str] = None) -> None:
        """Drop cached statistics, all of them or those under ``prefix``."""
        self._cache.invalidate(prefix)


# Global Database instance, configured from config/app_config.yml
database = Database(app_config.database_path, app_config.case_settings)


def get_db() -> Database:
    """
    Get the global Database instance.

    Returns:
        Database: The global Database manager instance.
    """
    return database
