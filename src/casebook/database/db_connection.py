"""
Database connection management for the case store.

One long-lived aiosqlite connection serves every case operation:
  - pragmas and the page cache are set up once
  - WAL mode lets readers run while a write is in progress

Concurrency model
-----------------
SQLite is single-writer. Writes go through :meth:`ConnectionManager.transaction`,
which holds ``_write_sem`` so concurrent tasks queue instead of fighting over
SQLite's busy timeout. Reads use :meth:`ConnectionManager.read` and take no
lock.

Usage
-----
    await manager.open(DB_PATH)

    async with manager.read() as conn:
        cursor = await conn.execute("SELECT ...")

    async with manager.transaction() as conn:
        await conn.execute("UPDATE ...")
        # commits on clean exit, rolls back on exception

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from casebook.cases.errors import StoreUnavailableError
from casebook.util.logger import get_logger

logger = get_logger("database_connection")

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",    # safe with WAL
    "PRAGMA cache_size = -65536",     # 64 MB page cache
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
]


def _casefold(value: str | None) -> str | None:
    # SQLite's LOWER()/LIKE only fold ASCII; reason search needs full Unicode folding
    return value.casefold() if value is not None else None


class ConnectionManager:
    """
    Owner of the single aiosqlite connection used by the case store.

    * Reads: ``async with read()``; WAL allows concurrent reads.
    * Writes: ``async with transaction()``; serialised by ``_write_sem``.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self, path: Path) -> None:
        """
        Open the database, apply pragmas and register SQL helper functions.

        Args:
            path: Path to the SQLite database file.
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(path)
        try:
            conn.row_factory = aiosqlite.Row
            for pragma in _PRAGMAS:
                await conn.execute(pragma)
            await conn.create_function("casefold", 1, _casefold, deterministic=True)
            await conn.commit()
        except aiosqlite.Error:
            await conn.close()
            raise

        self._conn = conn
        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw aiosqlite connection.

        Raises:
            StoreUnavailableError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise StoreUnavailableError("case database connection is not open")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction: commits on clean exit, rolls back on error.

        Raises:
            StoreUnavailableError: If the connection is not open.
        """
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Read access, symmetrical with :meth:`transaction`. Takes no lock.
        """
        yield self.connection
