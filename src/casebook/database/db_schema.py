"""
Database schema initialization for the case store.

Handles creation of tables, indexes and schema version tracking.
Timestamps are stored as UTC ISO-8601 text with microseconds so they sort
lexicographically; booleans are INTEGER 0/1; evidence and attachment lists
are JSON arrays.
"""

import aiosqlite
from casebook.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the case tables and indexes if they do not exist yet."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes, then record the schema version.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_cases (
                id TEXT PRIMARY KEY,
                case_id TEXT NOT NULL,
                guild_id TEXT NOT NULL,
                type TEXT NOT NULL,
                user_id TEXT NOT NULL,
                moderator_id TEXT NOT NULL,
                reason TEXT,
                duration INTEGER,
                expires_at TEXT,
                active INTEGER NOT NULL DEFAULT 1,
                closed INTEGER NOT NULL DEFAULT 0,
                closed_at TEXT,
                closed_by TEXT,
                close_reason TEXT,
                appealed INTEGER NOT NULL DEFAULT 0,
                appeal_reason TEXT,
                appealed_at TEXT,
                appeal_decision TEXT,
                evidence TEXT NOT NULL DEFAULT '[]',
                attachments TEXT NOT NULL DEFAULT '[]',
                notes TEXT,
                channel_id TEXT,
                message_id TEXT,
                mass_action_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS case_updates (
                id TEXT PRIMARY KEY,
                case_ref TEXT NOT NULL,
                updated_by TEXT NOT NULL,
                field TEXT NOT NULL,
                old_value TEXT,
                new_value TEXT,
                reason TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (case_ref) REFERENCES moderation_cases(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Create the indexes used by lookups, listings and statistics."""
        # Display IDs are unique across all guilds
        await db.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_moderation_cases_case_id ON moderation_cases(case_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_cases_guild_created ON moderation_cases(guild_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_cases_user ON moderation_cases(guild_id, user_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_cases_moderator ON moderation_cases(guild_id, moderator_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_case_updates_case ON case_updates(case_ref, created_at)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        """Update schema version tracking."""
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
