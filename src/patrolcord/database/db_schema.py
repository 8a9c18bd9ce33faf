"""
Database schema initialization and version tracking.
"""

import aiosqlite
from patrolcord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables and indexes Patrolcord needs."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        The caller owns the transaction (commit happens on its exit).
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Timestamps are unix seconds; roles is a JSON array of {role_id, name}
        await db.execute("""
            CREATE TABLE IF NOT EXISTS role_persist_records (
                id TEXT PRIMARY KEY,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                roles TEXT NOT NULL,
                created_by_id INTEGER NOT NULL,
                created_by_name TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                reason TEXT,
                expiry INTEGER
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
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_role_persist_member "
            "ON role_persist_records(guild_id, user_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_role_persist_expiry "
            "ON role_persist_records(expiry)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
