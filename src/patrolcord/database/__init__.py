"""
Database package for Patrolcord.

- **db_connection.py**: Single long-lived aiosqlite connection in WAL mode,
  lock-serialised write transactions.
- **db_schema.py**: Table/index creation and schema version tracking.

Public API:
    - db_connection: Global ConnectionManager instance
    - initialize_database / shutdown_database: startup and shutdown hooks
"""

from __future__ import annotations

from pathlib import Path

from patrolcord.database.db_connection import ConnectionManager, db_connection
from patrolcord.database.db_schema import SchemaManager


async def initialize_database(path: Path, manager: ConnectionManager = db_connection) -> None:
    """Open the connection and create the schema. Call once at startup."""
    await manager.open(path)
    async with manager.transaction() as conn:
        await SchemaManager.initialize_schema(conn)


async def shutdown_database(manager: ConnectionManager = db_connection) -> None:
    await manager.close()
