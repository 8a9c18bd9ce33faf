"""
Async facade over the role persistence table.

The sweeper, reconciler and commands depend on this class rather than on
the repository so tests can hand them an in-memory fake with the same
methods.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from patrolcord.database.db_connection import ConnectionManager, db_connection
from patrolcord.datatypes.role_persist_datatypes import PersistRecord, to_unix
from patrolcord.repositories.role_persist_repo import role_persist_repo
from patrolcord.util.logger import get_logger

logger = get_logger("role_persist_store")

DEFAULT_EXPIRED_BATCH_LIMIT = 200
DEFAULT_LIST_LIMIT = 25


class RolePersistStore:
    """Reads go through ``read()``, writes through ``transaction()``."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self.connection = connection

    async def create(self, record: PersistRecord) -> PersistRecord:
        async with self.connection.transaction() as conn:
            await role_persist_repo.insert(conn, record)
        logger.debug(
            "[ROLE PERSIST STORE] Created record %s for user %s in guild %s",
            record.id, record.user_id, record.guild_id,
        )
        return record

    async def get(self, guild_id: int, user_id: int, record_id: str) -> Optional[PersistRecord]:
        async with self.connection.read() as conn:
            return await role_persist_repo.get(conn, guild_id, user_id, record_id)

    async def delete(self, record_id: str) -> bool:
        async with self.connection.transaction() as conn:
            return await role_persist_repo.delete(conn, record_id)

    async def delete_many(self, record_ids: Sequence[str]) -> int:
        """Remove records by id in one statement; an empty list is a no-op."""
        if not record_ids:
            return 0
        async with self.connection.transaction() as conn:
            return await role_persist_repo.delete_many(conn, list(record_ids))

    async def find_active_for_user(self, guild_id: int, user_id: int, now: datetime) -> List[PersistRecord]:
        async with self.connection.read() as conn:
            return await role_persist_repo.find_active_for_user(conn, guild_id, user_id, to_unix(now))

    async def find_expired(self, now: datetime, limit: int = DEFAULT_EXPIRED_BATCH_LIMIT) -> List[PersistRecord]:
        async with self.connection.read() as conn:
            return await role_persist_repo.find_expired(conn, to_unix(now), limit)

    async def list_active(
        self,
        guild_id: int,
        now: datetime,
        user_id: Optional[int] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[PersistRecord]:
        """Active records of a guild, optionally narrowed to one member."""
        if user_id is not None:
            records = await self.find_active_for_user(guild_id, user_id, now)
            return records[:limit]
        async with self.connection.read() as conn:
            return await role_persist_repo.find_active_for_guild(conn, guild_id, to_unix(now), limit)


# Shared store bound to the global connection
role_persist_store = RolePersistStore()
