"""
Persistent storage for role persistence records.

Timestamps are stored as INTEGER unix seconds so expiry comparisons are
plain integer comparisons. ``roles`` is a JSON array of
``{"role_id": "...", "name": "..."}`` objects (ids as strings to keep
snowflakes exact in any JSON consumer).
"""

from __future__ import annotations

import json
from typing import Iterable, List, Optional, Sequence

import aiosqlite

from patrolcord.datatypes.role_persist_datatypes import (
    PersistRecord,
    RecordAuthor,
    SavedRole,
    from_unix,
    to_unix,
)
from patrolcord.util.logger import get_logger

logger = get_logger("role_persist_repo")

_COLUMNS = "id, guild_id, user_id, roles, created_by_id, created_by_name, created_at, reason, expiry"


def _encode_roles(roles: Iterable[SavedRole]) -> str:
    return json.dumps([{"role_id": str(role.role_id), "name": role.name} for role in roles])


def _decode_roles(raw: str) -> List[SavedRole]:
    return [SavedRole(role_id=int(item["role_id"]), name=str(item["name"])) for item in json.loads(raw)]


def _row_to_record(row: Sequence) -> PersistRecord:
    return PersistRecord(
        id=str(row[0]),
        guild_id=int(row[1]),
        user_id=int(row[2]),
        roles=_decode_roles(row[3]),
        created_by=RecordAuthor(user_id=int(row[4]), username=str(row[5])),
        created_at=from_unix(row[6]),  # type: ignore[arg-type]
        reason=row[7],
        expiry=from_unix(row[8]),
    )


class RolePersistRepo:
    """Low-level CRUD for the ``role_persist_records`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(conn: aiosqlite.Connection, record: PersistRecord) -> None:
        await conn.execute(
            f"INSERT INTO role_persist_records ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.guild_id,
                record.user_id,
                _encode_roles(record.roles),
                record.created_by.user_id,
                record.created_by.username,
                to_unix(record.created_at),
                record.reason,
                to_unix(record.expiry) if record.expiry is not None else None,
            ),
        )

    @staticmethod
    async def delete(conn: aiosqlite.Connection, record_id: str) -> bool:
        """Delete one record. Returns True if a row was removed."""
        cursor = await conn.execute("DELETE FROM role_persist_records WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

    @staticmethod
    async def delete_many(conn: aiosqlite.Connection, record_ids: Sequence[str]) -> int:
        """Delete every record in ``record_ids``; returns the number of rows removed."""
        if not record_ids:
            return 0
        placeholders = ", ".join("?" for _ in record_ids)
        cursor = await conn.execute(
            f"DELETE FROM role_persist_records WHERE id IN ({placeholders})",
            tuple(record_ids),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(
        conn: aiosqlite.Connection,
        guild_id: int,
        user_id: int,
        record_id: str,
    ) -> Optional[PersistRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM role_persist_records "
            "WHERE id = ? AND guild_id = ? AND user_id = ?",
            (record_id, guild_id, user_id),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    @staticmethod
    async def find_active_for_user(
        conn: aiosqlite.Connection,
        guild_id: int,
        user_id: int,
        now: int,
    ) -> List[PersistRecord]:
        """Records with no expiry or ``expiry > now`` (unix seconds), newest first."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM role_persist_records "
            "WHERE guild_id = ? AND user_id = ? AND (expiry IS NULL OR expiry > ?) "
            "ORDER BY created_at DESC, expiry DESC",
            (guild_id, user_id, now),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]

    @staticmethod
    async def find_active_for_guild(
        conn: aiosqlite.Connection,
        guild_id: int,
        now: int,
        limit: int,
    ) -> List[PersistRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM role_persist_records "
            "WHERE guild_id = ? AND (expiry IS NULL OR expiry > ?) "
            "ORDER BY created_at DESC LIMIT ?",
            (guild_id, now, limit),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]

    @staticmethod
    async def find_expired(
        conn: aiosqlite.Connection,
        now: int,
        limit: int,
    ) -> List[PersistRecord]:
        """Records with ``expiry <= now``, oldest expiry first, at most ``limit`` rows."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM role_persist_records "
            "WHERE expiry IS NOT NULL AND expiry <= ? "
            "ORDER BY expiry ASC LIMIT ?",
            (now, max(int(limit), 0)),
        )
        return [_row_to_record(row) for row in await cursor.fetchall()]


# Module-level singleton
role_persist_repo = RolePersistRepo()
