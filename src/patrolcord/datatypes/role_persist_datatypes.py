"""
Role persistence records.

A record states that a set of roles must be force-applied to one member of
one guild, optionally until ``expiry``. Expiry is evaluated lazily by the
consumers: a stored record may already be past its expiry when read.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from patrolcord.role_persist.errors import InvalidRecordError

MIN_ROLES_PER_RECORD = 1
MAX_ROLES_PER_RECORD = 6


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    """Return a fresh 24-character hexadecimal record id."""
    return secrets.token_hex(12)


def to_unix(value: datetime) -> int:
    """Convert an aware datetime to unix seconds (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_unix(value: int | None) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass(frozen=True)
class SavedRole:
    """A persisted role; ``name`` is a snapshot kept for display after deletion."""
    role_id: int
    name: str


@dataclass(frozen=True)
class RecordAuthor:
    user_id: int
    username: str


@dataclass
class PersistRecord:
    """
    One role persistence record.

    Attributes:
        guild_id (int): Guild the record applies to.
        user_id (int): Member the roles are pinned to.
        roles (List[SavedRole]): 1-6 roles to keep applied.
        created_by (RecordAuthor): Administrator who created the record.
        created_at (datetime): Creation time (UTC).
        reason (str | None): Optional free-text reason.
        expiry (datetime | None): When the record stops applying; None = never.
        id (str): Opaque unique identifier.
    """
    guild_id: int
    user_id: int
    roles: List[SavedRole]
    created_by: RecordAuthor
    created_at: datetime = field(default_factory=utc_now)
    reason: Optional[str] = None
    expiry: Optional[datetime] = None
    id: str = field(default_factory=new_record_id)

    @classmethod
    def create(
        cls,
        guild_id: int,
        user_id: int,
        roles: Iterable[SavedRole],
        created_by: RecordAuthor,
        *,
        reason: Optional[str] = None,
        expiry: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> "PersistRecord":
        """Build a new record, enforcing the role count invariant.

        Raises:
            InvalidRecordError: If fewer than 1 or more than 6 distinct roles are given.
        """
        unique_roles: List[SavedRole] = []
        seen: set[int] = set()
        for role in roles:
            if role.role_id not in seen:
                seen.add(role.role_id)
                unique_roles.append(role)

        if not MIN_ROLES_PER_RECORD <= len(unique_roles) <= MAX_ROLES_PER_RECORD:
            raise InvalidRecordError(
                f"Role selection requires {MIN_ROLES_PER_RECORD}-{MAX_ROLES_PER_RECORD} "
                f"items (received: {len(unique_roles)})."
            )

        return cls(
            guild_id=guild_id,
            user_id=user_id,
            roles=unique_roles,
            created_by=created_by,
            created_at=created_at or utc_now(),
            reason=reason or None,
            expiry=expiry,
        )

    @property
    def role_ids(self) -> List[int]:
        return [role.role_id for role in self.roles]

    def is_active(self, now: datetime) -> bool:
        """True when the record has no expiry or expires after ``now``."""
        return self.expiry is None or self.expiry > now

    @property
    def summary_text(self) -> str:
        """Short one-line label used for autocomplete choices (max 100 chars)."""
        saved_on = self.created_at.strftime("%b %d, %y")
        if self.expiry is None:
            text = f"Saved by @{self.created_by.username} on {saved_on} – No expiration date set"
        else:
            expires = self.expiry.strftime("%b %d, %y at %H:%M:%S UTC")
            text = f"Saved by @{self.created_by.username} on {saved_on} – Expires {expires}"
        return text[:100]
