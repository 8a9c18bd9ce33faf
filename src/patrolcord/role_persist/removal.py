"""
The single code path that strips persisted roles from a member.

Both the expiry sweeper and ``/role-persist remove`` go through
:func:`remove_unprotected_roles`, so a role listed by another active record
for the same member is never taken away.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Protocol, Sequence

import discord

from patrolcord.datatypes.role_persist_datatypes import PersistRecord
from patrolcord.role_persist.conflict_resolver import resolve_removal
from patrolcord.role_persist.role_eligibility import removable_roles


class ActiveRecordSource(Protocol):
    async def find_active_for_user(self, guild_id: int, user_id: int, now: datetime) -> List[PersistRecord]: ...


def format_record_ids(records: Sequence[PersistRecord]) -> tuple[str, str]:
    """Return the plural suffix and the comma separated ids of ``records``."""
    plural = "s" if len(records) > 1 else ""
    return plural, ", ".join(record.id for record in records)


async def remove_unprotected_roles(
    store: ActiveRecordSource,
    member: discord.Member,
    app_member: discord.Member,
    records: Sequence[PersistRecord],
    now: datetime,
    reason: str,
) -> List[discord.Role]:
    """
    Remove the roles of ``records`` that no other active record protects.

    Active records are fetched right before the removal call to keep the
    window between "read as expired" and "role stripped" short. Only roles the
    member holds and the bot is allowed to manage are touched; nothing is
    called when that leaves no role.

    Returns:
        The roles passed to ``remove_roles`` (empty when no call was made).

    Raises:
        discord.HTTPException: If the removal call itself fails.
    """
    active = await store.find_active_for_user(member.guild.id, member.id, now)
    plan = resolve_removal(records, active)
    if not plan.requires_removal:
        return []

    roles = removable_roles(member.guild, sorted(plan.removable_role_ids), member, app_member)
    if not roles:
        return []

    await member.remove_roles(*roles, reason=reason)
    return roles
