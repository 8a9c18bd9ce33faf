"""
Filters deciding whether the bot may add or remove a live guild role.

The bot never touches integration-managed roles or roles at or above its own
highest role, and never grants roles carrying moderation/administration
permissions through persistence.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import discord

# Permission flags that make a role unsafe to hand out automatically
RISKY_PERMISSIONS = (
    "administrator",
    "manage_guild",
    "manage_roles",
    "manage_channels",
    "manage_webhooks",
    "manage_messages",
    "manage_threads",
    "moderate_members",
    "mute_members",
    "deafen_members",
    "move_members",
    "kick_members",
    "ban_members",
    "view_audit_log",
    "manage_events",
    "manage_nicknames",
    "manage_emojis",
)


def has_risky_permissions(role: discord.Role) -> bool:
    permissions = role.permissions
    return any(getattr(permissions, name, False) for name in RISKY_PERMISSIONS)


def is_below(role: discord.Role, top_role: discord.Role) -> bool:
    """Strict hierarchy check: ``role`` sits below ``top_role``."""
    return role.position < top_role.position


def can_manage_role(role: discord.Role, app_member: discord.Member) -> bool:
    """The bot may add/remove ``role``: it is unmanaged and strictly below the bot's top role."""
    return not role.managed and is_below(role, app_member.top_role)


def can_manage_roles(app_member: Optional[discord.Member]) -> bool:
    return bool(app_member is not None and app_member.guild_permissions.manage_roles)


def member_role_ids(member: discord.Member) -> set[int]:
    return {role.id for role in member.roles}


def assignable_roles(
    guild: discord.Guild,
    role_ids: Iterable[int],
    member: discord.Member,
    app_member: discord.Member,
) -> List[discord.Role]:
    """Roles the bot should grant: existing, manageable, not risky, not already held."""
    held = member_role_ids(member)
    roles: List[discord.Role] = []
    for role_id in dict.fromkeys(role_ids):
        role = guild.get_role(role_id)
        if role is None or role.id in held:
            continue
        if can_manage_role(role, app_member) and not has_risky_permissions(role):
            roles.append(role)
    return roles


def removable_roles(
    guild: discord.Guild,
    role_ids: Iterable[int],
    member: discord.Member,
    app_member: discord.Member,
) -> List[discord.Role]:
    """Roles the bot should strip: existing, manageable and currently held."""
    held = member_role_ids(member)
    roles: List[discord.Role] = []
    for role_id in dict.fromkeys(role_ids):
        role = guild.get_role(role_id)
        if role is None or role.id not in held:
            continue
        if can_manage_role(role, app_member):
            roles.append(role)
    return roles
