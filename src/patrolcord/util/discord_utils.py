"""
Helpers resolving Discord entities without raising on the "gone" cases.

Missing guilds and members are normal for background jobs (the bot was
kicked, the member left); callers get ``None`` and decide what that means.
"""

from __future__ import annotations

from typing import Optional

import discord

from patrolcord.util.logger import get_logger

logger = get_logger("discord_utils")


async def resolve_guild(bot: discord.Client, guild_id: int) -> Optional[discord.Guild]:
    """Return the cached guild, falling back to an API fetch; None if unreachable."""
    guild = bot.get_guild(guild_id)
    if guild is not None:
        return guild

    try:
        return await bot.fetch_guild(guild_id)
    except (discord.NotFound, discord.Forbidden):
        return None
    except discord.HTTPException as exc:
        logger.warning("[DISCORD UTILS] Could not fetch guild %s: %s", guild_id, exc)
        return None


async def fetch_member_or_none(guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
    """Return the member from cache or the API; None when they are not in the guild."""
    member = guild.get_member(user_id)
    if member is not None:
        return member

    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None


async def fetch_app_member(guild: discord.Guild, bot: discord.Client) -> Optional[discord.Member]:
    """Return the bot's own membership in ``guild``."""
    if guild.me is not None:
        return guild.me
    if bot.user is None:
        return None
    return await fetch_member_or_none(guild, bot.user.id)
