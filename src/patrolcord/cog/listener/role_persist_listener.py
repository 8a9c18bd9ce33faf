"""Gateway listener restoring persisted roles.

Forwards member join and member update events to the
:class:`MembershipReconciler`. The reconciler swallows and logs its own
failures, so nothing raised here can tear down the gateway connection.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord.ext import commands

from patrolcord.configuration.app_configuration import app_config
from patrolcord.role_persist.cooldown_tracker import CooldownTracker
from patrolcord.role_persist.reconciler import MembershipReconciler
from patrolcord.role_persist.store import role_persist_store
from patrolcord.util.logger import get_logger

logger = get_logger("role_persist_listener")


def build_reconciler(bot: discord.Bot) -> MembershipReconciler:
    """Reconciler wired to the shared store and the configured timings."""
    settings = app_config.role_persist
    return MembershipReconciler(
        bot,
        role_persist_store,
        CooldownTracker(settings.cooldown_ttl_seconds, settings.max_backoff_ms),
        join_settle_delay_ms=settings.join_settle_delay_ms,
        recent_join_window_seconds=settings.recent_join_window_seconds,
    )


class RolePersistListenerCog(commands.Cog):
    """Feeds member events into the role persistence reconciler."""

    def __init__(self, bot: discord.Bot, reconciler: Optional[MembershipReconciler] = None) -> None:
        self.bot = bot
        self.reconciler = reconciler or build_reconciler(bot)
        logger.info("[ROLE PERSIST LISTENER] Role persist listener cog loaded")

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        await self.reconciler.handle_member_join(member)

    @commands.Cog.listener(name="on_member_update")
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        await self.reconciler.handle_member_update(before, after)


def setup(bot: discord.Bot) -> None:
    bot.add_cog(RolePersistListenerCog(bot))
