"""Background scheduler cog for Patrolcord.

RolePersistSweepCog runs the expiry sweeper on a fixed interval. Errors are
logged and the loop keeps going; expired records that could not be processed
are picked up again by the next run.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import discord
from discord.ext import commands, tasks

from patrolcord.configuration.app_configuration import app_config
from patrolcord.role_persist.expiry_sweeper import ExpirySweeper, SweepReport
from patrolcord.role_persist.store import role_persist_store
from patrolcord.util.logger import get_logger

logger = get_logger("scheduler_cog")


class RolePersistSweepCog(commands.Cog):
    """
    Periodically removes the roles of expired role persistence records.

    Access via:
        bot.cogs["RolePersistSweepCog"]
    """

    def __init__(
        self,
        bot: discord.Bot,
        sweeper: Optional[ExpirySweeper] = None,
        interval_seconds: Optional[float] = None,
    ) -> None:
        settings = app_config.role_persist
        self.bot = bot
        self.sweeper = sweeper or ExpirySweeper(
            bot,
            role_persist_store,
            batch_limit=settings.sweep_batch_limit,
        )
        self.interval_seconds = interval_seconds or settings.sweep_interval_seconds

    # ------------------------------------------------------------------
    # Cog lifecycle
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        self._sweep_task.change_interval(seconds=self.interval_seconds)
        if not self._sweep_task.is_running():
            self._sweep_task.start()
            logger.info("[ROLE PERSIST SWEEP] Started (interval=%.1fs)", self.interval_seconds)

    def cog_unload(self) -> None:
        self._sweep_task.cancel()
        logger.info("[ROLE PERSIST SWEEP] Stopped")

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def run_sweep(self) -> Optional[SweepReport]:
        """Run one sweep now; returns None if it failed unexpectedly."""
        try:
            report = await self.sweeper.sweep()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[ROLE PERSIST SWEEP] Sweep failed")
            return None

        if report.scanned:
            logger.info(
                "[ROLE PERSIST SWEEP] %d expired, %d handled, %d deleted, %d failed, %d guild(s) skipped",
                report.scanned,
                len(report.handled_ids),
                report.deleted,
                len(report.failures),
                len(report.skipped_guilds),
            )
        return report

    @tasks.loop(seconds=600)  # real interval set in on_ready
    async def _sweep_task(self) -> None:
        await self.run_sweep()

    @_sweep_task.before_loop
    async def _before_sweep(self) -> None:
        await self.bot.wait_until_ready()


def setup(bot: discord.Bot) -> None:
    bot.add_cog(RolePersistSweepCog(bot))
