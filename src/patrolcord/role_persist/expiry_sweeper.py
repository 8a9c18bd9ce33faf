"""
Periodic sweep of expired role persistence records.

Each sweep takes a bounded batch of expired records (oldest expiry first),
strips the roles no other active record protects, and deletes the records
that were fully processed. Records are left in place, to be retried by the
next sweep, when their guild is unreachable, the bot lacks Manage Roles
there, or the removal call failed.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

import discord

from patrolcord.datatypes.role_persist_datatypes import PersistRecord, utc_now
from patrolcord.role_persist.removal import format_record_ids, remove_unprotected_roles
from patrolcord.role_persist.role_eligibility import can_manage_roles
from patrolcord.role_persist.store import DEFAULT_EXPIRED_BATCH_LIMIT, RolePersistStore
from patrolcord.util.discord_utils import fetch_app_member, fetch_member_or_none, resolve_guild
from patrolcord.util.logger import get_logger

logger = get_logger("role_persist_sweeper")

T = TypeVar("T")


def group_by(records: Iterable[T], key: Callable[[T], int]) -> Dict[int, List[T]]:
    """Group preserving first-seen order of keys and of records within a key."""
    grouped: Dict[int, List[T]] = defaultdict(list)
    for record in records:
        grouped[key(record)].append(record)
    return dict(grouped)


@dataclass
class SweepFailure:
    guild_id: int
    user_id: int
    record_ids: List[str]
    error: BaseException


@dataclass
class SweepReport:
    """What one sweep did; returned for logging and tests."""
    scanned: int = 0
    handled_ids: List[str] = field(default_factory=list)
    deleted: int = 0
    skipped_guilds: List[int] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)
    removed_roles: Dict[int, List[int]] = field(default_factory=dict)


class ExpirySweeper:
    """
    Removes the roles of expired role persistence records.

    Args:
        bot: Client used to resolve guilds and members.
        store: Record store (``find_expired``, ``find_active_for_user``, ``delete_many``).
        batch_limit: Maximum records handled per sweep.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        bot: discord.Client,
        store: RolePersistStore,
        *,
        batch_limit: int = DEFAULT_EXPIRED_BATCH_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.bot = bot
        self.store = store
        self.batch_limit = batch_limit
        self._clock = clock

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one sweep. Never raises (except on cancellation); failures are logged."""
        report = SweepReport()
        try:
            await self._sweep(now or self._clock(), report)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[ROLE PERSIST SWEEPER] Sweep aborted")
        return report

    async def _sweep(self, now: datetime, report: SweepReport) -> None:
        expired = await self.store.find_expired(now, self.batch_limit)
        report.scanned = len(expired)
        if not expired:
            return

        for guild_id, guild_records in group_by(expired, lambda r: r.guild_id).items():
            try:
                await self._process_guild(guild_id, guild_records, now, report)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[ROLE PERSIST SWEEPER] Failed to process guild %s", guild_id)
                report.skipped_guilds.append(guild_id)

        if report.failures:
            logger.error(
                "[ROLE PERSIST SWEEPER] Failed to remove roles for %d member(s): %s",
                len(report.failures),
                "; ".join(
                    f"guild={f.guild_id} user={f.user_id} records={','.join(f.record_ids)} error={f.error!r}"
                    for f in report.failures
                ),
            )

        if report.handled_ids:
            report.deleted = await self.store.delete_many(report.handled_ids)
            logger.debug(
                "[ROLE PERSIST SWEEPER] Processed %d expired record(s), deleted %d",
                len(report.handled_ids), report.deleted,
            )

    async def _process_guild(
        self,
        guild_id: int,
        records: List[PersistRecord],
        now: datetime,
        report: SweepReport,
    ) -> None:
        guild = await resolve_guild(self.bot, guild_id)
        if guild is None:
            logger.warning("[ROLE PERSIST SWEEPER] Guild %s unreachable; keeping %d record(s)", guild_id, len(records))
            report.skipped_guilds.append(guild_id)
            return

        app_member = await fetch_app_member(guild, self.bot)
        if app_member is None or not can_manage_roles(app_member):
            logger.debug("[ROLE PERSIST SWEEPER] Missing Manage Roles in guild %s; skipping", guild_id)
            report.skipped_guilds.append(guild_id)
            return

        for user_id, user_records in group_by(records, lambda r: r.user_id).items():
            record_ids = [record.id for record in user_records]
            try:
                removed = await self._process_user(guild, app_member, user_id, user_records, now)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                report.failures.append(SweepFailure(guild_id, user_id, record_ids, exc))
                continue

            report.handled_ids.extend(record_ids)
            if removed:
                report.removed_roles[user_id] = [role.id for role in removed]

    async def _process_user(
        self,
        guild: discord.Guild,
        app_member: discord.Member,
        user_id: int,
        records: List[PersistRecord],
        now: datetime,
    ) -> List[discord.Role]:
        member = await fetch_member_or_none(guild, user_id)
        if member is None:
            # Nothing live to reconcile; the records are done
            return []

        plural, record_ids = format_record_ids(records)
        return await remove_unprotected_roles(
            self.store,
            member,
            app_member,
            records,
            now,
            reason=f"Role persistence record{plural} expired; record{plural}: {record_ids}.",
        )
