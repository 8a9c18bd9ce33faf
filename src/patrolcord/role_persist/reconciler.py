"""
Restores persisted roles when a member's state changes.

Runs on every member update in every guild, so the gate is a cheap ordered
list of named predicates over a :class:`MemberUpdateContext`; only events
that survive all of them touch the database.

Restoration is delayed: a fixed settle delay after (re)joins so other join
automations land first, or an escalating backoff from the
:class:`CooldownTracker` when a long-standing member keeps losing a
persisted role.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence, Tuple

import discord

from patrolcord.datatypes.role_persist_datatypes import PersistRecord, utc_now
from patrolcord.role_persist.conflict_resolver import collect_role_ids
from patrolcord.role_persist.cooldown_tracker import CooldownTracker
from patrolcord.role_persist.role_eligibility import assignable_roles, can_manage_roles, member_role_ids
from patrolcord.role_persist.store import RolePersistStore
from patrolcord.util.discord_utils import fetch_app_member
from patrolcord.util.logger import get_logger

logger = get_logger("role_persist_reconciler")

SCREENING_FEATURE = "MEMBER_VERIFICATION_GATE_ENABLED"
ONBOARDING_FEATURES = ("COMMUNITY", "GUILD_ONBOARDING")

DEFAULT_JOIN_SETTLE_DELAY_MS = 800.0
DEFAULT_RECENT_JOIN_WINDOW_SECONDS = 60.0


def _completed_onboarding(member: Optional[discord.Member]) -> bool:
    flags = getattr(member, "flags", None)
    return bool(getattr(flags, "completed_onboarding", False))


@dataclass(frozen=True)
class MemberUpdateContext:
    """Facts about one member update that the gate predicates look at."""
    screening_enabled: bool
    onboarding_enabled: bool
    pending: bool
    onboarding_complete: bool
    just_completed_screening: bool
    just_completed_onboarding: bool
    recently_joined: bool
    has_previous_snapshot: bool
    roles_changed: bool

    @property
    def gated(self) -> bool:
        return self.screening_enabled or self.onboarding_enabled

    @property
    def completion_transition(self) -> bool:
        return self.just_completed_screening or self.just_completed_onboarding

    @property
    def gates_complete(self) -> bool:
        screening_done = not self.screening_enabled or not self.pending
        onboarding_done = not self.onboarding_enabled or self.onboarding_complete
        return screening_done and onboarding_done

    @property
    def join_related(self) -> bool:
        return self.completion_transition or self.recently_joined

    @classmethod
    def from_members(
        cls,
        before: Optional[discord.Member],
        after: discord.Member,
        now: datetime,
        recent_join_window_seconds: float = DEFAULT_RECENT_JOIN_WINDOW_SECONDS,
    ) -> "MemberUpdateContext":
        """Build the context; ``before`` is None for joins and uncached members."""
        features = set(after.guild.features)
        pending = bool(after.pending)

        joined_at = after.joined_at
        recently_joined = False
        if joined_at is not None:
            elapsed = (now - joined_at).total_seconds()
            recently_joined = 0 <= elapsed <= recent_join_window_seconds

        roles_changed = False
        if before is not None:
            roles_changed = member_role_ids(before) != member_role_ids(after)

        return cls(
            screening_enabled=SCREENING_FEATURE in features,
            onboarding_enabled=all(feature in features for feature in ONBOARDING_FEATURES),
            pending=pending,
            onboarding_complete=_completed_onboarding(after),
            just_completed_screening=bool(before is not None and before.pending and not pending),
            just_completed_onboarding=_completed_onboarding(after) and not _completed_onboarding(before),
            recently_joined=recently_joined,
            has_previous_snapshot=before is not None,
            roles_changed=roles_changed,
        )


# ---------------------------------------------------------------------------
# Gate predicates: True means "do nothing for this event"
# ---------------------------------------------------------------------------

def screening_gate_blocks(ctx: MemberUpdateContext) -> bool:
    """Screening/onboarding guilds only act on the transition that completes every gate."""
    return ctx.gated and not (ctx.completion_transition and ctx.gates_complete)


def still_pending(ctx: MemberUpdateContext) -> bool:
    return ctx.pending and not ctx.completion_transition


def is_noise_update(ctx: MemberUpdateContext) -> bool:
    """A long-standing member's update that did not change their roles."""
    return (
        not ctx.recently_joined
        and not ctx.completion_transition
        and ctx.has_previous_snapshot
        and not ctx.roles_changed
    )


GATE_PREDICATES: Tuple[Tuple[str, Callable[[MemberUpdateContext], bool]], ...] = (
    ("screening_gate", screening_gate_blocks),
    ("pending", still_pending),
    ("no_role_change", is_noise_update),
)


def skip_reason(ctx: MemberUpdateContext) -> Optional[str]:
    """Name of the first predicate that rejects the event, or None to reconcile."""
    for name, predicate in GATE_PREDICATES:
        if predicate(ctx):
            return name
    return None


def restoration_reason(join_related: bool, records: Sequence[PersistRecord]) -> str:
    cause = "user (re)joined" if join_related else "a persistent role was manually removed"
    plural = "s" if len(records) > 1 else ""
    record_ids = ", ".join(record.id for record in records)
    return f"Role persistence restoration; {cause}. Record{plural}: {record_ids}."


class MembershipReconciler:
    """
    Re-applies persisted roles on member join/update events.

    Args:
        bot: Client used to resolve the bot's own membership.
        store: Record store (``find_active_for_user``).
        cooldowns: Backoff bookkeeping for repeated restorations.
        join_settle_delay_ms: Fixed wait before restoring after a (re)join.
        recent_join_window_seconds: Members who joined this recently count as fresh joins.
        clock: Returns the current aware UTC time.
        sleep: Awaitable sleep taking seconds (``asyncio.sleep``).
    """

    def __init__(
        self,
        bot: discord.Client,
        store: RolePersistStore,
        cooldowns: CooldownTracker,
        *,
        join_settle_delay_ms: float = DEFAULT_JOIN_SETTLE_DELAY_MS,
        recent_join_window_seconds: float = DEFAULT_RECENT_JOIN_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.bot = bot
        self.store = store
        self.cooldowns = cooldowns
        self.join_settle_delay_ms = join_settle_delay_ms
        self.recent_join_window_seconds = recent_join_window_seconds
        self._clock = clock
        self._sleep = sleep

    async def handle_member_join(self, member: discord.Member) -> bool:
        return await self.handle_member_update(None, member)

    async def handle_member_update(self, before: Optional[discord.Member], after: discord.Member) -> bool:
        """
        Restore persisted roles if this event calls for it.

        Returns:
            True if a role-add call was made and succeeded. Never raises
            (except on cancellation); failures are logged.
        """
        try:
            return await self._reconcile(before, after)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "[ROLE PERSIST RECONCILER] Failed to persist roles on member update for %s in guild %s",
                getattr(after, "id", "?"), getattr(getattr(after, "guild", None), "id", "?"),
            )
            return False

    async def _reconcile(self, before: Optional[discord.Member], after: discord.Member) -> bool:
        now = self._clock()
        ctx = MemberUpdateContext.from_members(before, after, now, self.recent_join_window_seconds)
        if skip_reason(ctx) is not None:
            return False

        guild = after.guild
        records = await self.store.find_active_for_user(guild.id, after.id, now)
        if not records:
            return False

        app_member = await fetch_app_member(guild, self.bot)
        if not can_manage_roles(app_member):
            logger.debug("[ROLE PERSIST RECONCILER] Missing Manage Roles in guild %s", guild.id)
            return False

        roles = assignable_roles(guild, sorted(collect_role_ids(records)), after, app_member)  # type: ignore[arg-type]
        if not roles:
            return False

        if ctx.join_related:
            delay_ms = self.join_settle_delay_ms
        else:
            delay_ms = self.cooldowns.next_delay_ms(after.id)

        if self.cooldowns.has_in_flight(after.id):
            logger.debug("[ROLE PERSIST RECONCILER] Overlapping restoration for %s in guild %s", after.id, guild.id)

        task = asyncio.current_task()
        self.cooldowns.track_operation(after.id, task)
        try:
            if delay_ms > 0:
                await self._sleep(delay_ms / 1000)

            # The member may have regained roles while we waited
            held = member_role_ids(after)
            roles = [role for role in roles if role.id not in held]
            if not roles:
                return False

            await after.add_roles(*roles, reason=restoration_reason(ctx.join_related, records))
        finally:
            self.cooldowns.clear_operation(after.id, task)

        logger.info(
            "[ROLE PERSIST RECONCILER] Restored %d role(s) to %s in guild %s (delay=%.0fms)",
            len(roles), after.id, guild.id, delay_ms,
        )
        return True
