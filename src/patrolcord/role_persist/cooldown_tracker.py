"""
Per-member restoration backoff.

Members whose persisted roles keep getting stripped (another bot fighting
ours, a moderator retrying) get an escalating, randomised delay before each
restoration. The bookkeeping lives in an :class:`ExpiringMap`, so a member
left alone for one TTL window starts from zero again.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from patrolcord.util.expiring_map import ExpiringMap

DEFAULT_COOLDOWN_TTL_SECONDS = 60.0
DEFAULT_MAX_BACKOFF_MS = 20_000.0
BACKOFF_STEP_MS = 1000.0
RANDOM_FACTOR_CEILING = 0.7


def compute_backoff_ms(assignment_count: int, rand: float, cap_ms: float = DEFAULT_MAX_BACKOFF_MS) -> float:
    """``min(count * 1000 * (2 * min(rand, 0.7)), cap)`` in milliseconds."""
    factor = 2 * min(rand, RANDOM_FACTOR_CEILING)
    return min(assignment_count * BACKOFF_STEP_MS * factor, cap_ms)


@dataclass
class CooldownEntry:
    last_reassigned: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    assignment_count: int = 0
    current_op: Optional[asyncio.Task] = None


class CooldownTracker:
    """Tracks recent restorations per user id and hands out backoff delays."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_COOLDOWN_TTL_SECONDS,
        max_backoff_ms: float = DEFAULT_MAX_BACKOFF_MS,
        *,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: ExpiringMap[int, CooldownEntry] = ExpiringMap(ttl_seconds, clock)
        self.max_backoff_ms = max_backoff_ms
        self._rng = rng

    def get(self, user_id: int) -> Optional[CooldownEntry]:
        return self._entries.get(user_id)

    def next_delay_ms(self, user_id: int) -> float:
        """
        Return the delay for this restoration and record it.

        The delay is computed from the count *before* this attempt, so the
        first restoration inside a window is immediate.
        """
        entry = self._entries.get(user_id) or CooldownEntry()
        delay = compute_backoff_ms(entry.assignment_count, self._rng(), self.max_backoff_ms)

        entry.assignment_count += 1
        entry.last_reassigned = datetime.now(timezone.utc)
        self._entries.set(user_id, entry)
        return delay

    def track_operation(self, user_id: int, task: Optional[asyncio.Task]) -> None:
        """Remember the in-flight restoration task."""
        entry = self._entries.get(user_id)
        if entry is None:
            if task is None:
                return
            entry = CooldownEntry()
        entry.current_op = task
        self._entries.set(user_id, entry)

    def clear_operation(self, user_id: int, task: Optional[asyncio.Task]) -> None:
        """Forget the in-flight handle, unless a newer restoration has replaced it."""
        entry = self._entries.get(user_id)
        if entry is None or entry.current_op is not task:
            return
        entry.current_op = None
        self._entries.set(user_id, entry)

    def has_in_flight(self, user_id: int) -> bool:
        entry = self._entries.get(user_id)
        return bool(entry and entry.current_op is not None and not entry.current_op.done())

