"""
Time-boxed key/value map.

Each entry lives ``ttl_seconds`` after it was last written or read; expired
entries are dropped lazily on access and in bulk by ``purge_expired``, which
``set`` also runs at most once per TTL window so write-only keys cannot pile up.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ExpiringMap(Generic[K, V]):
    """
    TTL map with touch-on-read semantics.

    Args:
        ttl_seconds: Inactivity window after which an entry disappears.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[K, Tuple[float, V]] = {}
        self._next_purge = clock() + self._ttl_seconds

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def _is_live(self, deadline: float, now: float) -> bool:
        return now < deadline

    def get(self, key: K) -> Optional[V]:
        """Return the value for ``key`` and extend its lifetime, or None if absent/expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        deadline, value = entry
        if not self._is_live(deadline, now):
            del self._entries[key]
            return None

        self._entries[key] = (now + self._ttl_seconds, value)
        return value

    def set(self, key: K, value: V) -> None:
        """Store ``value``; at most once per TTL window, stale entries are swept first."""
        now = self._clock()
        if now >= self._next_purge:
            self.purge_expired()
        self._entries[key] = (now + self._ttl_seconds, value)

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock()
        self._next_purge = now + self._ttl_seconds
        stale = [key for key, (deadline, _) in self._entries.items() if not self._is_live(deadline, now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and self._is_live(entry[0], self._clock())

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._entries)
