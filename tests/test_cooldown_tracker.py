import asyncio

import pytest

from patrolcord.role_persist.cooldown_tracker import CooldownTracker, compute_backoff_ms


class _Clock:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


def test_compute_backoff_formula() -> None:
    assert compute_backoff_ms(0, 0.5) == 0
    assert compute_backoff_ms(1, 0.5) == 1000
    assert compute_backoff_ms(2, 0.5) == 2000
    assert compute_backoff_ms(10, 0.5) == 10000
    assert compute_backoff_ms(3, 0.9) == pytest.approx(3 * 1000 * 1.4)
    assert compute_backoff_ms(50, 0.7) == 20000
    assert compute_backoff_ms(50, 0.7, cap_ms=5000) == 5000


def test_delays_escalate_within_window() -> None:
    tracker = CooldownTracker(60, 20000, rng=lambda: 0.5, clock=_Clock())

    delays = [tracker.next_delay_ms(42) for _ in range(4)]

    assert delays == [0, 1000, 2000, 3000]
    assert tracker.get(42).assignment_count == 4


def test_eleventh_restoration_waits_ten_seconds() -> None:
    tracker = CooldownTracker(60, 20000, rng=lambda: 0.5, clock=_Clock())

    delays = [tracker.next_delay_ms(42) for _ in range(11)]

    assert delays[-1] == 10000


def test_delay_is_capped() -> None:
    tracker = CooldownTracker(60, 20000, rng=lambda: 0.99, clock=_Clock())

    delays = [tracker.next_delay_ms(7) for _ in range(40)]

    assert max(delays) == 20000


def test_count_resets_after_quiet_window() -> None:
    clock = _Clock()
    tracker = CooldownTracker(60, 20000, rng=lambda: 0.5, clock=clock)

    tracker.next_delay_ms(1)
    tracker.next_delay_ms(1)
    clock.value = 61

    assert tracker.get(1) is None
    assert tracker.next_delay_ms(1) == 0


def test_members_are_tracked_independently() -> None:
    tracker = CooldownTracker(60, 20000, rng=lambda: 0.5, clock=_Clock())

    tracker.next_delay_ms(1)
    tracker.next_delay_ms(1)

    assert tracker.next_delay_ms(2) == 0


@pytest.mark.asyncio
async def test_track_operation_marks_in_flight() -> None:
    tracker = CooldownTracker(60, 20000, clock=_Clock())
    blocker = asyncio.Event()
    task = asyncio.create_task(blocker.wait())

    tracker.track_operation(5, task)
    assert tracker.has_in_flight(5) is True

    blocker.set()
    await task
    assert tracker.has_in_flight(5) is False

    tracker.clear_operation(5, task)
    assert tracker.get(5).current_op is None


@pytest.mark.asyncio
async def test_clear_operation_ignores_stale_task() -> None:
    tracker = CooldownTracker(60, 20000, clock=_Clock())
    blocker = asyncio.Event()
    older = asyncio.create_task(blocker.wait())
    newer = asyncio.create_task(blocker.wait())

    tracker.track_operation(5, older)
    tracker.track_operation(5, newer)
    tracker.clear_operation(5, older)
    assert tracker.get(5).current_op is newer

    tracker.clear_operation(5, newer)
    assert tracker.get(5).current_op is None

    blocker.set()
    await asyncio.gather(older, newer)


def test_idle_members_are_evicted_on_later_writes() -> None:
    clock = _Clock()
    tracker = CooldownTracker(60, 20000, rng=lambda: 0.5, clock=clock)

    for user_id in range(500):
        tracker.next_delay_ms(user_id)

    clock.value = 3600
    tracker.next_delay_ms(1000)
    tracker.next_delay_ms(1001)

    assert len(tracker._entries._entries) <= 2
