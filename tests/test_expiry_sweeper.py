from datetime import datetime, timedelta, timezone

import pytest

from patrolcord.role_persist.expiry_sweeper import ExpirySweeper, group_by

from role_persist_fakes import FakeBot, FakeGuild, FakeRole, FakeStore, http_error, make_record

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
PAST = NOW - timedelta(minutes=5)


def _guild(guild_id: int = 1) -> FakeGuild:
    guild = FakeGuild(
        guild_id,
        roles=[
            FakeRole(100, position=5),
            FakeRole(200, position=6),
            FakeRole(300, position=7, managed=True),
            FakeRole(400, position=80),
        ],
    )
    guild.add_bot(position=50)
    return guild


def _sweeper(bot: FakeBot, store: FakeStore, **kwargs) -> ExpirySweeper:
    return ExpirySweeper(bot, store, clock=lambda: NOW, **kwargs)  # type: ignore[arg-type]


def test_group_by_keeps_first_seen_order() -> None:
    assert group_by([3, 1, 4, 1, 5], lambda n: n % 2) == {1: [3, 1, 1, 5], 0: [4]}


@pytest.mark.asyncio
async def test_expired_roles_removed_and_record_deleted() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[100, 200])
    record = make_record(1, 10, [100, 200], expiry=PAST)
    store = FakeStore([record])

    report = await _sweeper(FakeBot(guild), store).sweep()

    assert member.removed == [([100, 200], f"Role persistence record expired; record: {record.id}.")]
    assert report.deleted == 1
    assert store.records == {}
    assert report.removed_roles == {10: [100, 200]}


@pytest.mark.asyncio
async def test_role_shared_with_active_record_is_kept() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[100, 200])
    expired = make_record(1, 10, [100, 200], expiry=PAST)
    active = make_record(1, 10, [200], expiry=NOW + timedelta(days=1))
    store = FakeStore([expired, active])

    await _sweeper(FakeBot(guild), store).sweep()

    assert member.removed[0][0] == [100]
    assert {role.id for role in member.roles} == {200}
    assert list(store.records) == [active.id]


@pytest.mark.asyncio
async def test_fully_protected_record_is_deleted_without_api_call() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[100])
    expired = make_record(1, 10, [100], expiry=PAST)
    permanent = make_record(1, 10, [100])
    store = FakeStore([expired, permanent])

    report = await _sweeper(FakeBot(guild), store).sweep()

    assert member.removed == []
    assert report.handled_ids == [expired.id]
    assert list(store.records) == [permanent.id]


@pytest.mark.asyncio
async def test_managed_and_higher_roles_are_never_removed() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[100, 300, 400])
    store = FakeStore([make_record(1, 10, [100, 300, 400], expiry=PAST)])

    await _sweeper(FakeBot(guild), store).sweep()

    assert member.removed[0][0] == [100]
    assert {role.id for role in member.roles} == {300, 400}


@pytest.mark.asyncio
async def test_multiple_records_for_one_member_use_one_call() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[100, 200])
    first = make_record(1, 10, [100], expiry=PAST - timedelta(minutes=1))
    second = make_record(1, 10, [200], expiry=PAST)
    store = FakeStore([first, second])

    await _sweeper(FakeBot(guild), store).sweep()

    assert len(member.removed) == 1
    assert member.removed[0] == ([100, 200], f"Role persistence records expired; records: {first.id}, {second.id}.")
    assert store.deleted_batches == [[first.id, second.id]]


@pytest.mark.asyncio
async def test_member_who_left_has_records_deleted() -> None:
    guild = _guild()
    store = FakeStore([make_record(1, 10, [100], expiry=PAST)])

    report = await _sweeper(FakeBot(guild), store).sweep()

    assert report.deleted == 1
    assert store.records == {}


@pytest.mark.asyncio
async def test_unreachable_guild_keeps_records() -> None:
    record = make_record(77, 10, [100], expiry=PAST)
    store = FakeStore([record])

    report = await _sweeper(FakeBot(), store).sweep()

    assert report.skipped_guilds == [77]
    assert report.deleted == 0
    assert record.id in store.records


@pytest.mark.asyncio
async def test_missing_manage_roles_keeps_records() -> None:
    guild = _guild()
    guild.add_bot(position=50, manage_roles=False)
    member = guild.add_member(10, roles=[100])
    record = make_record(1, 10, [100], expiry=PAST)
    store = FakeStore([record])

    await _sweeper(FakeBot(guild), store).sweep()

    assert member.removed == []
    assert record.id in store.records


@pytest.mark.asyncio
async def test_failed_removal_is_retried_and_other_members_still_processed() -> None:
    guild = _guild()
    failing = guild.add_member(10, roles=[100])
    failing.fail_with = http_error()
    healthy = guild.add_member(11, roles=[100])
    failed_record = make_record(1, 10, [100], expiry=PAST)
    ok_record = make_record(1, 11, [100], expiry=PAST)
    store = FakeStore([failed_record, ok_record])
    sweeper = _sweeper(FakeBot(guild), store)

    report = await sweeper.sweep()

    assert [failure.user_id for failure in report.failures] == [10]
    assert healthy.removed
    assert list(store.records) == [failed_record.id]

    failing.fail_with = None
    await sweeper.sweep()

    assert failing.removed
    assert store.records == {}


@pytest.mark.asyncio
async def test_sweep_respects_batch_limit() -> None:
    guild = _guild()
    records = [make_record(1, 10 + n, [100], expiry=PAST - timedelta(minutes=n)) for n in range(5)]
    store = FakeStore(records)

    report = await _sweeper(FakeBot(guild), store, batch_limit=3).sweep()

    assert report.scanned == 3
    assert len(store.records) == 2


@pytest.mark.asyncio
async def test_second_sweep_is_a_no_op() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[100])
    store = FakeStore([make_record(1, 10, [100], expiry=PAST)])
    sweeper = _sweeper(FakeBot(guild), store)

    await sweeper.sweep()
    report = await sweeper.sweep()

    assert report.scanned == 0
    assert len(member.removed) == 1


@pytest.mark.asyncio
async def test_store_failure_does_not_escape() -> None:
    class _BrokenStore(FakeStore):
        async def find_expired(self, now, limit=200):
            raise RuntimeError("database is locked")

    report = await _sweeper(FakeBot(), _BrokenStore()).sweep()

    assert report.scanned == 0


@pytest.mark.asyncio
async def test_role_no_longer_held_needs_no_call() -> None:
    guild = _guild()
    member = guild.add_member(10, roles=[])
    store = FakeStore([make_record(1, 10, [100], expiry=PAST)])

    report = await _sweeper(FakeBot(guild), store).sweep()

    assert member.removed == []
    assert report.deleted == 1
