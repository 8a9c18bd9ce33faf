from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from patrolcord.database import initialize_database, shutdown_database
from patrolcord.database.db_connection import ConnectionManager
from patrolcord.role_persist.store import RolePersistStore

from role_persist_fakes import make_record

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture()
async def store(tmp_path: Path):
    manager = ConnectionManager()
    await initialize_database(tmp_path / "test.db", manager)
    try:
        yield RolePersistStore(manager)
    finally:
        await shutdown_database(manager)


@pytest.mark.asyncio
async def test_create_and_get_round_trip(store: RolePersistStore) -> None:
    record = make_record(1, 10, [111111111111111111, 222222222222222222], expiry=NOW + timedelta(days=1))
    record.reason = "Field training"
    await store.create(record)

    loaded = await store.get(1, 10, record.id)

    assert loaded == record
    assert await store.get(1, 11, record.id) is None


@pytest.mark.asyncio
async def test_find_active_excludes_expired(store: RolePersistStore) -> None:
    permanent = make_record(1, 10, [1])
    future = make_record(1, 10, [2], expiry=NOW + timedelta(hours=5))
    past = make_record(1, 10, [3], expiry=NOW - timedelta(seconds=1))
    boundary = make_record(1, 10, [4], expiry=NOW)
    other_user = make_record(1, 11, [5])
    for record in (permanent, future, past, boundary, other_user):
        await store.create(record)

    active = await store.find_active_for_user(1, 10, NOW)

    assert {record.id for record in active} == {permanent.id, future.id}


@pytest.mark.asyncio
async def test_find_expired_orders_by_expiry_and_caps_batch(store: RolePersistStore) -> None:
    for offset in range(250):
        await store.create(make_record(1, offset, [1], expiry=NOW - timedelta(minutes=offset + 1)))
    await store.create(make_record(1, 999, [1], expiry=NOW + timedelta(days=1)))
    await store.create(make_record(1, 998, [1]))

    expired = await store.find_expired(NOW, limit=200)

    assert len(expired) == 200
    expiries = [record.expiry for record in expired]
    assert expiries == sorted(expiries)
    assert expired[0].user_id == 249


@pytest.mark.asyncio
async def test_delete_many_and_delete(store: RolePersistStore) -> None:
    records = [make_record(1, 10, [n]) for n in range(1, 4)]
    for record in records:
        await store.create(record)

    assert await store.delete_many([]) == 0
    assert await store.delete_many([records[0].id, records[1].id, "f" * 24]) == 2
    assert await store.delete(records[2].id) is True
    assert await store.delete(records[2].id) is False
    assert await store.find_active_for_user(1, 10, NOW) == []


@pytest.mark.asyncio
async def test_list_active_for_guild_and_user(store: RolePersistStore) -> None:
    await store.create(make_record(1, 10, [1]))
    await store.create(make_record(1, 11, [1]))
    await store.create(make_record(2, 10, [1]))
    await store.create(make_record(1, 12, [1], expiry=NOW - timedelta(days=1)))

    assert len(await store.list_active(1, NOW)) == 2
    assert [r.user_id for r in await store.list_active(1, NOW, user_id=11)] == [11]
