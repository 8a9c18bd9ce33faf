from datetime import datetime, timezone

from patrolcord.role_persist.conflict_resolver import collect_role_ids, protected_role_ids, resolve_removal

from role_persist_fakes import make_record

NOW = datetime(2026, 5, 1, tzinfo=timezone.utc)


def test_roles_shared_with_active_record_are_protected() -> None:
    expired = make_record(1, 10, [100, 200], expiry=NOW, record_id="a" * 24)
    active = make_record(1, 10, [200, 300], record_id="b" * 24)

    plan = resolve_removal([expired], [active])

    assert plan.expired_role_ids == {100, 200}
    assert plan.protected_role_ids == {200, 300}
    assert plan.removable_role_ids == {100}
    assert plan.record_ids == ("a" * 24,)
    assert plan.requires_removal is True


def test_removed_records_in_active_list_do_not_protect_themselves() -> None:
    expired = make_record(1, 10, [100], expiry=NOW, record_id="a" * 24)

    plan = resolve_removal([expired], [expired])

    assert plan.removable_role_ids == {100}


def test_fully_protected_plan_requires_no_removal() -> None:
    expired = make_record(1, 10, [100], expiry=NOW)
    active = make_record(1, 10, [100])

    plan = resolve_removal([expired], [active])

    assert plan.removable_role_ids == frozenset()
    assert plan.requires_removal is False


def test_multiple_expired_records_are_merged() -> None:
    first = make_record(1, 10, [100, 101], expiry=NOW)
    second = make_record(1, 10, [101, 102], expiry=NOW)

    plan = resolve_removal([first, second], [])

    assert plan.removable_role_ids == {100, 101, 102}
    assert set(plan.record_ids) == {first.id, second.id}


def test_protected_role_ids_skips_excluded_records() -> None:
    keep = make_record(1, 10, [1, 2])
    drop = make_record(1, 10, [3])

    assert protected_role_ids([keep, drop], [drop.id]) == {1, 2}
    assert collect_role_ids([keep, drop]) == {1, 2, 3}
