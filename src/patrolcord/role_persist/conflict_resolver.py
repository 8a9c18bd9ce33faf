"""
Conflict resolution between overlapping role persistence records.

A role may only be stripped from a member when no *other* active record for
the same member still lists it. Two records sharing a role with different
expiries therefore keep the role until the longer-lived one is gone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Set

from patrolcord.datatypes.role_persist_datatypes import PersistRecord


@dataclass(frozen=True)
class RemovalPlan:
    """Outcome of resolving a set of expiring/removed records.

    Attributes:
        expired_role_ids: Every role listed by the records being removed.
        protected_role_ids: Roles still wanted by another active record.
        removable_role_ids: ``expired - protected``; safe to strip.
        record_ids: Ids of the records being removed.
    """
    expired_role_ids: frozenset[int]
    protected_role_ids: frozenset[int]
    removable_role_ids: frozenset[int]
    record_ids: tuple[str, ...]

    @property
    def requires_removal(self) -> bool:
        return bool(self.removable_role_ids)


def collect_role_ids(records: Iterable[PersistRecord]) -> Set[int]:
    return {role.role_id for record in records for role in record.roles if role.role_id}


def protected_role_ids(
    active_records: Iterable[PersistRecord],
    excluded_record_ids: Iterable[str],
) -> Set[int]:
    """Roles listed by active records that are not among ``excluded_record_ids``."""
    excluded = set(excluded_record_ids)
    return collect_role_ids(record for record in active_records if record.id not in excluded)


def resolve_removal(
    removed_records: Iterable[PersistRecord],
    active_records: Iterable[PersistRecord],
) -> RemovalPlan:
    """
    Work out which roles of ``removed_records`` may be taken off the member.

    ``active_records`` should be fetched fresh for the same guild/user; any of
    the removed records appearing in it are ignored. The removed records are
    considered processed even when nothing is removable.
    """
    removed = list(removed_records)
    record_ids = tuple(record.id for record in removed)
    expired = collect_role_ids(removed)
    protected = protected_role_ids(active_records, record_ids)

    return RemovalPlan(
        expired_role_ids=frozenset(expired),
        protected_role_ids=frozenset(protected),
        removable_role_ids=frozenset(expired - protected),
        record_ids=record_ids,
    )
