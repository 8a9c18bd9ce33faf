"""
Role persistence: pinned member roles that survive rejoins and expire on time.

- **store.py**: Async facade over the ``role_persist_records`` table.
- **conflict_resolver.py**: Which expiring roles are still protected by
  another active record and which may be stripped.
- **role_eligibility.py**: Live-role filters (managed, hierarchy, risky
  permissions) shared by every add/remove path.
- **cooldown_tracker.py**: Escalating, self-resetting restoration backoff.
- **removal.py**: The one code path that strips persisted roles from a member.
- **expiry_sweeper.py**: Batch job removing the roles of expired records.
- **reconciler.py**: Member update/join handler restoring persisted roles.
- **expiry_parsing.py**: Parses the ``expiry`` option of ``/role-persist add``.
- **errors.py**: Exceptions raised by this package.
"""
