"""
Plain data structures shared across Patrolcord.

- **role_persist_datatypes.py**: ``PersistRecord`` and its parts
  (``SavedRole``, ``RecordAuthor``) plus the activity/expiry predicates.
"""
