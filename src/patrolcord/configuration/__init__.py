"""
Configuration management for Patrolcord.

- **app_configuration.py**: File-locked YAML loader for global settings
  (``config/app_config.yml``). Exposes the database path and the role
  persistence tuning knobs; falls back to defaults on missing or malformed
  files.

- **role_persist_settings.py**: Typed accessors for the ``role_persist``
  section (sweep cadence and batch size, join settle delay, cooldown window,
  backoff cap, minimum record lifetime).
"""
