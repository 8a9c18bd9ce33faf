"""
Shared utilities for Patrolcord.

- **logger.py**: Console + session log file configuration for every module.
- **expiring_map.py**: Generic time-boxed key/value map with touch-on-read.
- **discord_utils.py**: Small helpers resolving guilds, members and the bot's
  own membership without raising on missing entities.
"""
