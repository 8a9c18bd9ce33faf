"""
py-cord cogs wiring the role persistence subsystem into the bot.

- **listener/scheduler_cog.py**: ``tasks.loop`` running the expiry sweeper.
- **listener/role_persist_listener.py**: member join/update events feeding the reconciler.
- **commands/role_persist_cmds.py**: ``/role-persist add|remove|list``.
"""
