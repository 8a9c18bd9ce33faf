"""
Patrolcord - Discord staff-management bot for role-play police departments

This package contains the role persistence subsystem: roles that administrators
pin to a member so they are restored on rejoin and stripped again once the
pin expires.

Core Components:

- **Persistence Store**: SQLite-backed role persistence records with optional
  expiry, read and written through a single long-lived aiosqlite connection
- **Expiry Sweeper**: Periodic job that removes the roles of expired records
  unless another active record still protects them, then deletes the records
- **Membership Reconciler**: Gateway event handler restoring persisted roles
  when a member rejoins, completes screening, or has a persisted role removed
- **Cooldown Tracker**: Short-lived per-user backoff bookkeeping that spaces out
  repeated restorations for members whose roles keep getting stripped
- **Role Persist Commands**: ``/role-persist add|remove|list`` for administrators

Usage:
    from patrolcord.main import main
    main()  # Starts the bot
"""
