"""Low-level table access. Every method takes an open aiosqlite connection."""
