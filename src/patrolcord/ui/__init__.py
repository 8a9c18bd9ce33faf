"""Embed builders for the ``/role-persist`` command responses."""
