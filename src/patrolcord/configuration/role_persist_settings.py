from typing import Any, Dict


class RolePersistSettings:
    """Helper exposing typed accessors for the ``role_persist`` config section.

    Every property falls back to the production default when the key is
    missing, so an empty mapping yields a fully working configuration.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def sweep_interval_seconds(self) -> float:
        return float(self.data.get("sweep_interval_seconds", 600.0))

    @property
    def sweep_batch_limit(self) -> int:
        return int(self.data.get("sweep_batch_limit", 200))

    @property
    def join_settle_delay_ms(self) -> float:
        return float(self.data.get("join_settle_delay_ms", 800.0))

    @property
    def recent_join_window_seconds(self) -> float:
        return float(self.data.get("recent_join_window_seconds", 60.0))

    @property
    def cooldown_ttl_seconds(self) -> float:
        return float(self.data.get("cooldown_ttl_seconds", 60.0))

    @property
    def max_backoff_ms(self) -> float:
        return float(self.data.get("max_backoff_ms", 20_000.0))

    @property
    def min_expiry_hours(self) -> float:
        return float(self.data.get("min_expiry_hours", 3.0))
