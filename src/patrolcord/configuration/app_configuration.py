from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from patrolcord.configuration.role_persist_settings import RolePersistSettings
from patrolcord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()
DEFAULT_DATABASE_PATH = Path("./data/app.db")


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves role persistence settings through
    :class:`RolePersistSettings`. Uses fcntl file locks for safe concurrent
    access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            logger.warning("[APP CONFIGURATION] Config %s is not a mapping; using defaults", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or unreadable.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Return the SQLite database path, resolved against the working directory."""
        database = self._data.get("database", {})
        if isinstance(database, dict) and database.get("path"):
            return Path(str(database["path"])).resolve()
        return DEFAULT_DATABASE_PATH.resolve()

    @property
    def role_persist(self) -> RolePersistSettings:
        """Return the role persistence section wrapped in a RolePersistSettings helper."""
        settings = self._data.get("role_persist", {})
        if not isinstance(settings, dict):
            settings = {}
        return RolePersistSettings(settings)


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
