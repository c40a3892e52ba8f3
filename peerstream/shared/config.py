"""
Centralized configuration management.

Configuration is layered the same way for the signaling server and for the
streaming client:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)

Values are strings. The typed getters treat a blank value as unset, so an
`env.example` line such as `ICE_SERVERS_JSON=` falls back to the default.
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger

TRUE_VALUES = {"1", "true", "yes", "on"}


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config: dict[str, str | None] = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        for name in ("env.example", "env.local"):
            path = root / name
            if path.exists():
                self._config.update(dotenv_values(path))
                logger.debug("Loaded environment variables from {}", path)

        self._config.update(os.environ)

    def get(self, key: str, default: str | None = None) -> str | None:
        """Raw value for `key`, or `default` if the key is missing."""
        return self._config.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        value = (self._config.get(key) or "").strip()
        return value or default

    def get_int(self, key: str, default: int) -> int:
        value = self.get_str(key)
        return int(value) if value else default

    def get_float(self, key: str, default: float) -> float:
        value = self.get_str(key)
        return float(value) if value else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get_str(key)
        return value.lower() in TRUE_VALUES if value else default

    def get_list(self, key: str, default: str = "") -> list[str]:
        """Comma separated value as a list, empty items dropped."""
        return [x.strip() for x in self.get_str(key, default).split(",") if x.strip()]

    def reload(self):
        """Reload configuration from files and environment."""
        self._config.clear()
        self._load_config()
        logger.info("Configuration reloaded")

    def __contains__(self, key):
        return key in self._config


# Global configuration instance
config = EnvironConfig()
