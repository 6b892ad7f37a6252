"""Configuration service for managing todograph configuration.

This module provides the ConfigService class, the single source of truth for
configuration. It handles:

- Loading and saving config.json
- Falling back to defaults when the file is missing or invalid
- Resolving the database path
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from platformdirs import user_config_dir
from pydantic import ValidationError as PydanticValidationError

from todograph.adapters.sqlite.connection import default_db_path
from todograph.models.config_models import AppConfig
from todograph.services.store import Store

logger = logging.getLogger(__name__)

_APP_NAME = "todograph"
DB_PATH_ENV = "TODOGRAPH_DB"


class ConfigService:
    """Service for loading and saving the application configuration."""

    def __init__(self, config_dir: Path | None = None):
        """Initialize the config service.

        Args:
            config_dir: Directory holding config.json; the platform user
                config dir if None
        """
        self.config_dir = config_dir or Path(user_config_dir(_APP_NAME))
        self.config_path = self.config_dir / "config.json"
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> AppConfig:
        """Load configuration from disk.

        A missing file yields defaults. An unreadable or invalid file also
        yields defaults, with a warning in the log.
        """
        if self._config is not None:
            return self._config

        try:
            with open(self.config_path, encoding="utf-8") as f:
                self._config = AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            self._config = AppConfig()
        except (OSError, PydanticValidationError) as e:
            logger.warning("invalid config at %s, using defaults: %s", self.config_path, e)
            self._config = AppConfig()

        return self._config

    def save_config(self) -> None:
        """Save the current configuration to disk."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self.config.model_dump_json(indent=4))
            self.config_path.chmod(0o600)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def reset_config(self) -> None:
        """Reset configuration to defaults."""
        self._config = None
        if self.config_path.exists():
            self.config_path.unlink()

    def get_database_path(self) -> Path:
        """Database path from ``TODOGRAPH_DB``, the config file, or the platform default."""
        override = os.environ.get(DB_PATH_ENV)
        if override:
            return Path(override).expanduser()
        if self.config.database_path:
            return Path(self.config.database_path).expanduser()
        return default_db_path()

    def open_store(self) -> Store:
        """Open the task store configured for this process."""
        return Store.open(self.get_database_path(), self.config)


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get a cached ConfigService instance."""
    config_service = ConfigService()
    config_service.load_config()
    return config_service
