"""
Configuration management for the Cafe Ledger inventory core.

This module handles:
- Database path / URL configuration
- Environment-specific configuration (development vs. production)
- Lock timeout for per-product serialization
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_LOCK_TIMEOUT,
)

logger = logging.getLogger(__name__)

ENV_VAR_ENVIRONMENT = "CAFE_LEDGER_ENV"
ENV_VAR_DATABASE_URL = "CAFE_LEDGER_DATABASE_URL"
ENV_VAR_LOCK_TIMEOUT = "CAFE_LEDGER_LOCK_TIMEOUT"


class Config:
    """
    Application configuration manager.

    Database location comes from CAFE_LEDGER_DATABASE_URL when set,
    otherwise from the environment's data directory.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(ENV_VAR_DATABASE_URL) or None
        self._lock_timeout = self._read_lock_timeout()

    def _get_project_data_dir(self) -> Path:
        """Project data/ directory for development."""
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """Per-user data directory for production."""
        return Path.home() / "Documents" / "CafeLedger"

    def _read_lock_timeout(self) -> float:
        raw = os.environ.get(ENV_VAR_LOCK_TIMEOUT)
        if raw is None:
            return DEFAULT_LOCK_TIMEOUT
        try:
            value = float(raw)
        except ValueError:
            logger.warning(
                f"Ignoring invalid {ENV_VAR_LOCK_TIMEOUT}={raw!r}; "
                f"using default {DEFAULT_LOCK_TIMEOUT}"
            )
            return DEFAULT_LOCK_TIMEOUT
        return value if value > 0 else DEFAULT_LOCK_TIMEOUT

    def ensure_directories(self):
        """Create the database directory if it doesn't exist."""
        if self._database_url_override is None:
            self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the default database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            The override URL if configured, else a sqlite URL for database_path
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def lock_timeout(self) -> float:
        """Seconds to wait for a product lock."""
        return self._lock_timeout

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """Check if the default database file exists."""
        if self._database_url_override:
            return True
        return self._database_path.exists()

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    CAFE_LEDGER_ENV or defaults to production.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    """Get the database URL."""
    return get_config().database_url
