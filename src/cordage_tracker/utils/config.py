"""
Configuration management for the Cordage Tracker application.

This module handles:
- Database path configuration
- Environment-specific configuration (development vs. production)
- Business settings read from the environment (tax rate, default currency)
"""

import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_CURRENCY,
    DEFAULT_IGV_RATE,
)

logger = logging.getLogger(__name__)


class Config:
    """
    Application configuration manager.

    Handles database location, environment mode and the business settings
    the services read at call time.
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
            self._base_dir = self._get_user_documents_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get("CORDAGE_DATABASE_URL")

        self._igv_rate = self._read_decimal("IGV_RATE", DEFAULT_IGV_RATE)
        self._default_currency = os.environ.get("CORDAGE_DEFAULT_CURRENCY", DEFAULT_CURRENCY)

    def _get_project_data_dir(self) -> Path:
        """
        Get the project's data directory for development.

        Returns:
            Path to project data/ directory
        """
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_documents_dir(self) -> Path:
        """
        Get the user's Documents directory for production.

        Returns:
            Path to user's Documents folder with app subdirectory
        """
        if os.name == "nt":
            documents = Path(os.path.expanduser("~")) / "Documents"
        else:
            documents = Path.home() / "Documents"
        return documents / "CordageTracker"

    @staticmethod
    def _read_decimal(name: str, default: Decimal) -> Decimal:
        raw = os.environ.get(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            return Decimal(raw.strip())
        except InvalidOperation:
            logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
            return default

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
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
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        CORDAGE_DATABASE_URL wins over the file-based default.
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def uses_default_database(self) -> bool:
        """True unless CORDAGE_DATABASE_URL points somewhere else."""
        return not self._database_url_override

    @property
    def igv_rate(self) -> Decimal:
        """Sales tax rate applied to delivered subtotals (IGV_RATE, default 0.18)."""
        return self._igv_rate

    @property
    def default_currency(self) -> str:
        """Currency used when a delivery, purchase or price row names none."""
        return self._default_currency

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """
        Check if database file exists.

        Returns:
            True if database file exists, False otherwise
        """
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument, so the database never switches
    mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    CORDAGE_TRACKER_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get("CORDAGE_TRACKER_ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
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
    """
    Get the database URL.

    Returns:
        SQLAlchemy database URL string
    """
    return get_config().database_url
