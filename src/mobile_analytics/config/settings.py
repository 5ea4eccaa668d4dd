"""Configuration management for the mobile analytics client.

This module provides the client configuration and allows environment
variable overrides with the MOBILE_ANALYTICS_ prefix.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..batcher.batch_generator import HARD_BATCH_SIZE_LIMIT


@dataclass
class LoggingConfig:
    """Configuration for loguru sinks."""

    level: str = "INFO"
    to_console: bool = True
    to_file: bool = False
    file_path: Path = field(default_factory=lambda: Path.cwd() / "mobile_analytics.log")
    rotation: str = "10 MB"
    retention: str = "7 days"


@dataclass
class ClientConfig:
    """Complete analytics client configuration."""

    # Application identification
    app_id: str = ""
    app_title: Optional[str] = None
    app_version_name: Optional[str] = None
    app_version_code: Optional[str] = None
    app_package_name: Optional[str] = None
    client_id: str = ""  # Generated and persisted when empty

    # Device information
    platform: Optional[str] = None
    platform_version: Optional[str] = None
    model: Optional[str] = None
    make: Optional[str] = None
    locale: Optional[str] = None

    # Submission settings
    auto_submit_events: bool = True
    auto_submit_interval: int = 10000  # ms
    batch_size_limit: int = 256000  # bytes
    in_flight_timeout: int = 120000  # ms
    submit_callback: Optional[Callable[..., None]] = None

    # Attributes and metrics applied to every event
    global_attributes: Dict[str, Any] = field(default_factory=dict)
    global_metrics: Dict[str, Any] = field(default_factory=dict)

    # Endpoint settings
    endpoint_url: str = "http://localhost:8000/2014-06-05/events"
    api_version: str = "2014-06-05"
    api_key: str = ""
    request_timeout_seconds: int = 30
    max_retries: int = 3  # Transport retries for network errors and 5xx
    retry_backoff_base: float = 3.0  # seconds

    # Storage
    storage_path: Optional[Path] = None  # In-memory storage when None

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        """Apply environment variable overrides."""
        self._apply_env_overrides()

    def _apply_env_overrides(self):
        """Apply configuration overrides from environment variables."""
        if app_id := os.getenv("MOBILE_ANALYTICS_APP_ID"):
            self.app_id = app_id

        if platform := os.getenv("MOBILE_ANALYTICS_PLATFORM"):
            self.platform = platform

        if endpoint_url := os.getenv("MOBILE_ANALYTICS_ENDPOINT_URL"):
            self.endpoint_url = endpoint_url

        if auto_submit := os.getenv("MOBILE_ANALYTICS_AUTO_SUBMIT"):
            self.auto_submit_events = auto_submit.strip().lower() not in ("0", "false", "no", "off")

        if auto_submit_interval := os.getenv("MOBILE_ANALYTICS_AUTO_SUBMIT_INTERVAL"):
            try:
                self.auto_submit_interval = int(auto_submit_interval)
            except ValueError:
                logger.warning(f"Invalid auto submit interval: {auto_submit_interval}")

        if batch_size_limit := os.getenv("MOBILE_ANALYTICS_BATCH_SIZE_LIMIT"):
            try:
                self.batch_size_limit = int(batch_size_limit)
            except ValueError:
                logger.warning(f"Invalid batch size limit: {batch_size_limit}")

        if storage_path := os.getenv("MOBILE_ANALYTICS_STORAGE_PATH"):
            self.storage_path = Path(storage_path)

        if log_level := os.getenv("MOBILE_ANALYTICS_LOG_LEVEL"):
            self.logging.level = log_level.upper()

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not self.app_id:
            errors.append("Client must be initialized with an app_id")

        if self.auto_submit_interval <= 0:
            errors.append("Auto submit interval must be positive")

        if self.batch_size_limit <= 0:
            errors.append("Batch size limit must be positive")
        elif self.batch_size_limit >= HARD_BATCH_SIZE_LIMIT:
            errors.append(f"Batch size limit must be below {HARD_BATCH_SIZE_LIMIT} bytes")

        if self.in_flight_timeout <= 0:
            errors.append("In-flight timeout must be positive")

        if not self.platform:
            logger.error("Client must be initialized with a platform")

        return len(errors) == 0, errors


class ConfigManager:
    """Manages the analytics client configuration."""

    def __init__(self):
        self._config: Optional[ClientConfig] = None

    def load_config(self, app_id: Optional[str] = None, platform: Optional[str] = None, **overrides: Any) -> ClientConfig:
        """Load configuration with optional overrides.

        Args:
            app_id: Application id override
            platform: Platform override
            **overrides: Any other ClientConfig field

        Returns:
            Configured ClientConfig instance
        """
        config = ClientConfig(**overrides)

        if app_id:
            config.app_id = app_id

        if platform:
            config.platform = platform

        self._config = config
        return config

    def get_config(self) -> Optional[ClientConfig]:
        """Get current configuration."""
        return self._config

    def validate_config(self) -> tuple[bool, list[str]]:
        if not self._config:
            return False, ["No configuration loaded"]

        return self._config.validate()


# Global configuration manager instance
_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    return _config_manager


def get_current_config() -> Optional[ClientConfig]:
    """Get the current configuration."""
    return _config_manager.get_config()
