"""Configuration module for the analytics client."""

from .logger_config import setup_logging
from .settings import ClientConfig, ConfigManager, LoggingConfig, get_config_manager, get_current_config

__all__ = ["ClientConfig", "LoggingConfig", "ConfigManager", "get_config_manager", "get_current_config", "setup_logging"]
