"""Mobile analytics client - durable event batching and throttle-aware delivery."""

from .client import AnalyticsClient
from .config import ClientConfig, get_config_manager, setup_logging
from .core import Event, MonetizationDetails, Session, SubmitError

__version__ = "1.0.0"

__all__ = ["AnalyticsClient", "ClientConfig", "Event", "MonetizationDetails", "Session", "SubmitError", "get_config_manager", "setup_logging"]
