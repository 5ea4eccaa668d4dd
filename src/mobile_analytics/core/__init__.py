"""Core analytics models: events, validation, event creation and errors."""

from .context import ClientContext, build_client_context
from .errors import ConfigurationError, SubmitError
from .event_factory import EventFactory
from .events import EVENT_VERSION, MONETIZATION_EVENT_TYPE, Batch, Event, MonetizationDetails, Session
from .validation import validate_event

__all__ = [
    "Event",
    "Session",
    "Batch",
    "MonetizationDetails",
    "EVENT_VERSION",
    "MONETIZATION_EVENT_TYPE",
    "EventFactory",
    "validate_event",
    "ClientContext",
    "build_client_context",
    "ConfigurationError",
    "SubmitError",
]
