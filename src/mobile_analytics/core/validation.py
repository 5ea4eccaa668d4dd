"""Schema checks applied to every event before it is queued."""

from __future__ import annotations

from numbers import Number
from typing import Any, Optional

from loguru import logger

from .events import EVENT_VERSION, Event

MAX_ATTRIBUTES_AND_METRICS = 40
MAX_NAME_LENGTH = 50
MAX_ATTRIBUTE_VALUE_LENGTH = 200


def _is_numeric(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _invalid_name(name: Any) -> bool:
    return not isinstance(name, str) or len(name) == 0 or len(name) > MAX_NAME_LENGTH


def find_violation(event: Event) -> Optional[str]:
    """Return a message describing the first schema violation, or None.

    Checks run in a fixed order and stop at the first failure.
    """
    if event.version != EVENT_VERSION:
        return f"Event must have version {EVENT_VERSION}"

    if not isinstance(event.event_type, str):
        return "Event Type must be a string"

    invalid_metrics = [name for name, value in event.metrics.items() if not _is_numeric(value)]
    if invalid_metrics:
        return f"Event Metrics must be numeric ({invalid_metrics[0]})"

    if len(event.attributes) + len(event.metrics) > MAX_ATTRIBUTES_AND_METRICS:
        return f"Event Metric and Attribute Count cannot exceed {MAX_ATTRIBUTES_AND_METRICS}"

    if any(_invalid_name(name) for name in event.attributes):
        return f"Event Attribute names must be 1-{MAX_NAME_LENGTH} characters"

    if any(_invalid_name(name) for name in event.metrics):
        return f"Event Metric names must be 1-{MAX_NAME_LENGTH} characters"

    if any(value is not None and not isinstance(value, str) for value in event.attributes.values()):
        return "Event Attribute values must be strings"

    if any(value and len(value) > MAX_ATTRIBUTE_VALUE_LENGTH for value in event.attributes.values()):
        return f"Event Attribute values cannot be longer than {MAX_ATTRIBUTE_VALUE_LENGTH} characters"

    return None


def validate_event(event: Event) -> Optional[Event]:
    """Validate an event, returning it unchanged or None when it cannot be recorded."""
    violation = find_violation(event)
    if violation:
        logger.error(violation)
        return None
    return event
