"""Event models for the mobile analytics client.

This module defines the structures that flow through the submission engine:
recordEvent → Validator → Event Queue → Batch Generator → Batch Store → Executor
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

EVENT_VERSION = "v2.0"
MONETIZATION_EVENT_TYPE = "_monetization.purchase"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """Format a moment as ISO-8601 UTC with millisecond precision, e.g. 2014-06-30T19:07:47.885Z."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the Z suffix."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class Session:
    """Describes the session an event belongs to."""

    id: str
    start_timestamp: str
    stop_timestamp: Optional[str] = None
    duration: Optional[int] = None

    def __post_init__(self):
        """Derive the duration in milliseconds when the session has stopped."""
        if self.stop_timestamp and self.duration is None:
            delta = parse_timestamp(self.stop_timestamp) - parse_timestamp(self.start_timestamp)
            self.duration = int(delta.total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "startTimestamp": self.start_timestamp}
        if self.stop_timestamp:
            data["stopTimestamp"] = self.stop_timestamp
            data["duration"] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Session:
        return cls(
            id=data["id"],
            start_timestamp=data["startTimestamp"],
            stop_timestamp=data.get("stopTimestamp"),
            duration=data.get("duration"),
        )


@dataclass(frozen=True)
class Event:
    """A single recorded occurrence. Immutable once validated."""

    event_type: Any
    session: Session
    timestamp: str = field(default_factory=utc_timestamp)
    version: str = EVENT_VERSION
    attributes: Dict[str, str] = field(default_factory=dict)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to its wire representation."""
        return {
            "eventType": self.event_type,
            "timestamp": self.timestamp,
            "session": self.session.to_dict(),
            "version": self.version,
            "attributes": dict(self.attributes),
            "metrics": dict(self.metrics),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Event:
        """Recreate an event from persisted storage."""
        return cls(
            event_type=data["eventType"],
            session=Session.from_dict(data["session"]),
            timestamp=data["timestamp"],
            version=data.get("version", EVENT_VERSION),
            attributes=dict(data.get("attributes") or {}),
            metrics=dict(data.get("metrics") or {}),
        )


@dataclass
class Batch:
    """A group of events queued for one delivery attempt."""

    events: List[Event] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def size(self) -> int:
        """Return the number of events in this batch."""
        return len(self.events)


@dataclass
class MonetizationDetails:
    """Purchase details for a monetization event."""

    currency: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[Union[int, float]] = None
    price: Optional[Union[int, float, str]] = None
