"""Event factory for building validated events from caller input.

Global attributes and metrics are merged into every event, non-string
attribute values are JSON-encoded, and the result is run through the
validator. Invalid events come back as None.
"""

from __future__ import annotations

from numbers import Number
from typing import Any, Dict, Mapping, Optional, Union

from loguru import logger

from .events import MONETIZATION_EVENT_TYPE, Event, MonetizationDetails, Session, utc_timestamp
from .payload import dumps
from .validation import validate_event

SessionLike = Union[Session, Mapping[str, Any]]


def _as_session(session: SessionLike) -> Session:
    if isinstance(session, Session):
        return Session(id=session.id, start_timestamp=session.start_timestamp, stop_timestamp=session.stop_timestamp)
    return Session(
        id=session["id"],
        start_timestamp=session["startTimestamp"],
        stop_timestamp=session.get("stopTimestamp"),
    )


class EventFactory:
    """Creates events carrying the configured global attributes and metrics."""

    def __init__(self, global_attributes: Optional[Dict[str, Any]] = None, global_metrics: Optional[Dict[str, Any]] = None):
        self.global_attributes = dict(global_attributes or {})
        self.global_metrics = dict(global_metrics or {})

    def create_event(
        self,
        event_type: str,
        session: SessionLike,
        attributes: Optional[Mapping[str, Any]] = None,
        metrics: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Event]:
        """Create and validate an event.

        Args:
            event_type: Custom event type name
            session: Session the event belongs to
            attributes: Custom attributes, override global attributes of the same name
            metrics: Custom metrics, override global metrics of the same name

        Returns:
            The validated event, or None if it cannot be recorded
        """
        merged_attributes = {**self.global_attributes, **(attributes or {})}
        merged_metrics = {**self.global_metrics, **(metrics or {})}

        for name, value in list(merged_attributes.items()):
            if not isinstance(value, str):
                try:
                    merged_attributes[name] = dumps(value)
                except (TypeError, ValueError):
                    logger.error(f"Error serializing attribute {name}, dropping {event_type} event")
                    return None

        try:
            event_session = _as_session(session)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid session for {event_type} event: {e}")
            return None

        event = Event(
            event_type=event_type,
            session=event_session,
            timestamp=utc_timestamp(),
            attributes=merged_attributes,
            metrics=merged_metrics,
        )
        return validate_event(event)

    def create_monetization_event(
        self,
        session: SessionLike,
        details: Union[MonetizationDetails, Mapping[str, Any]],
        attributes: Optional[Mapping[str, Any]] = None,
        metrics: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Event]:
        """Create a purchase event.

        A numeric price is recorded as the ``_item_price`` metric, any other
        price as the ``_item_price_formatted`` attribute.
        """
        if not isinstance(details, MonetizationDetails):
            details = MonetizationDetails(
                currency=details.get("currency"),
                product_id=details.get("productId", details.get("product_id")),
                quantity=details.get("quantity"),
                price=details.get("price"),
            )

        attributes = dict(attributes or {})
        metrics = dict(metrics or {})

        if details.currency is not None:
            attributes["_currency"] = details.currency
        if details.product_id is not None:
            attributes["_product_id"] = details.product_id
        if details.quantity is not None:
            metrics["_quantity"] = details.quantity

        if isinstance(details.price, Number) and not isinstance(details.price, bool):
            metrics["_item_price"] = details.price
        elif details.price is not None:
            attributes["_item_price_formatted"] = details.price

        return self.create_event(MONETIZATION_EVENT_TYPE, session, attributes, metrics)
