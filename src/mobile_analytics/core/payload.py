"""Wire encoding and request size estimation for event batches."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Sequence

from .events import Event

_SEPARATORS = (",", ":")

# '{"events":[' + ']}'
_ENVELOPE_BYTES = len(json.dumps({"events": []}, separators=_SEPARATORS).encode("utf-8"))


def dumps(data: Any) -> str:
    """Serialize to compact JSON, the form used on the wire."""
    return json.dumps(data, separators=_SEPARATORS, ensure_ascii=False)


def event_size(event: Event) -> int:
    """Encoded byte size of a single event inside the events array."""
    return len(dumps(event.to_dict()).encode("utf-8"))


def payload_size(events: Sequence[Event]) -> int:
    """Exact byte size of the batch payload ``{"events": [...]}`` for these events."""
    return len(dumps({"events": [event.to_dict() for event in events]}).encode("utf-8"))


def prefix_sizes(event_sizes: Iterable[int]) -> List[int]:
    """Payload sizes of every prefix of an event list, computed incrementally.

    Element ``k`` is the payload size of the first ``k`` events; element 0 is the
    empty envelope. Separating commas are counted so the result equals
    ``payload_size`` of the same prefix.
    """
    sizes = [_ENVELOPE_BYTES]
    for count, size in enumerate(event_sizes):
        comma = 1 if count > 0 else 0
        sizes.append(sizes[-1] + size + comma)
    return sizes


def batch_request(events: Sequence[Event], client_context: Dict[str, Any]) -> Dict[str, Any]:
    """Build the request body sent to the ingestion endpoint."""
    return {
        "events": [event.to_dict() for event in events],
        "clientContext": dumps(client_context),
    }
