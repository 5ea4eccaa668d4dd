"""Transport protocol for delivering batch payloads."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional, Protocol

from ..core.errors import SubmitError

# Invoked with (error, response, batch_id) once a batch response has been handled
SubmitCallback = Callable[[Optional[SubmitError], Optional[Dict[str, Any]], str], None]


class Transport(Protocol):
    """Sends one batch payload to the ingestion endpoint without blocking.

    The returned future resolves to the endpoint response, or fails with a
    ``SubmitError`` describing the rejection.
    """

    def submit(self, payload: Dict[str, Any]) -> Future:
        ...

    def close(self) -> None:
        ...
