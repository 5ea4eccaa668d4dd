"""HTTP transport for delivering batch payloads to the ingestion endpoint.

Requests run on a small worker pool so that dispatch returns immediately.
Rejections are translated into ``SubmitError`` carrying the HTTP status and
the machine-readable error code reported by the endpoint.
"""

from __future__ import annotations

import json
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from loguru import logger

from ..core.errors import SubmitError
from ..core.payload import dumps


@dataclass
class SenderConfig:
    """Configuration for the HTTP transport."""

    endpoint_url: str = "http://localhost:8000/2014-06-05/events"  # Batch ingestion endpoint
    api_key: str = ""  # Sent as x-api-key when set
    client_id: str = ""  # Client identifier
    timeout_seconds: int = 30  # Request timeout
    max_workers: int = 4  # Concurrent requests
    max_retries: int = 3  # Retries for network errors and 5xx responses
    retry_backoff_base: float = 3.0  # Base backoff delay in seconds
    retry_backoff_max: float = 60.0  # Maximum backoff delay in seconds


def parse_error_code(headers: Optional[Mapping[str, str]], body: bytes) -> Optional[str]:
    """Extract the error code from an error response.

    Looks at the ``x-amzn-ErrorType`` header first (``Code:detail``), then the
    ``__type`` or ``code`` field of a JSON body (``namespace#Code``).
    """
    if headers is not None:
        error_type = headers.get("x-amzn-ErrorType")
        if error_type:
            return error_type.split(":", 1)[0]

    try:
        data = json.loads(body.decode("utf-8")) if body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None

    if not isinstance(data, dict):
        return None

    code = data.get("__type") or data.get("code")
    if not code:
        return None
    return str(code).rsplit("#", 1)[-1]


class HTTPTransport:
    """Posts batch payloads over HTTP without blocking the caller."""

    def __init__(self, config: SenderConfig = SenderConfig()):
        self.config = config
        self._pool = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="AnalyticsSender")

    def submit(self, payload: Dict[str, Any]) -> Future:
        return self._pool.submit(self._send_with_retries, payload)

    def close(self) -> None:
        self._pool.shutdown(wait=False)

    def _send_with_retries(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send payload with retry logic.

        Network errors and 5xx responses are retried with exponential backoff.
        Any other rejection is raised straight away.

        Raises:
            SubmitError: The last error once retries are exhausted, or a non-retryable rejection
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return self._send_request(payload)
            except SubmitError as e:
                retryable = e.status_code is None or e.status_code >= 500
                if not retryable or attempt >= self.config.max_retries:
                    raise

                delay = min(self.config.retry_backoff_base * (2**attempt), self.config.retry_backoff_max)
                logger.warning(f"Send attempt {attempt + 1} failed: {e.message}. Retrying in {delay:.1f}s...")
                time.sleep(delay)

        raise SubmitError(f"Failed after {self.config.max_retries + 1} attempts")

    def _send_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a single HTTP request.

        Returns:
            Dictionary with the response status and decoded body

        Raises:
            SubmitError: The endpoint rejected the batch or could not be reached
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"MobileAnalytics-Client/{self.config.client_id}",
        }
        if self.config.api_key:
            headers["x-api-key"] = self.config.api_key

        req = Request(self.config.endpoint_url, data=dumps(payload).encode("utf-8"), headers=headers, method="POST")

        try:
            with urlopen(req, timeout=self.config.timeout_seconds) as response:
                raw = response.read()
                logger.debug(f"Successful response: {response.status}")
                try:
                    body = json.loads(raw.decode("utf-8")) if raw else None
                except (UnicodeDecodeError, json.JSONDecodeError):
                    body = None
                return {"status": response.status, "body": body}

        except HTTPError as e:
            body = e.read() if e.fp is not None else b""
            code = parse_error_code(e.headers, body)
            raise SubmitError(f"HTTP error: {e.code} {e.reason}", code=code, status_code=e.code) from e

        except URLError as e:
            raise SubmitError(f"Network error: {e.reason}") from e
