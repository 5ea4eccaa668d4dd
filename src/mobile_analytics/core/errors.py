"""Error types raised and reported by the analytics client."""

from __future__ import annotations

from typing import Optional

BAD_REQUEST = "BadRequestException"
SERIALIZATION = "SerializationException"
VALIDATION = "ValidationException"
THROTTLING = "ThrottlingException"

# Requests rejected for these reasons can never succeed on retry
NON_RETRYABLE_CODES = frozenset({BAD_REQUEST, SERIALIZATION, VALIDATION})


class ConfigurationError(ValueError):
    """Raised when the client is created with an unusable configuration."""


class SubmitError(Exception):
    """A failed batch submission as reported by the ingestion endpoint."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    @property
    def is_throttling(self) -> bool:
        return self.code == THROTTLING

    @property
    def is_terminal(self) -> bool:
        """True when the request itself was invalid and retrying cannot help."""
        return self.status_code in (None, 400) and self.code in NON_RETRYABLE_CODES

    def __repr__(self) -> str:
        return f"SubmitError(code={self.code!r}, status_code={self.status_code!r}, message={self.message!r})"
