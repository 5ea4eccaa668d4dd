"""Batch delivery: transport, dispatch and response handling."""

from .http_sender import HTTPTransport, SenderConfig, parse_error_code
from .response_handler import ResponseOutcome, evaluate_response
from .submission_executor import Completion, SubmissionExecutor
from .transport import SubmitCallback, Transport

__all__ = [
    "HTTPTransport",
    "SenderConfig",
    "parse_error_code",
    "ResponseOutcome",
    "evaluate_response",
    "Completion",
    "SubmissionExecutor",
    "SubmitCallback",
    "Transport",
]
