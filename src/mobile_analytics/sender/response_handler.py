"""Interpretation of submission responses.

``evaluate_response`` is a pure decision function: given the throttle flag
before the response and the error (if any), it says whether the batch is
done with, what the throttle flag becomes, and whether the backlog should be
flushed because throttling has just lifted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.errors import NON_RETRYABLE_CODES, THROTTLING, SubmitError


@dataclass(frozen=True)
class ResponseOutcome:
    """Decision taken for one batch response."""

    clear_batch: bool
    is_throttled: bool
    flush_backlog: bool


def evaluate_response(was_throttled: bool, error: Optional[SubmitError]) -> ResponseOutcome:
    """Decide what a response means for its batch and for the throttle state.

    - success: clear the batch, throttling is over
    - no status code or 400: clear only for invalid-request codes, and the
      throttle flag follows whether the code is a throttling one
    - any other status: keep the batch, throttle flag unchanged
    """
    if error is None:
        clear_batch, is_throttled = True, False
    elif error.status_code is None or error.status_code == 400:
        clear_batch = error.code in NON_RETRYABLE_CODES
        is_throttled = error.code == THROTTLING
    else:
        clear_batch, is_throttled = False, was_throttled

    return ResponseOutcome(
        clear_batch=clear_batch,
        is_throttled=is_throttled,
        flush_backlog=was_throttled and not is_throttled,
    )
