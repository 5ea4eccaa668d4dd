"""Submission scheduling: auto-submit timer and throttle-aware gate."""

from .submission_scheduler import (
    MIN_SUBMIT_INTERVAL_MS,
    THROTTLE_RAMP_MS,
    SchedulerConfig,
    SubmissionScheduler,
    SubmissionState,
    now_ms,
    throttle_suppression_probability,
)
from .timer import AutoSubmitTimer

__all__ = [
    "AutoSubmitTimer",
    "SchedulerConfig",
    "SubmissionScheduler",
    "SubmissionState",
    "throttle_suppression_probability",
    "now_ms",
    "THROTTLE_RAMP_MS",
    "MIN_SUBMIT_INTERVAL_MS",
]
