"""Submission scheduler: auto-submit heartbeat, throttle state and the submission gate.

The scheduler decides whether a submission pass may run right now. While the
endpoint is throttling this client, passes are let through with a probability
that ramps up quadratically with the time since the last submission, which
spreads retries from many clients over the ramp window.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from loguru import logger

from .timer import AutoSubmitTimer

THROTTLE_RAMP_MS = 60000
MIN_SUBMIT_INTERVAL_MS = 1000


def now_ms() -> float:
    """Wall clock time in milliseconds."""
    return time.time() * 1000


def throttle_suppression_probability(now: float, last_submit_timestamp: Optional[float], ramp_ms: float = THROTTLE_RAMP_MS) -> float:
    """Probability of allowing a submission while throttled.

    ``min(1, (now - last_submit)^2 / ramp^2)``; certain when nothing was submitted yet.
    """
    if last_submit_timestamp is None:
        return 1.0
    elapsed = max(0.0, now - last_submit_timestamp)
    return min(1.0, (elapsed**2) / (ramp_ms**2))


@dataclass
class SubmissionState:
    """Process-lifetime submission state. Not persisted."""

    batches_in_flight: Dict[str, float] = field(default_factory=dict)  # batch id -> dispatch time (ms)
    is_throttled: bool = False
    last_submit_timestamp: Optional[float] = None


@dataclass
class SchedulerConfig:
    """Configuration for the submission scheduler."""

    auto_submit_events: bool = True
    auto_submit_interval: int = 10000  # ms
    in_flight_timeout: int = 120000  # ms before an unanswered batch is released
    min_submit_interval: int = MIN_SUBMIT_INTERVAL_MS
    throttle_ramp: int = THROTTLE_RAMP_MS


class SubmissionScheduler:
    """Owns the auto-submit timer and evaluates the submission gate."""

    def __init__(
        self,
        state: SubmissionState,
        config: SchedulerConfig = SchedulerConfig(),
        clock: Callable[[], float] = now_ms,
        rng: Optional[random.Random] = None,
        timer: Optional[AutoSubmitTimer] = None,
    ):
        """Initialize the scheduler.

        Args:
            state: Shared submission state
            config: Scheduler configuration
            clock: Returns the current time in milliseconds
            rng: Random source for throttle suppression draws
            timer: Timer handle for the auto-submit heartbeat
        """
        self.state = state
        self.config = config
        self.clock = clock
        self.rng = rng or random.Random()
        self.timer = timer or AutoSubmitTimer()

        self._total_refusals = 0

    def rearm(self, callback: Callable[[], None]) -> None:
        """Restart the auto-submit heartbeat if auto-submit is enabled."""
        if self.config.auto_submit_events:
            self.timer.arm(self.config.auto_submit_interval / 1000, callback)

    def stop(self) -> None:
        self.timer.cancel()

    def suppression_probability(self, now: Optional[float] = None) -> float:
        now = self.clock() if now is None else now
        return throttle_suppression_probability(now, self.state.last_submit_timestamp, self.config.throttle_ramp)

    def release_stale_in_flight(self, now: Optional[float] = None) -> List[str]:
        """Forget batches whose response has not arrived within in_flight_timeout.

        Released batches stay in the batch store and become eligible for the
        next submission pass.
        """
        now = self.clock() if now is None else now
        stale = [batch_id for batch_id, dispatched in self.state.batches_in_flight.items() if now - dispatched > self.config.in_flight_timeout]

        for batch_id in stale:
            del self.state.batches_in_flight[batch_id]
            logger.warning(f"No response for batch {batch_id} after {self.config.in_flight_timeout}ms, releasing it for resubmission")

        return stale

    def check_gate(self, queue_empty: bool, store_empty: bool, now: Optional[float] = None) -> Optional[str]:
        """Return the reason a submission pass must not run now, or None if it may."""
        now = self.clock() if now is None else now
        reason = None

        if self.state.is_throttled and self.suppression_probability(now) < self.rng.random():
            reason = "Prevented submission while throttled"
        elif self.state.batches_in_flight:
            reason = "Prevented submission while batches are in flight"
        elif queue_empty and store_empty:
            reason = "No batches or events to be submitted"
        elif self.state.last_submit_timestamp is not None and now - self.state.last_submit_timestamp < self.config.min_submit_interval:
            reason = "Prevented multiple submissions in under a second"

        if reason:
            self._total_refusals += 1
        return reason

    def record_submit(self, now: Optional[float] = None) -> None:
        self.state.last_submit_timestamp = self.clock() if now is None else now

    def get_stats(self) -> dict:
        return {
            "is_throttled": self.state.is_throttled,
            "batches_in_flight": len(self.state.batches_in_flight),
            "last_submit_timestamp": self.state.last_submit_timestamp,
            "timer_armed": self.timer.is_armed,
            "total_refusals": self._total_refusals,
        }
