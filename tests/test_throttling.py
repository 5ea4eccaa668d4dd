"""Tests for throttle suppression, response classification and the auto-submit timer."""

import random
import threading
import time

from loguru import logger

from mobile_analytics.core import SubmitError
from mobile_analytics.scheduler import AutoSubmitTimer, SchedulerConfig, SubmissionScheduler, SubmissionState, throttle_suppression_probability
from mobile_analytics.sender import evaluate_response


def test_suppression_probability_ramp():
    """Test the throttle suppression ramp."""
    assert throttle_suppression_probability(0, 0) == 0.0
    assert throttle_suppression_probability(30000, 0) == 0.25
    assert throttle_suppression_probability(59700, 0) >= 0.99
    assert throttle_suppression_probability(60000, 0) == 1.0
    assert throttle_suppression_probability(600000, 0) == 1.0
    assert throttle_suppression_probability(5000, None) == 1.0


def _throttled_scheduler(seed):
    state = SubmissionState(is_throttled=True, last_submit_timestamp=0.0)
    return SubmissionScheduler(state, SchedulerConfig(auto_submit_events=False), clock=lambda: 0.0, rng=random.Random(seed))


def _pass_rate(scheduler, elapsed, trials=1000):
    passed = sum(1 for _ in range(trials) if scheduler.check_gate(False, False, now=elapsed) is None)
    return passed / trials


def test_submissions_approach_certainty_near_sixty_seconds():
    """Test throttled pass rates over elapsed time."""
    scheduler = _throttled_scheduler(seed=1234)

    rates = [_pass_rate(scheduler, elapsed) for elapsed in (5000, 20000, 40000, 59700)]
    logger.info(f"Pass rates while throttled: {rates}")

    assert rates == sorted(rates), "pass rate must grow with elapsed time"
    assert rates[0] < 0.05
    assert rates[-1] >= 0.97
    assert _pass_rate(scheduler, 60000) == 1.0


def test_throttle_refusal_reason():
    """Test the throttled refusal."""
    scheduler = _throttled_scheduler(seed=99)
    assert scheduler.check_gate(False, False, now=1000) == "Prevented submission while throttled"
    assert scheduler.get_stats()["total_refusals"] == 1


def test_gate_checks_in_order():
    """Test the order of gate checks."""
    state = SubmissionState(batches_in_flight={"b": 0.0}, last_submit_timestamp=0.0)
    scheduler = SubmissionScheduler(state, SchedulerConfig(auto_submit_events=False), clock=lambda: 0.0)

    assert scheduler.check_gate(True, True, now=500) == "Prevented submission while batches are in flight"

    state.batches_in_flight.clear()
    assert scheduler.check_gate(True, True, now=500) == "No batches or events to be submitted"
    assert scheduler.check_gate(False, True, now=500) == "Prevented multiple submissions in under a second"
    assert scheduler.check_gate(False, True, now=1000) is None


def test_evaluate_response_classification():
    """Test response classification."""
    success = evaluate_response(False, None)
    assert (success.clear_batch, success.is_throttled, success.flush_backlog) == (True, False, False)

    throttled = evaluate_response(False, SubmitError("slow down", code="ThrottlingException", status_code=400))
    assert (throttled.clear_batch, throttled.is_throttled) == (False, True)

    recovered = evaluate_response(True, None)
    assert recovered.flush_backlog is True

    terminal = evaluate_response(False, SubmitError("bad", code="ValidationException", status_code=400))
    assert terminal.clear_batch is True

    no_status = evaluate_response(False, SubmitError("bad", code="BadRequestException"))
    assert no_status.clear_batch is True

    server = evaluate_response(True, SubmitError("down", code="ValidationException", status_code=500))
    assert (server.clear_batch, server.is_throttled, server.flush_backlog) == (False, True, False)


def test_timer_rearm_replaces_pending_timer():
    """Test that re-arming replaces the pending timer."""
    fired = []
    done = threading.Event()

    def callback():
        fired.append(time.monotonic())
        done.set()

    timer = AutoSubmitTimer()
    try:
        timer.arm(0.05, callback)
        timer.arm(0.1, callback)
        assert done.wait(2.0), "timer never fired"
        time.sleep(0.2)
        assert len(fired) == 1, "re-arming must cancel the earlier timer"
    finally:
        timer.cancel()
    assert timer.is_armed is False


def test_scheduler_only_arms_when_auto_submit_enabled():
    """Test timer arming with auto-submit on and off."""
    disabled = SubmissionScheduler(SubmissionState(), SchedulerConfig(auto_submit_events=False))
    disabled.rearm(lambda: None)
    assert disabled.timer.is_armed is False

    enabled = SubmissionScheduler(SubmissionState(), SchedulerConfig(auto_submit_events=True, auto_submit_interval=60000))
    try:
        enabled.rearm(lambda: None)
        assert enabled.timer.is_armed is True
    finally:
        enabled.stop()
    assert enabled.timer.is_armed is False
