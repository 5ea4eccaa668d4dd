"""Shared fixtures: fake transport, controllable clock and engine factory."""

from __future__ import annotations

import random
from concurrent.futures import Future
from typing import Any, Dict, List, Optional

import pytest

from mobile_analytics.batcher import BatcherConfig
from mobile_analytics.core import Session, SubmitError
from mobile_analytics.core.events import Event
from mobile_analytics.orchestrator import EngineConfig, SubmissionEngine
from mobile_analytics.scheduler import SchedulerConfig
from mobile_analytics.storage import MemoryStorage

CLIENT_CONTEXT = {"client": {"client_id": "test-client"}, "services": {"mobile_analytics": {"app_id": "test-app"}}}


class FakeClock:
    """Millisecond clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeTransport:
    """Records every payload and hands back futures the test completes."""

    def __init__(self):
        self.submissions: List[Dict[str, Any]] = []
        self.futures: List[Future] = []
        self.closed = False

    def submit(self, payload: Dict[str, Any]) -> Future:
        future: Future = Future()
        self.submissions.append(payload)
        self.futures.append(future)
        return future

    def close(self) -> None:
        self.closed = True

    def succeed(self, index: int = -1, response: Optional[Dict[str, Any]] = None) -> None:
        self.futures[index].set_result(response or {"status": 202})

    def fail(self, index: int = -1, code: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.futures[index].set_exception(SubmitError(f"{code} ({status_code})", code=code, status_code=status_code))

    def event_types(self, index: int = -1) -> List[str]:
        return [event["eventType"] for event in self.submissions[index]["events"]]


def build_event(event_type: str = "click", attributes: Optional[Dict[str, str]] = None, metrics: Optional[Dict[str, Any]] = None) -> Event:
    return Event(
        event_type=event_type,
        session=Session(id="session-1", start_timestamp="2024-01-01T10:00:00.000Z"),
        timestamp="2024-01-01T10:00:05.000Z",
        attributes=attributes or {},
        metrics=metrics or {},
    )


@pytest.fixture
def make_event():
    return build_event


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage(namespace="test-app")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_engine(storage, transport, clock):
    """Build engines sharing the fixture storage, transport and clock."""
    engines = []

    def factory(batch_size_limit: int = 256000, hard_size_limit: int = 512000, callback=None, seed: int = 7, **scheduler_options) -> SubmissionEngine:
        scheduler_options.setdefault("auto_submit_events", False)
        config = EngineConfig(
            scheduler_config=SchedulerConfig(**scheduler_options),
            batcher_config=BatcherConfig(batch_size_limit=batch_size_limit, hard_size_limit=hard_size_limit),
            submit_callback=callback,
        )
        engine = SubmissionEngine(storage, transport, CLIENT_CONTEXT, config, clock=clock, rng=random.Random(seed))
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.stop()
