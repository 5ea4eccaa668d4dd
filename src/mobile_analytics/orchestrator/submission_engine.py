"""Submission engine coordinating the event flow.

recordEvent → Event Queue → (timer or size threshold) → Scheduler gate
→ Batch Generator → Batch Store → Executor → endpoint → response handler

All state changes happen under one lock. Transport completions and
auto-submit ticks arrive on other threads and are only posted to the task
queue; they are applied by ``run_pending`` or by the background task loop.
"""

from __future__ import annotations

import queue
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..batcher import BatcherConfig, BatchGenerator, BatchStore
from ..core.events import Event
from ..queuer import EventQueue
from ..scheduler import AutoSubmitTimer, SchedulerConfig, SubmissionScheduler, SubmissionState, now_ms
from ..sender import Completion, SubmissionExecutor, SubmitCallback, Transport
from ..storage import StorageBackend

_AUTO_SUBMIT = object()
_STOP = object()


@dataclass
class EngineConfig:
    """Configuration for the submission engine."""

    scheduler_config: SchedulerConfig = field(default_factory=SchedulerConfig)
    batcher_config: BatcherConfig = field(default_factory=BatcherConfig)
    submit_callback: Optional[SubmitCallback] = None
    task_poll_interval: float = 0.5  # seconds


class SubmissionEngine:
    """Owns all submission state: queue, batches, in-flight map, throttle flag and timer."""

    def __init__(
        self,
        storage: StorageBackend,
        transport: Transport,
        client_context: Dict[str, Any],
        config: EngineConfig = EngineConfig(),
        clock: Callable[[], float] = now_ms,
        rng: Optional[random.Random] = None,
        timer: Optional[AutoSubmitTimer] = None,
    ):
        """Initialize the engine, restoring pending work from storage.

        Args:
            storage: Persistence collaborator
            transport: Delivers batch payloads
            client_context: Default context sent with every batch
            config: Engine configuration
            clock: Returns the current time in milliseconds
            rng: Random source for throttle suppression
            timer: Timer handle for the auto-submit heartbeat
        """
        self.config = config
        self.client_context = client_context
        self.clock = clock
        self.transport = transport

        self._lock = threading.RLock()
        self._tasks: queue.Queue = queue.Queue()
        self._running = False
        self._task_thread: Optional[threading.Thread] = None

        self.state = SubmissionState()
        self.event_queue = EventQueue(storage)
        self.batch_store = BatchStore(storage)
        self.generator = BatchGenerator(self.event_queue, self.batch_store, config.batcher_config)
        self.scheduler = SubmissionScheduler(self.state, config.scheduler_config, clock=clock, rng=rng, timer=timer)
        self.executor = SubmissionExecutor(self.batch_store, self.state, transport, completion_sink=self._tasks.put, clock=clock)

    # Caller-facing operations

    def record(self, event: Optional[Event]) -> Optional[Event]:
        """Queue a validated event, submitting early once the queue fills a batch."""
        if event is None:
            return None

        with self._lock:
            self.event_queue.append(event)
            if self.event_queue.payload_size() >= self.config.batcher_config.batch_size_limit:
                logger.debug("Event queue reached the batch size limit, submitting")
                self.submit_events()
        return event

    def submit_events(self, client_context: Optional[Dict[str, Any]] = None, submit_callback: Optional[SubmitCallback] = None) -> List[str]:
        """Run one submission pass if the gate allows it.

        Returns:
            Ids of the batches dispatched by this pass
        """
        with self._lock:
            self.scheduler.rearm(self._post_auto_submit)

            now = self.clock()
            self.scheduler.release_stale_in_flight(now)

            reason = self.scheduler.check_gate(self.event_queue.is_empty(), self.batch_store.is_empty(), now)
            if reason:
                logger.warning(reason)
                return []

            self.generator.generate_batches()
            self.scheduler.record_submit(now)

            context = client_context or self.client_context
            callback = submit_callback or self.config.submit_callback

            if self.state.is_throttled:
                logger.warning("Is throttled, submitting first batch")
                batch_id = self.executor.submit_batch_by_id(self.batch_store.oldest(), context, callback)
                return [batch_id] if batch_id else []

            return self.executor.submit_all_batches(context, callback)

    def submit_batch_by_id(self, batch_id: str, client_context: Optional[Dict[str, Any]] = None, submit_callback: Optional[SubmitCallback] = None) -> Optional[str]:
        """Dispatch a single stored batch regardless of the gate."""
        with self._lock:
            return self.executor.submit_batch_by_id(batch_id, client_context or self.client_context, submit_callback or self.config.submit_callback)

    # Task processing

    def run_pending(self, timeout: Optional[float] = None) -> int:
        """Apply queued completions and ticks on the calling thread.

        Args:
            timeout: Seconds to wait for the first task; None returns immediately when idle

        Returns:
            Number of tasks processed
        """
        processed = 0
        block = timeout is not None
        while True:
            try:
                task = self._tasks.get(block=block, timeout=timeout)
            except queue.Empty:
                return processed

            block = False
            if task is _STOP:
                return processed
            self._process_task(task)
            processed += 1

    def _process_task(self, task: Any) -> None:
        with self._lock:
            if task is _AUTO_SUBMIT:
                self.submit_events()
            elif isinstance(task, Completion):
                self.executor.handle_completion(task)
            else:
                logger.warning(f"Ignoring unknown task {task!r}")

    def _post_auto_submit(self) -> None:
        self._tasks.put(_AUTO_SUBMIT)

    def _task_loop(self) -> None:
        """Main task loop."""
        logger.debug("Started submission task loop")

        while self._running:
            try:
                task = self._tasks.get(timeout=self.config.task_poll_interval)
            except queue.Empty:
                continue

            if task is _STOP:
                break

            try:
                self._process_task(task)
            except Exception as e:
                logger.error(f"Error in submission task loop: {e}")

        logger.debug("Submission task loop finished")

    # Lifecycle

    def start(self) -> None:
        """Start the background task loop and, with auto-submit on, run a first pass."""
        with self._lock:
            if self._running:
                logger.warning("Submission engine is already running")
                return

            self._running = True
            self._task_thread = threading.Thread(target=self._task_loop, daemon=True, name="AnalyticsSubmission")
            self._task_thread.start()
            logger.info("Started submission engine")

            if self.config.scheduler_config.auto_submit_events:
                self.submit_events()

    def stop(self) -> None:
        """Stop the timer and the task loop. Pending work stays in storage."""
        self.scheduler.stop()

        with self._lock:
            if not self._running:
                return
            self._running = False

        self._tasks.put(_STOP)
        if self._task_thread:
            self._task_thread.join(timeout=5.0)

        logger.info(
            f"Stopped submission engine. Queued events: {self.event_queue.size()}, "
            f"pending batches: {len(self.batch_store)}, in flight: {len(self.state.batches_in_flight)}"
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        with self._lock:
            return {
                "running": self._running,
                "queue": self.event_queue.get_stats(),
                "batches": self.batch_store.get_stats(),
                "generator": self.generator.get_stats(),
                "scheduler": self.scheduler.get_stats(),
                "executor": self.executor.get_stats(),
                "pending_tasks": self._tasks.qsize(),
            }
