"""Submission executor: dispatches batches and applies their responses.

Dispatch never waits for the network. Each transport future reports back by
posting a ``Completion`` to the engine's task queue; ``handle_completion``
then runs on the engine's single mutator context.
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..batcher import BatchStore
from ..core.errors import SubmitError
from ..core.payload import batch_request
from ..scheduler import SubmissionState, now_ms
from .response_handler import evaluate_response
from .transport import SubmitCallback, Transport


def _noop_callback(error: Optional[SubmitError], response: Optional[Dict[str, Any]], batch_id: str) -> None:
    pass


@dataclass
class Completion:
    """Result of one dispatched batch, waiting to be handled."""

    batch_id: str
    callback: SubmitCallback
    client_context: Dict[str, Any]
    dispatched_at: float
    response: Optional[Dict[str, Any]] = None
    error: Optional[SubmitError] = None


class SubmissionExecutor:
    """Sends batches through the transport and tracks them while in flight."""

    def __init__(
        self,
        batch_store: BatchStore,
        state: SubmissionState,
        transport: Transport,
        completion_sink: Callable[[Completion], None],
        clock: Callable[[], float] = now_ms,
    ):
        """Initialize the executor.

        Args:
            batch_store: Store holding the batches to send
            state: Shared submission state (in-flight map, throttle flag)
            transport: Delivers payloads to the ingestion endpoint
            completion_sink: Receives completions from transport threads
            clock: Returns the current time in milliseconds
        """
        self.batch_store = batch_store
        self.state = state
        self.transport = transport
        self.completion_sink = completion_sink
        self.clock = clock

        self._total_dispatched = 0
        self._total_succeeded = 0
        self._total_failed = 0

    def submit_batch_by_id(self, batch_id: Optional[str], client_context: Dict[str, Any], callback: Optional[SubmitCallback] = None) -> Optional[str]:
        """Dispatch one stored batch and return its id immediately."""
        batch = self.batch_store.get(batch_id) if batch_id else None
        if batch is None:
            logger.error(f"Invalid batch id passed to submit_batch_by_id: {batch_id!r}")
            return None

        callback = callback or _noop_callback
        dispatched_at = self.clock()
        self.state.batches_in_flight[batch.id] = dispatched_at
        self._total_dispatched += 1
        logger.debug(f"Submitting batch {batch.id} with {batch.size()} events")

        try:
            future = self.transport.submit(batch_request(batch.events, client_context))
        except Exception as e:
            logger.error(f"Transport failed to dispatch batch {batch.id}: {e}")
            future = Future()
            future.set_exception(e)

        future.add_done_callback(lambda done: self.completion_sink(self._to_completion(done, batch.id, callback, client_context, dispatched_at)))
        return batch.id

    def submit_all_batches(self, client_context: Dict[str, Any], callback: Optional[SubmitCallback] = None) -> List[str]:
        """Dispatch every stored batch not already in flight, in index order."""
        submitted = []
        for batch_id in self.batch_store.index():
            if batch_id in self.state.batches_in_flight:
                continue
            if self.submit_batch_by_id(batch_id, client_context, callback):
                submitted.append(batch_id)
        return submitted

    def handle_completion(self, completion: Completion) -> None:
        """Apply a batch response to the store and throttle state, then notify the caller."""
        outcome = evaluate_response(self.state.is_throttled, completion.error)

        if completion.error is not None:
            self._total_failed += 1
            logger.error(f"Failed to submit batch {completion.batch_id}: {completion.error!r}")
        else:
            self._total_succeeded += 1
            logger.info(f"Events Submitted Successfully (batch {completion.batch_id})")

        self.state.is_throttled = outcome.is_throttled
        if outcome.is_throttled:
            logger.warning("Application is currently throttled")

        if outcome.clear_batch:
            self.batch_store.clear(completion.batch_id)
        # Only the dispatch that is still tracked may release the in-flight marker
        in_flight_since = self.state.batches_in_flight.get(completion.batch_id)
        if in_flight_since == completion.dispatched_at:
            del self.state.batches_in_flight[completion.batch_id]
        elif in_flight_since is not None:
            logger.debug(f"Late response for batch {completion.batch_id}, a newer dispatch is still in flight")

        try:
            completion.callback(completion.error, completion.response, completion.batch_id)
        except Exception as e:
            logger.error(f"Submit callback raised for batch {completion.batch_id}: {e}")

        if outcome.flush_backlog:
            logger.warning("Was throttled, flushing remaining batches")
            self.submit_all_batches(completion.client_context, completion.callback)

    @staticmethod
    def _to_completion(
        future: Future, batch_id: str, callback: SubmitCallback, client_context: Dict[str, Any], dispatched_at: float
    ) -> Completion:
        completion = Completion(batch_id=batch_id, callback=callback, client_context=client_context, dispatched_at=dispatched_at)
        try:
            completion.response = future.result()
        except SubmitError as e:
            completion.error = e
        except Exception as e:
            completion.error = SubmitError(f"Unexpected error submitting batch: {e}")
        return completion

    def get_stats(self) -> dict:
        return {
            "total_dispatched": self._total_dispatched,
            "total_succeeded": self._total_succeeded,
            "total_failed": self._total_failed,
        }
