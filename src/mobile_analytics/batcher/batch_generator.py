"""Batch generator: partitions the event queue into size-bounded batches.

Each pass takes the longest prefix of the queue whose encoded payload fits
in the configured soft limit and registers it in the batch store. A batch
must stay under the hard cap. Only a single event too large for the hard cap
is dropped, with an error, so that it cannot block the queue forever.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from loguru import logger

from ..core.events import Batch
from ..core.payload import payload_size
from ..queuer import EventQueue
from .batch_store import BatchStore

HARD_BATCH_SIZE_LIMIT = 512000


@dataclass
class BatcherConfig:
    """Configuration for the batch generator."""

    batch_size_limit: int = 256000  # Preferred payload size in bytes
    hard_size_limit: int = HARD_BATCH_SIZE_LIMIT  # Payloads must stay below this


class BatchGenerator:
    """Moves events from the queue into the batch store."""

    def __init__(self, event_queue: EventQueue, batch_store: BatchStore, config: BatcherConfig = BatcherConfig()):
        self.event_queue = event_queue
        self.batch_store = batch_store
        self.config = config

        self._total_events_batched = 0
        self._total_events_dropped = 0

    @property
    def max_batch_bytes(self) -> int:
        """Search bound for a batch prefix. Only a single event can reach the hard cap."""
        return min(self.config.batch_size_limit, self.config.hard_size_limit - 1)

    def generate_batches(self) -> List[str]:
        """Drain the whole queue into new batches and return their ids in creation order."""
        created = []

        while not self.event_queue.is_empty():
            logger.debug(f"{self.event_queue.size()} events to be batched")

            count = self.event_queue.prefix_length(self.max_batch_bytes, min_count=1)
            events = self.event_queue.peek(count)
            size = payload_size(events)
            logger.debug(f"{count} events in batch ({size} bytes)")

            if size < self.config.hard_size_limit:
                batch = Batch(events=events)
                self.batch_store.add(batch)
                created.append(batch.id)
                self._total_events_batched += count
            else:
                logger.error(f"Events too large: dropping {count} event(s) of {size} bytes")
                self._total_events_dropped += count

            # Batch must be persisted before the queue shrinks
            self.event_queue.remove_prefix(count)

        if created:
            logger.info(f"Generated {len(created)} batch(es)")
        return created

    def get_stats(self) -> dict:
        return {
            "total_events_batched": self._total_events_batched,
            "total_events_dropped": self._total_events_dropped,
            "batch_size_limit": self.config.batch_size_limit,
        }
