"""Persisted FIFO queue of validated events awaiting batching.

The queue is held as an immutable snapshot. Every mutation builds a new
snapshot and writes it back to storage in full before it becomes visible.
"""

from __future__ import annotations

import threading
from typing import List, Optional, Tuple

from loguru import logger

from ..core.events import Event
from ..core.payload import event_size, prefix_sizes
from ..storage import StorageBackend, StorageKeys


class EventQueue:
    """Ordered, persisted sequence of events not yet assigned to a batch."""

    def __init__(self, storage: StorageBackend):
        """Initialize the queue from the EVENTS storage slot.

        Args:
            storage: Persistence collaborator holding the EVENTS slot
        """
        self.storage = storage
        self._lock = threading.RLock()
        self._events: Tuple[Event, ...] = ()
        self._sizes: Tuple[int, ...] = ()
        self.version = 0

        self._total_enqueued = 0
        self._total_dequeued = 0

        self.load()

    def load(self) -> None:
        """Rebuild the in-memory snapshot from storage."""
        events = restore_events(self.storage.get(StorageKeys.EVENTS))
        with self._lock:
            self._events = tuple(events)
            self._sizes = tuple(event_size(event) for event in events)
        if events:
            logger.info(f"Restored {len(events)} queued events from storage")

    def _replace(self, events: Tuple[Event, ...], sizes: Tuple[int, ...]) -> None:
        """Persist a new snapshot, then publish it."""
        self.storage.set(StorageKeys.EVENTS, [event.to_dict() for event in events])
        self._events = events
        self._sizes = sizes
        self.version += 1

    def append(self, event: Event) -> int:
        """Append an event to the tail and return its 0-based position."""
        with self._lock:
            self._replace(self._events + (event,), self._sizes + (event_size(event),))
            self._total_enqueued += 1
            index = len(self._events) - 1

        logger.debug(f"Queued {event.event_type} event at position {index}")
        return index

    def snapshot(self) -> Tuple[Event, ...]:
        """Return the current queue contents, oldest first."""
        with self._lock:
            return self._events

    def size(self) -> int:
        with self._lock:
            return len(self._events)

    def __len__(self) -> int:
        return self.size()

    def is_empty(self) -> bool:
        with self._lock:
            return len(self._events) == 0

    def payload_size(self) -> int:
        """Serialized size of the whole queue encoded as one batch payload."""
        with self._lock:
            return prefix_sizes(self._sizes)[-1]

    def prefix_length(self, max_bytes: int, min_count: int = 0) -> int:
        """Length of the longest prefix whose payload size does not exceed max_bytes.

        The search walks downward from the full queue one event at a time. The
        result is never below ``min_count`` (bounded by the queue length), so a
        single oversized event can still be taken on its own.
        """
        with self._lock:
            sizes = prefix_sizes(self._sizes)

        count = len(sizes) - 1
        floor = min(min_count, count)
        while count > floor and sizes[count] > max_bytes:
            logger.debug(f"Finding batch size ({max_bytes}): {count} ({sizes[count]})")
            count -= 1
        return count

    def peek(self, count: int) -> List[Event]:
        """Return the first ``count`` events without removing them."""
        with self._lock:
            return list(self._events[:count])

    def remove_prefix(self, count: int) -> None:
        """Remove the first ``count`` events and persist the shrunk queue."""
        if count <= 0:
            return
        with self._lock:
            self._replace(self._events[count:], self._sizes[count:])
            self._total_dequeued += count

        logger.debug(f"Removed {count} events from queue, queue size: {self.size()}")

    def drain(self, max_bytes: int, min_count: int = 0) -> List[Event]:
        """Consume the longest prefix fitting in max_bytes and return it."""
        with self._lock:
            count = self.prefix_length(max_bytes, min_count)
            events = self.peek(count)
            self.remove_prefix(count)
            return events

    def get_stats(self) -> dict:
        """Get queue statistics."""
        with self._lock:
            return {
                "current_size": len(self._events),
                "payload_bytes": prefix_sizes(self._sizes)[-1],
                "total_enqueued": self._total_enqueued,
                "total_dequeued": self._total_dequeued,
                "version": self.version,
            }


def restore_events(raw_events: Optional[list]) -> List[Event]:
    """Recreate event objects from a persisted list, skipping unreadable entries."""
    events = []
    for raw in raw_events or []:
        try:
            events.append(Event.from_dict(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Dropping unreadable event: {e}")
    return events
