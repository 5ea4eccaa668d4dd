"""Persisted bookkeeping of batches awaiting submission.

Two storage slots are kept in step: BATCHES maps a batch id to its events and
BATCH_INDEX lists batch ids in submission order, oldest first.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from loguru import logger

from ..core.events import Batch, Event
from ..queuer import restore_events
from ..storage import StorageBackend, StorageKeys


class BatchStore:
    """Mapping of batch id to events plus the ordered batch index."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self._lock = threading.RLock()
        self._batches: Dict[str, Tuple[Event, ...]] = {}
        self._index: Tuple[str, ...] = ()

        self._total_batches_created = 0
        self._total_batches_cleared = 0

        self.load()

    def load(self) -> None:
        """Rebuild batches and index from storage, repairing any drift between the two slots."""
        raw_batches = self.storage.get(StorageKeys.BATCHES) or {}
        raw_index = self.storage.get(StorageKeys.BATCH_INDEX) or []

        batches = {batch_id: tuple(restore_events(events)) for batch_id, events in raw_batches.items()}

        index = []
        for batch_id in raw_index:
            if batch_id in batches and batch_id not in index:
                index.append(batch_id)
            else:
                logger.warning(f"Dropping stale batch index entry {batch_id}")

        # A batch written just before a crash may be missing from the index
        for batch_id in batches:
            if batch_id not in index:
                logger.warning(f"Re-indexing orphaned batch {batch_id}")
                index.append(batch_id)

        with self._lock:
            self._batches = batches
            self._index = tuple(index)
            if len(index) != len(raw_index) or set(batches) != set(raw_batches):
                self._persist()

        if index:
            logger.info(f"Restored {len(index)} pending batches from storage")

    def _persist(self) -> None:
        self.storage.set(StorageKeys.BATCHES, {batch_id: [event.to_dict() for event in events] for batch_id, events in self._batches.items()})
        self.storage.set(StorageKeys.BATCH_INDEX, list(self._index))

    def add(self, batch: Batch) -> str:
        """Register a batch at the end of the submission order."""
        with self._lock:
            if batch.id in self._batches:
                raise ValueError(f"Batch {batch.id} already exists")

            batches = dict(self._batches)
            batches[batch.id] = tuple(batch.events)
            self._batches = batches
            self._index = self._index + (batch.id,)
            self._persist()
            self._total_batches_created += 1

        logger.debug(f"Stored batch {batch.id} with {batch.size()} events")
        return batch.id

    def get(self, batch_id: str) -> Optional[Batch]:
        with self._lock:
            events = self._batches.get(batch_id)
            if events is None:
                return None
            return Batch(events=list(events), id=batch_id)

    def clear(self, batch_id: str) -> bool:
        """Remove a batch from both slots. Returns False if it was not stored."""
        with self._lock:
            if batch_id not in self._index:
                return False

            batches = dict(self._batches)
            batches.pop(batch_id, None)
            self._batches = batches
            self._index = tuple(entry for entry in self._index if entry != batch_id)
            self._persist()
            self._total_batches_cleared += 1

        logger.debug(f"Cleared batch {batch_id}")
        return True

    def index(self) -> Tuple[str, ...]:
        """Batch ids in submission order."""
        with self._lock:
            return self._index

    def oldest(self) -> Optional[str]:
        with self._lock:
            return self._index[0] if self._index else None

    def __contains__(self, batch_id: object) -> bool:
        with self._lock:
            return batch_id in self._batches

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def is_empty(self) -> bool:
        return len(self) == 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "pending_batches": len(self._index),
                "pending_events": sum(len(events) for events in self._batches.values()),
                "total_batches_created": self._total_batches_created,
                "total_batches_cleared": self._total_batches_cleared,
            }
