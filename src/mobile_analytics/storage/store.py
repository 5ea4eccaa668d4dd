"""Durable key/value storage for the analytics client.

Every piece of pending work (queued events, batches and the batch index) lives
in a named slot. Slots are written back in full after each mutation so that a
process killed at any point restarts from a consistent snapshot.
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from loguru import logger


class StorageKeys(str, Enum):
    """Names of the persisted slots."""

    EVENTS = "AnalyticsEventStorage"
    BATCHES = "AnalyticsBatchStorage"
    BATCH_INDEX = "AnalyticsBatchIndexStorage"
    GLOBAL_ATTRIBUTES = "AnalyticsGlobalAttributes"
    GLOBAL_METRICS = "AnalyticsGlobalMetrics"
    CLIENT_ID = "AnalyticsClientId"


class StorageBackend(Protocol):
    """Protocol for the persistence collaborator."""

    def get(self, key: str) -> Optional[Any]:
        """Return the value stored in a slot, or None."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Replace the value of a slot."""
        ...

    def reload(self, callback: Optional[Callable[[], None]] = None) -> None:
        """Re-read all slots from the underlying medium, then invoke callback."""
        ...


def _slot_name(namespace: str, key: Any) -> str:
    name = key.value if isinstance(key, StorageKeys) else str(key)
    return f"{namespace}.{name}" if namespace else name


class MemoryStorage:
    """Process-local storage. Values are deep-copied in and out."""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._slots: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def get(self, key: Any) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._slots.get(_slot_name(self.namespace, key)))

    def set(self, key: Any, value: Any) -> None:
        with self._lock:
            self._slots[_slot_name(self.namespace, key)] = copy.deepcopy(value)

    def reload(self, callback: Optional[Callable[[], None]] = None) -> None:
        if callback:
            callback()


class SQLiteStorage:
    """SQLite-backed slot storage with a write-through in-memory cache."""

    def __init__(self, db_path: Path, namespace: str = ""):
        """Initialize the storage.

        Args:
            db_path: Path of the SQLite database file
            namespace: Prefix applied to every slot name (usually the app id)
        """
        self.db_path = Path(db_path)
        self.namespace = namespace
        self._cache: Dict[str, Any] = {}
        self._lock = threading.RLock()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()
        self._load_all()

    def _init_database(self) -> None:
        """Initialize the SQLite database with the slot table."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS slots (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
            logger.info(f"Initialized analytics storage at {self.db_path}")

    def _load_all(self) -> None:
        prefix = _slot_name(self.namespace, "")
        cache: Dict[str, Any] = {}
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute("SELECT name, value FROM slots").fetchall()

        for name, raw in rows:
            if not name.startswith(prefix):
                continue
            try:
                cache[name] = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.error(f"Discarding corrupt storage slot {name}: {e}")

        with self._lock:
            self._cache = cache
        logger.debug(f"Loaded {len(cache)} storage slots")

    def get(self, key: Any) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._cache.get(_slot_name(self.namespace, key)))

    def set(self, key: Any, value: Any) -> None:
        name = _slot_name(self.namespace, key)
        raw = json.dumps(value, ensure_ascii=False)
        with self._lock:
            try:
                with sqlite3.connect(self.db_path) as conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO slots (name, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
                        (name, raw),
                    )
                    conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to persist storage slot {name}: {e}")
                raise
            self._cache[name] = json.loads(raw)

    def reload(self, callback: Optional[Callable[[], None]] = None) -> None:
        self._load_all()
        if callback:
            callback()


def create_storage(db_path: Optional[Path], namespace: str = "") -> StorageBackend:
    """Create SQLite storage when a path is configured, otherwise in-memory storage."""
    if db_path is None:
        logger.warning("No storage path configured, pending events will not survive a restart")
        return MemoryStorage(namespace)
    return SQLiteStorage(db_path, namespace)
