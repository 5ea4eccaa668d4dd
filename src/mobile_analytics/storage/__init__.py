"""Persistent slot storage for queued events and batches."""

from .store import MemoryStorage, SQLiteStorage, StorageBackend, StorageKeys, create_storage

__all__ = ["StorageBackend", "StorageKeys", "MemoryStorage", "SQLiteStorage", "create_storage"]
