"""Batch generation and bookkeeping for pending submissions."""

from .batch_generator import HARD_BATCH_SIZE_LIMIT, BatcherConfig, BatchGenerator
from .batch_store import BatchStore

__all__ = ["BatchGenerator", "BatcherConfig", "BatchStore", "HARD_BATCH_SIZE_LIMIT"]
