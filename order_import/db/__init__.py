from .base import BY_ID, DocumentStore, StoreError
from .batch_writer import BatchMetrics, BatchWriteError, BatchWriter, chunked
from .memory import InMemoryStore

__all__ = [
    "BY_ID",
    "BatchMetrics",
    "BatchWriteError",
    "BatchWriter",
    "DocumentStore",
    "InMemoryStore",
    "StoreError",
    "chunked",
]
