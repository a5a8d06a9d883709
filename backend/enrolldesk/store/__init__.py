from enrolldesk.store.base import (
    DocumentStore, WriteBatch, SERVER_TIMESTAMP, MAX_BATCH_OPS, server_now
)
from enrolldesk.store.memory import MemoryDocumentStore

__all__ = [
    "DocumentStore", "WriteBatch", "SERVER_TIMESTAMP", "MAX_BATCH_OPS",
    "server_now", "MemoryDocumentStore",
]
