"""
Document store contract.

The services never talk to SQLAlchemy (or any other backend) directly.
They receive a DocumentStore and use a small, collection-oriented API:

- get(collection, key)
- query(collection, where, order_by, descending, limit, offset)
- add(collection, data)            -> generated key
- update(collection, key, data)    -> NotFound when the key is missing
- batch().upsert(...).commit()     -> atomic, at most MAX_BATCH_OPS operations

Documents are plain dicts that always carry their key under "id".
SERVER_TIMESTAMP values are replaced with the store clock at write time.
"""

import abc
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, NamedTuple, Optional

COLLECTIONS = ("students", "views", "users")

# Upper bound on the operations of a single atomic batch
MAX_BATCH_OPS = 500


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

_clock_lock = threading.Lock()
_last_timestamp: Optional[datetime] = None


def server_now() -> datetime:
    """
    Current UTC time, strictly increasing within the process.

    Two events written back-to-back never share a timestamp, so ordering by
    time stays deterministic even on coarse system clocks.
    """
    global _last_timestamp
    with _clock_lock:
        now = datetime.now(timezone.utc)
        if _last_timestamp is not None and now <= _last_timestamp:
            now = _last_timestamp + timedelta(microseconds=1)
        _last_timestamp = now
        return now


def resolve_timestamps(data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Return a copy of data with every SERVER_TIMESTAMP replaced by now."""
    return {
        field: (now if value is SERVER_TIMESTAMP else value)
        for field, value in data.items()
    }


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError("Unknown collection: {}".format(collection))


class WriteOp(NamedTuple):
    """One merge upsert inside a batch."""
    collection: str
    key: str
    data: Dict[str, Any]
    on_create: Dict[str, Any]


class WriteBatch:
    """
    Accumulates merge upserts and applies them as one atomic unit.

    Fields in `data` overwrite; fields absent from `data` are preserved;
    fields in `on_create` are written only when the document does not exist.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: List[WriteOp] = []
        self._committed = False

    def upsert(self, collection: str, key: str, data: Dict[str, Any],
               on_create: Optional[Dict[str, Any]] = None) -> "WriteBatch":
        check_collection(collection)
        if self._committed:
            raise RuntimeError("Batch already committed")
        if len(self._ops) >= MAX_BATCH_OPS:
            raise ValueError("A batch holds at most {} operations".format(MAX_BATCH_OPS))
        self._ops.append(WriteOp(collection, key, dict(data), dict(on_create or {})))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> int:
        """Apply every operation or none of them. Returns the operation count."""
        if self._committed:
            raise RuntimeError("Batch already committed")
        ops = list(self._ops)
        if ops:
            self._store.commit_batch(ops)
        self._committed = True
        return len(ops)


class DocumentStore(abc.ABC):
    """Collection/key document store injected into every service call."""

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    @abc.abstractmethod
    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """Fetch one document, or None when the key does not exist."""

    @abc.abstractmethod
    def query(self, collection: str, where: Optional[Dict[str, Any]] = None,
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        """Documents whose fields equal every value in `where`."""

    @abc.abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a document under a generated key and return the key."""

    @abc.abstractmethod
    def update(self, collection: str, key: str, data: Dict[str, Any]) -> None:
        """Overwrite the given fields of an existing document."""

    @abc.abstractmethod
    def commit_batch(self, ops: List[WriteOp]) -> None:
        """Apply a list of upserts atomically. Called by WriteBatch.commit."""
