"""In-process document store used by the test-suite and local experiments."""

import uuid
from typing import Any, Dict, List, Optional

from enrolldesk.errors import NotFound
from enrolldesk.store.base import (
    COLLECTIONS, DocumentStore, WriteOp, check_collection,
    resolve_timestamps, server_now
)


def _sort_key(field):
    # None sorts before any value
    def key(doc):
        value = doc.get(field)
        return (value is not None, value)
    return key


class MemoryDocumentStore(DocumentStore):
    """Dictionaries keyed by collection, then by document key."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {} for name in COLLECTIONS
        }

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        check_collection(collection)
        doc = self._collections[collection].get(key)
        return dict(doc) if doc is not None else None

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None,
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        check_collection(collection)
        where = where or {}
        docs = [
            doc for doc in self._collections[collection].values()
            if all(doc.get(field) == value for field, value in where.items())
        ]
        if order_by:
            docs.sort(key=_sort_key(order_by), reverse=descending)
        docs = docs[offset:]
        if limit is not None:
            docs = docs[:limit]
        return [dict(doc) for doc in docs]

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        check_collection(collection)
        key = str(uuid.uuid4())
        doc = resolve_timestamps(data, server_now())
        doc["id"] = key
        self._collections[collection][key] = doc
        return key

    def update(self, collection: str, key: str, data: Dict[str, Any]) -> None:
        check_collection(collection)
        doc = self._collections[collection].get(key)
        if doc is None:
            raise NotFound("Document not found", context={"collection": collection, "key": key})
        doc.update(resolve_timestamps(data, server_now()))

    def commit_batch(self, ops: List[WriteOp]) -> None:
        # Stage every resulting document first, then publish them together
        now = server_now()
        staged: Dict[tuple, Dict[str, Any]] = {}
        for op in ops:
            slot = (op.collection, op.key)
            current = staged.get(slot, self._collections[op.collection].get(op.key))
            if current is None:
                doc = resolve_timestamps(op.on_create, now)
                doc["id"] = op.key
            else:
                doc = dict(current)
            doc.update(resolve_timestamps(op.data, now))
            staged[slot] = doc
        for (collection, key), doc in staged.items():
            self._collections[collection][key] = doc
