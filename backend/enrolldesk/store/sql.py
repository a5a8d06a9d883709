"""
SQLAlchemy-backed document store.

Each collection maps to one ORM table and document fields map one-to-one to
column names. A batch is applied inside a single session transaction, so it
either commits as a whole or rolls back as a whole.
"""

import time
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from enrolldesk.errors import NotFound, StoreError
from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.models import Student, User, ViewEvent
from enrolldesk.store.base import (
    DocumentStore, WriteOp, check_collection, resolve_timestamps, server_now
)

logger = get_logger("db")

MODELS = {
    "students": Student,
    "views": ViewEvent,
    "users": User,
}


def _to_document(obj) -> Dict[str, Any]:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


def _column(model, field: str):
    try:
        return model.__table__.c[field]
    except KeyError:
        raise ValueError("{} has no field {}".format(model.__tablename__, field)) from None


class SqlDocumentStore(DocumentStore):
    """Document store over one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, exc: Exception, context: dict = None) -> StoreError:
        self.db.rollback()
        log_with_context(logger, "ERROR", "Store {} failed: {}".format(action, exc),
                         context=context)
        return StoreError("Storage {} failed".format(action), context=context)

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        check_collection(collection)
        try:
            obj = self.db.get(MODELS[collection], key)
        except SQLAlchemyError as e:
            raise self._fail("read", e, {"collection": collection, "key": key}) from e
        return _to_document(obj) if obj is not None else None

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None,
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        check_collection(collection)
        model = MODELS[collection]
        query = self.db.query(model)
        for field, value in (where or {}).items():
            query = query.filter(_column(model, field) == value)
        if order_by:
            column = _column(model, order_by)
            query = query.order_by(column.desc() if descending else column.asc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        try:
            return [_to_document(obj) for obj in query.all()]
        except SQLAlchemyError as e:
            raise self._fail("query", e, {"collection": collection}) from e

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        check_collection(collection)
        key = str(uuid.uuid4())
        values = resolve_timestamps(data, server_now())
        try:
            self.db.add(MODELS[collection](id=key, **values))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("insert", e, {"collection": collection}) from e
        return key

    def update(self, collection: str, key: str, data: Dict[str, Any]) -> None:
        check_collection(collection)
        try:
            obj = self.db.get(MODELS[collection], key)
            if obj is None:
                raise NotFound("Document not found", context={"collection": collection, "key": key})
            for field, value in resolve_timestamps(data, server_now()).items():
                _column(MODELS[collection], field)
                setattr(obj, field, value)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("update", e, {"collection": collection, "key": key}) from e

    def commit_batch(self, ops: List[WriteOp]) -> None:
        start_time = time.time()
        now = server_now()
        try:
            for op in ops:
                model = MODELS[op.collection]
                obj = self.db.get(model, op.key)
                if obj is None:
                    obj = model(id=op.key, **resolve_timestamps(op.on_create, now))
                    self.db.add(obj)
                for field, value in resolve_timestamps(op.data, now).items():
                    setattr(obj, field, value)
                # Later operations on the same key must see this one
                self.db.flush()
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("batch commit", e, {"operations": len(ops)}) from e

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "DEBUG", "Committed batch of {} operations".format(len(ops)),
                         extra_data={"duration_ms": round(duration_ms, 2)})
