"""Pytest fixtures."""

import io
import os
import zipfile

# Keep the application's startup table creation away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import jwt
import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from enrolldesk import auth
from enrolldesk.database import create_tables, get_store
from enrolldesk.store import MemoryDocumentStore
from enrolldesk.store.sql import SqlDocumentStore


STAFF = [
    {"id": "user-alice", "email": "alice@example.com", "name": "Alice Admin",
     "role": "admin", "role_id": "1", "is_active": True, "password_hash": "$2b$10$secret"},
    {"id": "user-bob", "email": "bob@example.com", "name": "Bob Caller",
     "role": "counsellor", "role_id": "2", "is_active": True, "password_hash": "$2b$10$other"},
]


def seed_staff(store) -> None:
    batch = store.batch()
    for user in STAFF:
        data = {k: v for k, v in user.items() if k != "id"}
        batch.upsert("users", user["id"], data)
    batch.commit()


def make_workbook(header: list, rows: list) -> bytes:
    """XLSX bytes with one sheet: a header row followed by the given rows."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(header)
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def with_damaged_sheet(content: bytes) -> bytes:
    """Copy of a workbook whose first sheet XML is cut off mid-tag."""
    source = zipfile.ZipFile(io.BytesIO(content))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as target:
        for item in source.infolist():
            data = source.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                data = b"<worksheet><sheetData><row><c"
            target.writestr(item, data)
    return buffer.getvalue()


def token_for(user_id: str) -> str:
    return jwt.encode({"id": user_id, "email": "{}@example.com".format(user_id)},
                      auth.JWT_SECRET, algorithm=auth.JWT_ALGORITHM)


@pytest.fixture
def store() -> MemoryDocumentStore:
    """In-memory store with two staff accounts."""
    memory_store = MemoryDocumentStore()
    seed_staff(memory_store)
    return memory_store


@pytest.fixture
def sql_store():
    """SQLite in-memory store with two staff accounts."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    sql = SqlDocumentStore(session)
    seed_staff(sql)
    try:
        yield sql
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(store: MemoryDocumentStore):
    """Test client whose routes all share the `store` fixture."""
    from enrolldesk.main import app

    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def alice_headers() -> dict:
    return {"Authorization": "Bearer {}".format(token_for("user-alice"))}


@pytest.fixture
def bob_headers() -> dict:
    return {"Authorization": "Bearer {}".format(token_for("user-bob"))}
