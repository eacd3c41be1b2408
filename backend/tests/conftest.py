"""Shared fixtures: in-memory SQLite schema, stubbed Redis progress store, xlsx builders."""

import os
import tempfile
from io import BytesIO

# Settings are cached and the engine is built at import time, so the test
# environment has to be in place before anything under bulk_import is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="bulk-import-tests-")
os.environ.pop("PUBLIC_FILES_URL", None)

import openpyxl  # noqa: E402
import pytest  # noqa: E402

import bulk_import.db.models  # noqa: E402,F401
from bulk_import.core.config import XLSX_MIME_TYPE  # noqa: E402
from bulk_import.db.base import Base  # noqa: E402
from bulk_import.db.session import SessionLocal, engine  # noqa: E402
from bulk_import.services import progress_tracker  # noqa: E402
from bulk_import.storage import object_storage  # noqa: E402



class InMemoryRedis:
    """The subset of the redis-py client used by the progress tracker."""

    def __init__(self):
        self.store = {}

    def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    def get(self, key):
        return self.store.get(key)


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    client = InMemoryRedis()
    monkeypatch.setattr(progress_tracker, "redis_client", client)
    return client


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def build_xlsx(rows):
    """Serialize rows (first row = headers) as an xlsx workbook."""
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def make_xlsx():
    return build_xlsx


@pytest.fixture
def stored_xlsx():
    """Store a workbook in the uploads directory and return its URL."""

    def _store(rows, name="import.xlsx"):
        return object_storage.store(build_xlsx(rows), XLSX_MIME_TYPE, name)

    return _store
