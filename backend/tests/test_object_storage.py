from pathlib import Path

import httpx
import pytest

from bulk_import.core.config import XLSX_MIME_TYPE as XLSX, get_settings
from bulk_import.services.errors import FileRetrievalError
from bulk_import.storage import object_storage


def test_store_then_fetch_local_file():
    url = object_storage.store(b"payload", XLSX, "Clients.XLSX")

    assert url.startswith("file://")
    assert url.endswith(".xlsx")
    assert object_storage.fetch(url) == b"payload"


def test_store_uses_public_base_url_when_configured(monkeypatch):
    monkeypatch.setattr(get_settings(), "public_files_url", "https://files.example.com/uploads/")

    url = object_storage.store(b"payload", XLSX, "clients.xlsx")

    assert url.startswith("https://files.example.com/uploads/imports/")
    # public URLs still resolve to the local copy
    assert object_storage.fetch(url) == b"payload"


def test_fetch_missing_file_raises():
    missing = (Path(get_settings().uploads_dir) / "imports" / "nope.xlsx").as_uri()

    with pytest.raises(FileRetrievalError, match="Cannot download file"):
        object_storage.fetch(missing)


def test_fetch_refuses_paths_outside_uploads_dir():
    with pytest.raises(FileRetrievalError):
        object_storage.fetch("file:///etc/passwd")


def test_fetch_refuses_unsupported_scheme():
    with pytest.raises(FileRetrievalError, match="unsupported URL"):
        object_storage.fetch("ftp://example.com/file.xlsx")


def test_fetch_remote_file(monkeypatch):
    def fake_get(url, **kwargs):
        return httpx.Response(200, content=b"remote", request=httpx.Request("GET", url))

    monkeypatch.setattr(object_storage.httpx, "get", fake_get)

    assert object_storage.fetch("https://cdn.example.com/a.xlsx") == b"remote"


def test_fetch_remote_error_status(monkeypatch):
    def fake_get(url, **kwargs):
        return httpx.Response(404, request=httpx.Request("GET", url))

    monkeypatch.setattr(object_storage.httpx, "get", fake_get)

    with pytest.raises(FileRetrievalError, match="404"):
        object_storage.fetch("https://cdn.example.com/a.xlsx")


def test_fetch_remote_unreachable(monkeypatch):
    def fake_get(url, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(object_storage.httpx, "get", fake_get)

    with pytest.raises(FileRetrievalError, match="connection refused"):
        object_storage.fetch("https://cdn.example.com/a.xlsx")
