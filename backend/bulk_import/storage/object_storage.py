"""Abstraction over object storage for uploads (local fs implementation, HTTP fetch)."""

from __future__ import annotations

import logging
import mimetypes
import uuid
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from bulk_import.core.config import get_settings
from bulk_import.services.errors import FileRetrievalError

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30


def _uploads_dir() -> Path:
    path = Path(get_settings().uploads_dir).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def store(content: bytes, content_type: str, original_name: str | None = None) -> str:
    """Persist an uploaded file and return a URL that `fetch` can read back."""
    suffix = Path(original_name or "").suffix or mimetypes.guess_extension(content_type) or ".xlsx"
    target_name = f"imports/{uuid.uuid4()}{suffix.lower()}"
    target_path = (_uploads_dir() / target_name).resolve()
    target_path.parent.mkdir(parents=True, exist_ok=True)
    target_path.write_bytes(content)
    logger.info(f"Stored upload {original_name!r} ({len(content)} bytes) as {target_name}")

    base_url = get_settings().public_files_url
    if base_url:
        return f"{base_url.rstrip('/')}/{target_name}"
    return target_path.as_uri()


def _local_path_for(url: str) -> Path | None:
    """Map a file:// URL, or one under `public_files_url`, onto `uploads_dir`."""
    uploads_dir = _uploads_dir()
    parsed = urlparse(url)
    base_url = get_settings().public_files_url
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path)).resolve()
    elif base_url and url.startswith(base_url.rstrip("/") + "/"):
        relative = url[len(base_url.rstrip("/")) + 1 :]
        path = (uploads_dir / unquote(relative)).resolve()
    else:
        return None
    if not path.is_relative_to(uploads_dir):
        raise FileRetrievalError(f"Cannot download file: {url!r} is outside the uploads directory")
    return path


def fetch(url: str) -> bytes:
    """Return the bytes behind a stored file URL.

    Raises:
        FileRetrievalError: when the file is missing or the remote is unreachable.
    """
    local_path = _local_path_for(url)

    if local_path is not None:
        try:
            return local_path.read_bytes()
        except OSError as e:
            raise FileRetrievalError(f"Cannot download file: {e}") from e

    if urlparse(url).scheme not in ("http", "https"):
        raise FileRetrievalError(f"Cannot download file: unsupported URL {url!r}")

    try:
        response = httpx.get(url, timeout=TIMEOUT_SECONDS, follow_redirects=True)
    except httpx.HTTPError as e:
        raise FileRetrievalError(f"Cannot download file: {e}") from e
    if response.status_code >= 400:
        raise FileRetrievalError(
            f"Cannot download file: {response.status_code} {response.reason_phrase}"
        )
    return response.content

