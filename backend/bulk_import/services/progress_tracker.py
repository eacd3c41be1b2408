"""Live progress snapshots of import jobs, kept in Redis for pollers.

A snapshot is advisory: the job record stays authoritative for status and
counters, so losing Redis only costs the UI its live message.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any

from redis.exceptions import RedisError

from bulk_import.core.config import get_settings
from bulk_import.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

KEY_PREFIX = "imports:progress:"
SNAPSHOT_TTL = timedelta(hours=24)

redis_client = create_redis_client(
    get_settings().redis_url, decode_responses=True, socket_connect_timeout=2
)


def snapshot_key(job_id: str) -> str:
    return f"{KEY_PREFIX}{job_id}"


def progress_fraction(processed: int, total: int, status: str) -> float:
    """Share of rows handled, in [0, 1]; a finished job with no rows counts as complete."""
    if total:
        return min(processed / total, 1.0)
    return 1.0 if status == "done" else 0.0


def publish_progress(
    job_id: str,
    status: str,
    message: str,
    *,
    processed: int = 0,
    total: int = 0,
    errors: int = 0,
    outcomes: dict[str, int] | None = None,
) -> None:
    snapshot = {
        "job_id": job_id,
        "status": status,
        "progress": progress_fraction(processed, total, status),
        "message": message,
        "meta": {"processed": processed, "total": total, "errors": errors, **(outcomes or {})},
    }
    try:
        redis_client.set(snapshot_key(job_id), json.dumps(snapshot), ex=SNAPSHOT_TTL)
    except RedisError as e:
        logger.debug(f"Progress snapshot for job {job_id} not published: {e}")


def fetch_progress(job_id: str) -> dict[str, Any]:
    """Latest snapshot for a job, or {} when none is available."""
    try:
        raw = redis_client.get(snapshot_key(job_id))
    except RedisError as e:
        logger.debug(f"Progress snapshot for job {job_id} unavailable: {e}")
        return {}
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {}
