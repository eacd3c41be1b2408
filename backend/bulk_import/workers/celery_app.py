"""Celery application for background import processing."""

import ssl

from celery import Celery

from bulk_import.core.config import get_settings
from bulk_import.utils.redis_client import normalize_redis_url

IMPORT_QUEUE = "imports"
IMPORT_TASK = "bulk_import.workers.tasks.process_import"

settings = get_settings()


def _redis_url(url: str) -> str:
    """Normalize a broker/backend URL; TLS URLs carry ssl_cert_reqs themselves.

    The Redis result backend parses its URL before any conf.update() is applied,
    so the certificate policy cannot come from configuration alone.
    """
    url = normalize_redis_url(url)
    if url.startswith("rediss://") and "ssl_cert_reqs" not in url:
        url += ("&" if "?" in url else "?") + "ssl_cert_reqs=none"
    return url


broker_url = _redis_url(settings.celery_broker_url or settings.redis_url)
backend_url = _redis_url(settings.celery_result_url or settings.redis_url)
uses_tls = any(url.startswith("rediss://") for url in (broker_url, backend_url))

celery_app = Celery(
    "bulk_import",
    broker=broker_url,
    backend=backend_url,
    include=[IMPORT_TASK],
)

worker_config = {
    "task_routes": {IMPORT_TASK: {"queue": IMPORT_QUEUE}},
    "task_default_queue": IMPORT_QUEUE,
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    # A job is acknowledged only once it has run; a dead worker puts it back
    "task_acks_late": True,
    "task_reject_on_worker_lost": True,
    "worker_prefetch_multiplier": 1,
    "task_time_limit": 60 * 60,
    "task_soft_time_limit": 55 * 60,
    "result_expires": 60 * 60,
    "broker_connection_retry_on_startup": True,
    "worker_hijack_root_logger": False,
    "result_backend_always_retry": True,
    "result_backend_max_retries": 3,
}

if uses_tls:
    worker_config["broker_use_ssl"] = {"ssl_cert_reqs": ssl.CERT_NONE}
    worker_config["redis_backend_use_ssl"] = {"ssl_cert_reqs": ssl.CERT_NONE}

celery_app.conf.update(worker_config)
