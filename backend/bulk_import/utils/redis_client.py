"""Redis client factory shared by progress telemetry and health checks."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis


def normalize_redis_url(url: str) -> str:
    """Force TLS for hosted providers that only accept rediss:// connections."""
    if ".upstash.io" in url and url.startswith("redis://"):
        return url.replace("redis://", "rediss://", 1)
    return url


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client from a URL.

    TLS connections skip certificate verification, matching the managed Redis
    providers the worker is deployed against. ``kwargs`` are passed through to
    ``Redis.from_url`` (``decode_responses``, ``socket_connect_timeout``, ...).
    """
    url = normalize_redis_url(url)
    if url.startswith("rediss://"):
        kwargs.setdefault("ssl_cert_reqs", ssl.CERT_NONE)
    return Redis.from_url(url, **kwargs)
