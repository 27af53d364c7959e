# src/checkthecrowd/services/rate_limit.py
"""Rate-limit gate consulted before any protocol step runs.

The gate is injected; nothing here keeps process-wide buckets.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import redis
from fastapi import Request

from checkthecrowd.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter(Protocol):
    """Contract of the external rate-limit gate."""

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision: ...


class RedisRateLimiter:
    """Fixed-window limiter backed by a shared redis instance."""

    def __init__(self, client: redis.Redis | None = None, *, prefix: str = "ratelimit") -> None:
        self._redis = client if client is not None else redis.from_url(settings.redis_url)
        self._prefix = prefix

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        bucket = f"{self._prefix}:{key}"
        pipe = self._redis.pipeline()
        pipe.incr(bucket)
        # NX keeps the first request's expiry so the window does not slide.
        pipe.expire(bucket, window_seconds, nx=True)
        pipe.ttl(bucket)
        count, _, ttl = pipe.execute()

        if int(count) <= limit:
            return RateLimitDecision(allowed=True)
        retry_after = int(ttl) if ttl and int(ttl) > 0 else window_seconds
        logger.warning("Rate limit exceeded for %s", key)
        return RateLimitDecision(allowed=False, retry_after_seconds=max(1, retry_after))


class InMemoryRateLimiter:
    """Per-instance fixed-window limiter for development and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, list[float]] = {}
        self._lock = Lock()

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._buckets.items() if reset_at <= now]
        for key in expired:
            del self._buckets[key]

    def __len__(self) -> int:
        return len(self._buckets)

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            self._prune(now)
            entry = self._buckets.get(key)
            if entry is None:
                self._buckets[key] = [1, now + window_seconds]
                return RateLimitDecision(allowed=True)
            count, reset_at = entry
            if count >= limit:
                return RateLimitDecision(
                    allowed=False,
                    retry_after_seconds=max(1, math.ceil(reset_at - now)),
                )
            entry[0] = count + 1
            return RateLimitDecision(allowed=True)


def client_ip(request: Request) -> str:
    """Return the best-effort client address for rate-limit keys."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value
    return "unknown"


def request_domain(request: Request) -> str:
    """Return the serving host that challenges are bound to."""
    return (
        request.headers.get("x-forwarded-host")
        or request.headers.get("host")
        or "unknown"
    )
