# -*- coding: utf-8 -*-
"""
Fixed-window request rate limiter.

The limiter is built from app config and injected into the app; there is no
module-level instance. Windows live either in process memory (guarded by a
lock) or in Redis (``INCR`` + ``EXPIRE``). When Redis cannot be reached the
limiter degrades to the in-memory store instead of failing requests.
"""

import threading
import time
from typing import Callable, Dict, Optional, Tuple

import redis
from flask import Flask, g, jsonify, request

from trainerplus.services.metrics import record
from trainerplus.services.structured_logging import get_logger

logger = get_logger(__name__)

EXEMPT_PATHS = ("/healthz", "/readyz", "/metrics")
SWEEP_EVERY = 1000


class RateLimitResult:
    """Result of a rate limit check."""

    def __init__(self, allowed: bool, limit: int, remaining: int, reset_time: int,
                 retry_after: Optional[int] = None):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_time = reset_time
        self.retry_after = retry_after

    def to_headers(self) -> Dict[str, str]:
        headers = {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(max(0, self.remaining)),
            'X-RateLimit-Reset': str(self.reset_time),
        }
        if self.retry_after is not None:
            headers['Retry-After'] = str(self.retry_after)
        return headers


class MemoryWindowStore:
    """Per-key (count, window_start) pairs held in process memory."""

    def __init__(self):
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def incr(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        with self._lock:
            count, started = self._windows.get(key, (0, now))
            if now - started >= window_seconds:
                count, started = 0, now
            count += 1
            self._windows[key] = (count, started)
            return count, started + window_seconds

    def sweep(self, window_seconds: int, now: float) -> int:
        """Drop windows idle for more than two window lengths."""
        with self._lock:
            stale = [k for k, (_, started) in self._windows.items()
                     if now - started > window_seconds * 2]
            for key in stale:
                del self._windows[key]
            return len(stale)

    def __len__(self):
        return len(self._windows)


class RedisWindowStore:

    def __init__(self, client: redis.Redis, prefix: str = "trainerplus:rl"):
        self.client = client
        self.prefix = prefix

    def incr(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        window_index = int(now // window_seconds)
        redis_key = f"{self.prefix}:{key}:{window_index}"
        pipe = self.client.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window_seconds)
        count, _ = pipe.execute()
        return int(count), float((window_index + 1) * window_seconds)

    def sweep(self, window_seconds: int, now: float) -> int:
        # Redis expires windows on its own
        return 0


def create_store(storage_url: Optional[str]):
    """Build a window store from a ``memory://`` or ``redis://`` URL."""
    if not storage_url or storage_url.startswith("memory://"):
        return MemoryWindowStore()
    try:
        client = redis.from_url(
            storage_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        logger.info("Connected to Redis for rate limiting")
        return RedisWindowStore(client)
    except redis.RedisError as e:
        logger.error("Failed to connect to Redis, using in-memory rate limiting", error=str(e))
        return MemoryWindowStore()


class RateLimiter:

    def __init__(self, rate: int, window_seconds: int, store=None,
                 clock: Callable[[], float] = time.time):
        self.rate = rate
        self.window_seconds = window_seconds
        self.store = store if store is not None else MemoryWindowStore()
        self.clock = clock
        self._fallback: Optional[MemoryWindowStore] = None
        self._checks = 0

    @classmethod
    def from_config(cls, config) -> "RateLimiter":
        return cls(
            int(config.get("RATE_LIMIT_PER_WINDOW", 100)),
            int(config.get("RATE_LIMIT_WINDOW_SECONDS", 60)),
            create_store(config.get("RATE_LIMIT_STORAGE_URL")),
        )

    def check_and_increment(self, key: str) -> RateLimitResult:
        now = self.clock()
        try:
            count, reset_at = self.store.incr(key, self.window_seconds, now)
        except redis.RedisError as e:
            logger.warning("Rate limit store unavailable, using in-memory window", error=str(e))
            if self._fallback is None:
                self._fallback = MemoryWindowStore()
            count, reset_at = self._fallback.incr(key, self.window_seconds, now)

        self._checks += 1
        if self._checks % SWEEP_EVERY == 0:
            self.sweep()

        allowed = count <= self.rate
        retry_after = None if allowed else max(1, int(reset_at - now))
        return RateLimitResult(
            allowed=allowed,
            limit=self.rate,
            remaining=self.rate - count,
            reset_time=int(reset_at),
            retry_after=retry_after,
        )

    def sweep(self) -> int:
        return self.store.sweep(self.window_seconds, self.clock())


def client_key() -> str:
    """Socket peer address. Forwarded headers count only via ProxyFix (TRUSTED_PROXY_COUNT)."""
    return request.remote_addr or "anonymous"


def init_rate_limiter(app: Flask, limiter: Optional[RateLimiter] = None) -> None:
    """Register the limiter hooks. Disabled unless RATE_LIMIT_ENABLED is set."""
    if not app.config.get("RATE_LIMIT_ENABLED", False):
        return

    limiter = limiter or RateLimiter.from_config(app.config)
    app.extensions["rate_limiter"] = limiter

    @app.before_request
    def enforce_rate_limit():
        if request.method == "OPTIONS" or request.path in EXEMPT_PATHS:
            return None
        key = client_key()
        result = limiter.check_and_increment(key)
        g.rate_limit_result = result
        if not result.allowed:
            record("record_rate_limit_hit")
            logger.log_rate_limit_event("client", True, client=key, limit=result.limit)
            response = jsonify({"error": "rate_limited", "message": "rate limit exceeded"})
            response.status_code = 429
            response.headers.update(result.to_headers())
            return response
        return None

    @app.after_request
    def add_rate_limit_headers(response):
        result = g.get("rate_limit_result")
        if result is not None and result.allowed:
            response.headers.update(result.to_headers())
        return response
