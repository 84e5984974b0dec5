"""Fixed-window rate limiting behind a pluggable counter store.

The limiter itself holds no state: counts live in a ``RateLimitStore``
(process memory for a single instance, Redis when several instances must
share counters) and time comes from an injectable clock.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import redis

from .config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    """At most ``limit`` hits per ``window_seconds`` for one key."""
    name: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    count: int
    limit: int
    retry_after: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


CONTACT_FORM_POLICY = RateLimitPolicy(name="contact", limit=5, window_seconds=15 * 60)
TRACKING_POLICY = RateLimitPolicy(name="track", limit=100, window_seconds=60)


class RateLimitStore:
    """Counter storage: increments a key and reports when its window closes."""

    def increment(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        """Count one hit for ``key`` and return ``(count, window_reset_at)``."""
        raise NotImplementedError

    def reset(self, key: Optional[str] = None) -> None:
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local counters. Lost on restart and not shared between workers."""

    def __init__(self, max_keys: int = 10000):
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self.max_keys = max_keys

    def increment(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
            if len(self._windows) > self.max_keys:
                self._prune(now)
            return count, reset_at

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


class RedisRateLimitStore(RateLimitStore):
    """Counters shared through Redis ``INCR`` with a TTL equal to the window."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def increment(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        redis_key = self._key(key)
        count = self.client.incr(redis_key)
        if count == 1:
            self.client.expire(redis_key, window_seconds)
        ttl = self.client.ttl(redis_key)
        if ttl is None or ttl < 0:
            # Key survived without expiry; restart its window
            self.client.expire(redis_key, window_seconds)
            ttl = window_seconds
        return int(count), now + ttl

    def reset(self, key: Optional[str] = None) -> None:
        if key is not None:
            self.client.delete(self._key(key))
            return
        for redis_key in self.client.scan_iter(f"{self.prefix}:*"):
            self.client.delete(redis_key)


class RateLimiter:
    """Applies a ``RateLimitPolicy`` to a key using a store and a clock."""

    def __init__(self, store: RateLimitStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    def hit(self, key: str, policy: RateLimitPolicy) -> RateLimitResult:
        now = self.clock()
        count, reset_at = self.store.increment(f"{policy.name}:{key}", policy.window_seconds, now)
        allowed = count <= policy.limit
        retry_after = max(1, math.ceil(reset_at - now)) if not allowed else 0
        if not allowed:
            logger.warning(f"Rate limit '{policy.name}' exceeded for {key} ({count}/{policy.limit})")
        return RateLimitResult(allowed=allowed, count=count, limit=policy.limit, retry_after=retry_after)


def build_rate_limiter() -> RateLimiter:
    """Limiter configured from settings; falls back to memory when Redis is unreachable."""
    if settings.RATE_LIMIT_BACKEND.lower() == "redis":
        client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            decode_responses=True,
        )
        try:
            client.ping()
            logger.info(f"Using Redis rate limit store at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
            return RateLimiter(RedisRateLimitStore(client))
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable for rate limiting, using in-memory store: {e}")
    return RateLimiter(InMemoryRateLimitStore())


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the process-wide limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = build_rate_limiter()
    return _rate_limiter


def minutes_until(seconds: int) -> int:
    return max(1, math.ceil(seconds / 60))
