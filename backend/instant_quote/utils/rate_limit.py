"""Per-client submission throttling.

Two fixed windows are tracked per key (``<tenant>:<client ip>``): one
minute and one hour. A request is admitted only while both counters are
under their limits; rejected requests do not consume quota.

``MemoryRateLimitStore`` keeps counters in-process, bounded to
``RATE_LIMIT_MAX_KEYS`` entries (least recently seen evicted first) and
expiring idle entries after two hours. ``RedisRateLimitStore`` shares
counters across workers with INCR/EXPIRE and is used when ``REDIS_URL``
is configured.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

import redis

from instant_quote.core.config import settings
from instant_quote.utils.redis_cache import get_redis_client, redis_enabled

logger = logging.getLogger(__name__)

MINUTE_SECONDS = 60
HOUR_SECONDS = 3600
IDLE_TTL_SECONDS = 2 * HOUR_SECONDS


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


@dataclass
class _WindowState:
    minute_started_at: float
    minute_count: int
    hour_started_at: float
    hour_count: int
    last_seen_at: float


class MemoryRateLimitStore:
    def __init__(
        self,
        per_minute: int,
        per_hour: int,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.per_minute = per_minute
        self.per_hour = per_hour
        self.max_keys = max(1, max_keys)
        self._clock = clock
        self._entries: "OrderedDict[str, _WindowState]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self, now: float) -> None:
        # Entries are kept in last-seen order, so expired ones sit at the front
        while self._entries:
            key, state = next(iter(self._entries.items()))
            if now - state.last_seen_at <= IDLE_TTL_SECONDS and len(self._entries) <= self.max_keys:
                break
            self._entries.pop(key)

    def hit(self, key: str) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            state = self._entries.pop(key, None)
            if state is None or now - state.last_seen_at > IDLE_TTL_SECONDS:
                state = _WindowState(now, 0, now, 0, now)
            if now - state.minute_started_at >= MINUTE_SECONDS:
                state.minute_started_at, state.minute_count = now, 0
            if now - state.hour_started_at >= HOUR_SECONDS:
                state.hour_started_at, state.hour_count = now, 0
            state.last_seen_at = now
            self._entries[key] = state
            self._evict(now)

            minute_full = state.minute_count >= self.per_minute
            hour_full = state.hour_count >= self.per_hour
            if minute_full or hour_full:
                retry = 1
                if minute_full:
                    retry = max(retry, math.ceil(MINUTE_SECONDS - (now - state.minute_started_at)))
                if hour_full:
                    retry = max(retry, math.ceil(HOUR_SECONDS - (now - state.hour_started_at)))
                return RateLimitDecision(False, retry)

            state.minute_count += 1
            state.hour_count += 1
            return RateLimitDecision(True, 0)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisRateLimitStore:
    KEY_PREFIX = "rl:quote"

    def __init__(self, client: redis.Redis, per_minute: int, per_hour: int):
        self.client = client
        self.per_minute = per_minute
        self.per_hour = per_hour

    def _keys(self, key: str) -> tuple[str, str]:
        return f"{self.KEY_PREFIX}:{key}:m", f"{self.KEY_PREFIX}:{key}:h"

    def hit(self, key: str) -> RateLimitDecision:
        minute_key, hour_key = self._keys(key)
        # Every counter gets its TTL in the same transaction as its first INCR
        # (EXPIRE NX needs Redis 7+)
        pipe = self.client.pipeline(transaction=True)
        pipe.incr(minute_key)
        pipe.expire(minute_key, MINUTE_SECONDS, nx=True)
        pipe.incr(hour_key)
        pipe.expire(hour_key, HOUR_SECONDS, nx=True)
        minute_count, _, hour_count, _ = pipe.execute()

        minute_full = minute_count > self.per_minute
        hour_full = hour_count > self.per_hour
        if not (minute_full or hour_full):
            return RateLimitDecision(True, 0)

        # Give the quota back so rejected attempts do not extend the block
        pipe = self.client.pipeline(transaction=True)
        pipe.decr(minute_key)
        pipe.decr(hour_key)
        pipe.ttl(minute_key)
        pipe.ttl(hour_key)
        _, _, minute_ttl, hour_ttl = pipe.execute()
        retry = 1
        if minute_full:
            retry = max(retry, int(minute_ttl) if minute_ttl and minute_ttl > 0 else MINUTE_SECONDS)
        if hour_full:
            retry = max(retry, int(hour_ttl) if hour_ttl and hour_ttl > 0 else HOUR_SECONDS)
        return RateLimitDecision(False, retry)

    def reset(self) -> None:
        for found in self.client.scan_iter(f"{self.KEY_PREFIX}:*"):
            self.client.delete(found)


class RateLimiter:
    """Facade that prefers Redis and degrades to the in-memory store."""

    def __init__(self, store=None, fallback: Optional[MemoryRateLimitStore] = None):
        self.fallback = fallback or MemoryRateLimitStore(
            settings.RATE_LIMIT_PER_MINUTE,
            settings.RATE_LIMIT_PER_HOUR,
            settings.RATE_LIMIT_MAX_KEYS,
        )
        self.store = store or self.fallback

    def hit(self, key: str) -> RateLimitDecision:
        if self.store is self.fallback:
            return self.fallback.hit(key)
        try:
            return self.store.hit(key)
        except redis.exceptions.RedisError as exc:
            logger.warning("Redis rate limit unavailable, using in-memory counters: %s", exc)
            return self.fallback.hit(key)

    def reset(self) -> None:
        self.fallback.reset()
        if self.store is not self.fallback:
            try:
                self.store.reset()
            except redis.exceptions.RedisError as exc:
                logger.warning("Could not reset Redis rate limit counters: %s", exc)


_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        store = None
        client = get_redis_client() if redis_enabled() else None
        if isinstance(client, redis.Redis):
            store = RedisRateLimitStore(client, settings.RATE_LIMIT_PER_MINUTE, settings.RATE_LIMIT_PER_HOUR)
        _limiter = RateLimiter(store)
    return _limiter


def set_rate_limiter(limiter: Optional[RateLimiter]) -> None:
    global _limiter
    _limiter = limiter
