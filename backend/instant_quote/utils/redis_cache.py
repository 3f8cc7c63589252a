import logging
import os
from typing import Optional

import redis

from instant_quote.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None

GEOCODE_KEY_PREFIX = "geo:addr"
GEOCODE_TTL_SECONDS = 86400


class _NullRedis:
    """No-op Redis client used when Redis is disabled or unavailable.

    Methods mirror the minimal surface used in this codebase so callers can
    proceed without needing try/except around get_redis_client().
    """

    def get(self, key: str):
        return None

    def setex(self, key: str, expire: int, value: str):
        return None

    def delete(self, key: str):
        return 0

    def close(self):
        return None


def redis_enabled() -> bool:
    url = (settings.REDIS_URL or "").strip()
    return bool(url) and url.lower() not in {"none", "disabled", "false", "0"}


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        if not redis_enabled():
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        try:
            # Conservative socket timeouts so a slow Redis cannot stall the
            # submission path that consults rate-limit counters.
            try:
                conn_to = float(os.getenv("REDIS_CONNECT_TIMEOUT", "0.5"))
            except ValueError:
                conn_to = 0.5
            try:
                read_to = float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5"))
            except ValueError:
                read_to = 0.5
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=conn_to,
                socket_timeout=read_to,
            )
        except (redis.exceptions.RedisError, ValueError) as exc:
            logger.warning("Redis client creation failed, caching disabled: %s", exc)
            _redis_client = _NullRedis()  # type: ignore[assignment]
    return _redis_client


def geocode_cache_key(address: str) -> str:
    return f"{GEOCODE_KEY_PREFIX}:{address.strip().lower()}"


def get_cached_geocode(address: str) -> Optional[tuple[float, float, str]]:
    """Return ``(lat, lng, formatted_address)`` for a cached lookup, if any."""
    client = get_redis_client()
    try:
        cached = client.get(geocode_cache_key(address))
    except redis.exceptions.RedisError as exc:
        logger.warning("Redis unavailable: %s", exc)
        return None
    if not cached:
        return None
    try:
        lat_s, lng_s, formatted = cached.split(",", 2)
        return float(lat_s), float(lng_s), formatted
    except ValueError:
        # Ignore malformed cache entries and fall through to a live lookup
        return None


def cache_geocode(address: str, lat: float, lng: float, formatted_address: str) -> None:
    client = get_redis_client()
    try:
        client.setex(geocode_cache_key(address), GEOCODE_TTL_SECONDS, f"{lat},{lng},{formatted_address}")
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not cache geocode result: %s", exc)


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Error closing Redis client: %s", exc)
        finally:
            _redis_client = None
