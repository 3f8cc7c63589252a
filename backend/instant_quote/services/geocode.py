"""Address geocoding helper with Redis caching.

Provides a single entrypoint `geocode_address_async(address)` that returns a
`GeocodeResult` (lat/lng plus the provider's formatted address) or `None`
when geocoding is unavailable.

- Uses the `GOOGLE_MAPS_API_KEY` setting.
- Uses Redis for coarse caching keyed by the normalized address string.
- Returns `None` when no API key is configured, or when the Google
  Geocoding API is unreachable or returns no results. Callers treat `None`
  as "address not found" and keep whatever state they already had.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import logging

import httpx

from instant_quote.core.config import settings
from instant_quote.utils.redis_cache import cache_geocode, get_cached_geocode

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


@dataclass
class GeocodeResult:
    lat: float
    lng: float
    formatted_address: str = ""


async def geocode_address_async(address: str, region: str = "us") -> Optional[GeocodeResult]:
    if not address or not address.strip():
        return None

    cached = get_cached_geocode(address)
    if cached:
        lat, lng, formatted = cached
        return GeocodeResult(lat=lat, lng=lng, formatted_address=formatted)

    api_key = (settings.GOOGLE_MAPS_API_KEY or "").strip()
    if not api_key:
        # Geocoding is effectively disabled; do not attempt network calls.
        return None

    params = {"address": address, "region": region, "key": api_key}
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(settings.GEOCODE_TIMEOUT, connect=1.0)) as http:
            res = await http.get(GEOCODE_URL, params=params)
            res.raise_for_status()
            data = res.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Geocoding failed for address %r: %s", address, exc)
        return None

    if data.get("status") not in (None, "OK"):
        logger.info("Geocoding returned %s for %r", data.get("status"), address)
        return None
    results = data.get("results") or []
    if not results:
        return None
    loc = (results[0].get("geometry") or {}).get("location") or {}
    lat = loc.get("lat")
    lng = loc.get("lng")
    if lat is None or lng is None:
        return None
    formatted = results[0].get("formatted_address") or address.strip()
    result = GeocodeResult(lat=float(lat), lng=float(lng), formatted_address=formatted)
    cache_geocode(address, result.lat, result.lng, result.formatted_address)
    return result
