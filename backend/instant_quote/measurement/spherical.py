"""Spherical geometry on the WGS84 mean sphere.

The area and length formulas match the ones the browser map SDK uses
(``google.maps.geometry.spherical``), so a measurement replayed on the
server lands on the same rounded value the visitor saw.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, NamedTuple, Sequence

EARTH_RADIUS_M = 6378137.0
SQFT_PER_SQM = 10.7639104
FT_PER_M = 3.28084


class LatLng(NamedTuple):
    lat: float
    lng: float

    @classmethod
    def parse(cls, value: Any) -> "LatLng":
        """Accept ``{"lat", "lng"}`` mappings, ``(lat, lng)`` pairs or ``LatLng``."""
        if isinstance(value, LatLng):
            return value
        if isinstance(value, dict):
            lat, lng = value.get("lat"), value.get("lng")
        else:
            lat, lng = value
        lat_f, lng_f = float(lat), float(lng)
        if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
            raise ValueError("coordinates must be finite")
        if not -90.0 <= lat_f <= 90.0 or not -180.0 <= lng_f <= 180.0:
            raise ValueError(f"coordinates out of range: {lat_f}, {lng_f}")
        return cls(lat_f, lng_f)

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


def parse_path(points: Iterable[Any]) -> list[LatLng]:
    return [LatLng.parse(p) for p in points]


def compute_distance_between(a: LatLng, b: LatLng, radius: float = EARTH_RADIUS_M) -> float:
    lat1, lng1 = math.radians(a.lat), math.radians(a.lng)
    lat2, lng2 = math.radians(b.lat), math.radians(b.lng)
    hav = math.sin((lat1 - lat2) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lng1 - lng2) / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(hav))) * radius


def compute_length(path: Sequence[LatLng], radius: float = EARTH_RADIUS_M) -> float:
    """Great-circle length of an open path in meters."""
    return sum(compute_distance_between(a, b, radius) for a, b in zip(path, path[1:]))


def _polar_triangle_area(tan1: float, lng1: float, tan2: float, lng2: float) -> float:
    delta = lng1 - lng2
    t = tan1 * tan2
    return 2 * math.atan2(t * math.sin(delta), 1 + t * math.cos(delta))


def compute_signed_area(path: Sequence[LatLng], radius: float = EARTH_RADIUS_M) -> float:
    if len(path) < 3:
        return 0.0
    total = 0.0
    prev = path[-1]
    prev_tan = math.tan((math.pi / 2 - math.radians(prev.lat)) / 2)
    prev_lng = math.radians(prev.lng)
    for point in path:
        tan_lat = math.tan((math.pi / 2 - math.radians(point.lat)) / 2)
        lng = math.radians(point.lng)
        total += _polar_triangle_area(tan_lat, lng, prev_tan, prev_lng)
        prev_tan, prev_lng = tan_lat, lng
    return total * radius * radius


def compute_area(path: Sequence[LatLng], radius: float = EARTH_RADIUS_M) -> float:
    """Area of a closed ring in square meters (ring is implicitly closed)."""
    return abs(compute_signed_area(path, radius))


def sqft_from_square_meters(square_meters: float) -> int:
    """Whole square feet, half-up, never negative."""
    if not math.isfinite(square_meters) or square_meters <= 0:
        return 0
    return int(Decimal(repr(square_meters * SQFT_PER_SQM)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def feet_from_meters(meters: float) -> float:
    """Linear feet to one decimal place, half-up, never negative."""
    if not math.isfinite(meters) or meters <= 0:
        return 0.0
    return float(Decimal(repr(meters * FT_PER_M)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def measure_area_sqft(polygons: Iterable[Sequence[LatLng]]) -> int:
    return sqft_from_square_meters(sum(compute_area(p) for p in polygons if len(p) >= 3))


def measure_length_feet(polylines: Iterable[Sequence[LatLng]]) -> float:
    return feet_from_meters(sum(compute_length(p) for p in polylines if len(p) >= 2))
