"""Quote wizard state shared across the address, measure, services and
schedule steps.

The session only stores what the surface reports; it never recomputes
geometry. Persisted state is versioned: ``QuoteSession.load`` upgrades
anything older (or malformed) into the current shape instead of failing.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from instant_quote.measurement.spherical import LatLng
from instant_quote.pricing import compute_quote, get_rate_card
from instant_quote.pricing.catalog import (
    DEFAULT_FREQUENCY,
    DEFAULT_SERVICES,
    is_known_service,
    migrate_service_keys,
    normalize_frequency,
)
from instant_quote.pricing.engine import Quote
from instant_quote.pricing.rates import normalize_measurement, round_currency

logger = logging.getLogger(__name__)

SESSION_SCHEMA_VERSION = 2

LEAD_FIELDS = {
    "name": "name",
    "phone": "phone",
    "email": "email",
    "preferredDate": "preferred_date",
    "preferred_date": "preferred_date",
}


def normalize_address(address: Optional[str]) -> str:
    return (address or "").strip().lower()


class LeadDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    phone: str = ""
    email: str = ""
    preferred_date: str = Field(default="", alias="preferredDate")


class Point(BaseModel):
    lat: float
    lng: float


class QuoteSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = SESSION_SCHEMA_VERSION
    address: str = ""
    center: Optional[Point] = None
    shapes: list[list[Point]] = Field(default_factory=list, alias="polygons")
    sqft: int = 0
    selected_services: list[str] = Field(default_factory=lambda: list(DEFAULT_SERVICES), alias="selectedServices")
    frequency: Literal["weekly", "biweekly"] = Field(default=DEFAULT_FREQUENCY, alias="mowingFrequency")
    lead: LeadDetails = Field(default_factory=LeadDetails)

    # -- address & geometry ---------------------------------------------

    def set_address(self, address: str) -> bool:
        """Store the typed address; returns True when it names a new place.

        A different address (ignoring case and surrounding whitespace)
        invalidates the drawn shapes and the measurement.
        """
        changed = normalize_address(address) != normalize_address(self.address)
        self.address = address
        if changed:
            self.shapes = []
            self.sqft = 0
            self.center = None
        return changed

    def set_center(self, center: Optional[Any]) -> None:
        if center is None:
            self.center = None
            return
        point = LatLng.parse(center)
        self.center = Point(lat=point.lat, lng=point.lng)

    def set_shapes(self, shapes: list[Any]) -> None:
        parsed = []
        for path in shapes or ():
            parsed.append([Point(**LatLng.parse(p).as_dict()) for p in path])
        self.shapes = parsed

    def set_measurement(self, value: Any) -> int:
        self.sqft = round_currency(normalize_measurement(value))
        return self.sqft

    # -- services ---------------------------------------------------------

    def add_service(self, key: str) -> None:
        if not is_known_service(key):
            raise ValueError(f"Unknown service: {key}")
        if key not in self.selected_services:
            self.selected_services.append(key)

    def remove_service(self, key: str) -> None:
        self.selected_services = [s for s in self.selected_services if s != key]

    def toggle_service(self, key: str) -> bool:
        """Flip ``key``'s selection; returns whether it is now selected."""
        if key in self.selected_services:
            self.remove_service(key)
            return False
        self.add_service(key)
        return True

    def set_frequency(self, frequency: str) -> None:
        if frequency not in ("weekly", "biweekly"):
            raise ValueError("Invalid mowing frequency.")
        self.frequency = frequency

    def set_lead_field(self, field: str, value: str) -> None:
        attr = LEAD_FIELDS.get(field)
        if attr is None:
            raise ValueError(f"Unknown lead field: {field}")
        setattr(self.lead, attr, value or "")

    # -- lifecycle --------------------------------------------------------

    def reset(self) -> None:
        fresh = QuoteSession()
        for name in type(self).model_fields:
            setattr(self, name, getattr(fresh, name))

    def enter_funnel(self, continue_: bool = False) -> None:
        """Landing-page entry: a fresh visit starts over, ``?continue=1`` resumes."""
        if not continue_:
            self.reset()

    def quote(self, rate_card=None) -> Quote:
        return compute_quote(self.sqft, self.selected_services, self.frequency, rate_card or get_rate_card(None))

    # -- persistence ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def load(cls, data: Optional[Mapping[str, Any]]) -> "QuoteSession":
        """Rebuild a session from persisted state of any schema version."""
        if not isinstance(data, Mapping):
            return cls()
        version = data.get("version")
        if not isinstance(version, int) or version < SESSION_SCHEMA_VERSION:
            logger.info("Migrating quote session from schema version %s", version)

        session = cls()
        address = data.get("address")
        session.address = address if isinstance(address, str) else ""

        try:
            if data.get("center") is not None:
                session.set_center(data.get("center"))
        except (TypeError, ValueError):
            session.center = None

        shapes = []
        raw_shapes = data.get("polygons", data.get("shapes"))
        for path in raw_shapes if isinstance(raw_shapes, list) else ():
            try:
                shapes.append([Point(**LatLng.parse(p).as_dict()) for p in path])
            except (TypeError, ValueError):
                continue
        session.shapes = shapes

        session.set_measurement(data.get("sqft", 0))
        session.selected_services = migrate_service_keys(
            data.get("selectedServices", data.get("selected_services"))
        )
        session.frequency = normalize_frequency(data.get("mowingFrequency", data.get("frequency")))

        lead = data.get("lead")
        if isinstance(lead, Mapping):
            for key in LEAD_FIELDS:
                value = lead.get(key)
                if isinstance(value, str):
                    session.set_lead_field(key, value)
        return session
