from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .catalog import SERVICE_KEYS, SERVICE_LABELS, accepts_frequency, normalize_frequency
from .rates import get_rate_card, normalize_measurement, round_currency


@dataclass(frozen=True)
class QuoteLineItem:
    key: str
    label: str
    price: int
    frequency: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key, "label": self.label, "price": self.price}
        if self.frequency is not None:
            data["frequency"] = self.frequency
        return data


@dataclass(frozen=True)
class Quote:
    measurement: int
    line_items: tuple[QuoteLineItem, ...] = field(default_factory=tuple)
    total: int = 0

    def by_key(self) -> dict[str, QuoteLineItem]:
        return {item.key: item for item in self.line_items}

    def as_dict(self) -> dict[str, Any]:
        return {
            "sqft": self.measurement,
            "lineItems": [item.as_dict() for item in self.line_items],
            "total": self.total,
        }


def service_price(measurement: Any, service: str, frequency: Optional[str] = None, rate_card=None) -> int:
    card = rate_card or get_rate_card(None)
    freq = normalize_frequency(frequency) if accepts_frequency(service) else None
    return max(0, card.price(normalize_measurement(measurement), service, freq))


def compute_quote(
    measurement: Any,
    selected_services: Iterable[str],
    frequency: Optional[str] = "weekly",
    rate_card=None,
) -> Quote:
    """Price the selected services for a measurement.

    Pure and deterministic: the browser preview and the submission
    validator call this with the same inputs and must agree exactly. Line
    items follow catalog order, one per distinct known service; unknown
    identifiers are skipped. ``total`` is the sum of the already-rounded
    line prices.
    """
    card = rate_card or get_rate_card(None)
    value = normalize_measurement(measurement)
    selected = set(selected_services or ())
    mowing_frequency = normalize_frequency(frequency)

    items = []
    for key in SERVICE_KEYS:
        if key not in selected:
            continue
        freq = mowing_frequency if accepts_frequency(key) else None
        price = max(0, card.price(value, key, freq))
        items.append(QuoteLineItem(key=key, label=SERVICE_LABELS[key], price=price, frequency=freq))

    return Quote(
        measurement=round_currency(value),
        line_items=tuple(items),
        total=sum(item.price for item in items),
    )


def format_currency(value: Any) -> str:
    """Whole-dollar USD formatting, e.g. ``$1,250``."""
    amount = round_currency(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,}"
