"""Fence (linear footage) estimates.

A fence estimate is a low/high range: material is priced per linear foot
for the chosen fence type, gates are flat per unit and removal of an old
fence is priced per foot. Every component is rounded to whole currency
units before it is summed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional

from .rates import normalize_measurement, round_currency, to_decimal

MAX_GATE_QTY = 10
DEFAULT_FENCE_TYPE = "wood"


@dataclass(frozen=True)
class PriceRange:
    low: Decimal
    high: Decimal

    def __post_init__(self) -> None:
        if self.low < 0 or self.high < self.low:
            raise ValueError(f"invalid price range {self.low}..{self.high}")


@dataclass(frozen=True)
class FenceRateCard:
    fence_types: Mapping[str, PriceRange]
    walk_gate: PriceRange
    double_gate: PriceRange
    removal_per_ft: PriceRange
    default_type: str = DEFAULT_FENCE_TYPE

    def __post_init__(self) -> None:
        if not self.fence_types:
            raise ValueError("a fence rate card needs at least one fence type")

    def resolve_type(self, fence_type: Optional[str]) -> str:
        if fence_type in self.fence_types:
            return fence_type  # type: ignore[return-value]
        if self.default_type in self.fence_types:
            return self.default_type
        return next(iter(self.fence_types))


@dataclass(frozen=True)
class FenceSelection:
    fence_type: str = DEFAULT_FENCE_TYPE
    walk_gate_qty: int = 0
    double_gate_qty: int = 0
    remove_old_fence: bool = False


@dataclass(frozen=True)
class FenceEstimate:
    fence_type: str
    feet: float
    walk_gate_qty: int
    double_gate_qty: int
    remove_old_fence: bool
    breakdown: dict[str, tuple[int, int]] = field(default_factory=dict)

    @property
    def low(self) -> int:
        return sum(low for low, _ in self.breakdown.values())

    @property
    def high(self) -> int:
        return sum(high for _, high in self.breakdown.values())

    def as_dict(self) -> dict[str, Any]:
        return {
            "fenceType": self.fence_type,
            "feet": self.feet,
            "walkGateQty": self.walk_gate_qty,
            "doubleGateQty": self.double_gate_qty,
            "removeOldFence": self.remove_old_fence,
            "estimatedMin": self.low,
            "estimatedMax": self.high,
            "breakdown": {name: {"min": low, "max": high} for name, (low, high) in self.breakdown.items()},
        }


def _positive(value: Any) -> Decimal:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return Decimal(0)
    if not math.isfinite(number) or number <= 0:
        return Decimal(0)
    return to_decimal(value)


def _quantity(value: Any) -> int:
    try:
        number = math.floor(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(MAX_GATE_QTY, number))


def normalize_feet(value: Any) -> float:
    """Linear feet rounded to one decimal, capped at ``MAX_MEASUREMENT``; invalid input is 0."""
    feet = normalize_measurement(value)
    return float(feet.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _range(rate: PriceRange, units: Decimal) -> tuple[int, int]:
    return round_currency(rate.low * units), round_currency(rate.high * units)


def compute_fence_estimate(feet: Any, selection: FenceSelection, rate_card: Optional[FenceRateCard] = None) -> FenceEstimate:
    card = rate_card or DEFAULT_FENCE_CARD
    fence_type = card.resolve_type(selection.fence_type)
    length = normalize_feet(feet)

    if length == 0:
        zero = (0, 0)
        return FenceEstimate(
            fence_type=fence_type,
            feet=0.0,
            walk_gate_qty=0,
            double_gate_qty=0,
            remove_old_fence=False,
            breakdown={"material": zero, "walkGate": zero, "doubleGate": zero, "removal": zero},
        )

    units = to_decimal(length)
    walk = _quantity(selection.walk_gate_qty)
    double = _quantity(selection.double_gate_qty)
    removal = _range(card.removal_per_ft, units) if selection.remove_old_fence else (0, 0)

    return FenceEstimate(
        fence_type=fence_type,
        feet=length,
        walk_gate_qty=walk,
        double_gate_qty=double,
        remove_old_fence=bool(selection.remove_old_fence),
        breakdown={
            "material": _range(card.fence_types[fence_type], units),
            "walkGate": _range(card.walk_gate, Decimal(walk)),
            "doubleGate": _range(card.double_gate, Decimal(double)),
            "removal": removal,
        },
    )


def _parse_range(raw: Any, low_key: str = "low", high_key: str = "high") -> Optional[PriceRange]:
    if raw is None:
        return None
    if isinstance(raw, (int, float, str)) and not isinstance(raw, bool):
        value = _positive(raw)
        return PriceRange(value, value)
    if isinstance(raw, Mapping):
        low = _positive(raw.get(low_key))
        high_raw = raw.get(high_key)
        high = _positive(high_raw) if high_raw is not None else low
        return PriceRange(low, max(low, high))
    return None


def fence_rate_card_from_config(config: Mapping[str, Any]) -> FenceRateCard:
    """Build a rate card from a tenant's widget JSON config.

    Accepts both the current ``pricing`` shape
    (``{"wood": {"price_per_ft_low": 28, "price_per_ft_high": 38}}``) and the
    older ``pricing_per_ft`` shape (a bare number or ``{"low", "high"}``).
    Add-on keys also accept their historical aliases.
    """
    fence_types: dict[str, PriceRange] = {}
    for name, raw in (config.get("pricing_per_ft") or {}).items():
        parsed = _parse_range(raw)
        if parsed is not None:
            fence_types[name] = parsed
    for name, raw in (config.get("pricing") or {}).items():
        parsed = _parse_range(raw, "price_per_ft_low", "price_per_ft_high")
        if parsed is not None:
            fence_types[name] = parsed
    if not fence_types:
        fence_types = dict(DEFAULT_FENCE_CARD.fence_types)

    add_ons = config.get("add_ons") or {}

    def _addon(fallback: PriceRange, *keys: str) -> PriceRange:
        for key in keys:
            if key in add_ons:
                parsed = _parse_range(add_ons[key])
                if parsed is not None:
                    return parsed
        if f"{keys[0]}_low" not in add_ons:
            return fallback
        flat_low = _positive(add_ons.get(f"{keys[0]}_low"))
        flat_high = _positive(add_ons.get(f"{keys[0]}_high")) or flat_low
        return PriceRange(flat_low, max(flat_low, flat_high))

    defaults = config.get("defaults") or {}
    return FenceRateCard(
        fence_types=fence_types,
        walk_gate=_addon(DEFAULT_FENCE_CARD.walk_gate, "walk_gate"),
        double_gate=_addon(DEFAULT_FENCE_CARD.double_gate, "double_gate", "drive_gate"),
        removal_per_ft=_addon(DEFAULT_FENCE_CARD.removal_per_ft, "remove_old_fence_per_ft", "removal_fee_per_ft"),
        default_type=str(defaults.get("fence_type") or next(iter(fence_types))),
    )


def _r(low: int, high: int) -> PriceRange:
    return PriceRange(Decimal(low), Decimal(high))


DEFAULT_FENCE_CARD = FenceRateCard(
    fence_types={
        "wood": _r(28, 38),
        "vinyl": _r(35, 48),
        "chain_link": _r(18, 26),
        "aluminum": _r(40, 55),
    },
    walk_gate=_r(350, 550),
    double_gate=_r(650, 950),
    removal_per_ft=_r(4, 7),
)
