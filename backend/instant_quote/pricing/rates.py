"""Rate cards for the lawn funnel.

Two interchangeable forms exist:

- ``BlockRateCard``: base price plus a fixed increment per block of
  measurement beyond a threshold. This is the default.
- ``TierTable``: fixed prices per contiguous band of measurement.

Both answer ``price(measurement, service, frequency)`` with a whole,
non-negative currency amount, and both are validated at construction so a
misconfigured card fails at import time instead of mispricing a lead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP, localcontext
from typing import Any, Mapping, Optional, Sequence

from .catalog import SERVICE_KEYS

_ONE = Decimal("1")

# Ceiling applied to every measurement (square feet or linear feet) before
# pricing. Larger inputs are priced as if they were exactly this size.
MAX_MEASUREMENT = Decimal(10_000_000)


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Any) -> int:
    """Round to whole currency units, half away from zero.

    Non-finite amounts round to 0. The working precision grows with the
    magnitude so large amounts never overflow the decimal context.
    """
    amount = to_decimal(value)
    if not amount.is_finite():
        return 0
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 2)
        return int(amount.quantize(_ONE, rounding=ROUND_HALF_UP))


def normalize_measurement(value: Any) -> Decimal:
    """Collapse anything that is not a finite, positive number to 0.

    Values above ``MAX_MEASUREMENT`` are clamped to it.
    """
    if isinstance(value, bool) or value is None:
        return Decimal(0)
    try:
        number = float(value)
    except OverflowError:
        # Integers too large for a float
        return MAX_MEASUREMENT if value > 0 else Decimal(0)
    except (TypeError, ValueError):
        return Decimal(0)
    if not math.isfinite(number) or number <= 0:
        return Decimal(0)
    if number >= MAX_MEASUREMENT:
        return MAX_MEASUREMENT
    try:
        return to_decimal(value)
    except InvalidOperation:
        return Decimal(0)


@dataclass(frozen=True)
class BlockRate:
    base: Decimal
    increment: Decimal


@dataclass(frozen=True)
class BlockRateCard:
    threshold: Decimal
    block_size: Decimal
    rates: Mapping[str, BlockRate]
    biweekly_multiplier: Decimal = Decimal("1.2")
    kind: str = field(default="blocks", init=False)

    def __post_init__(self) -> None:
        if self.block_size <= 0:
            raise ValueError("block_size must be positive")
        if self.threshold < 0:
            raise ValueError("threshold must be non-negative")
        if self.biweekly_multiplier <= _ONE:
            raise ValueError("biweekly_multiplier must be greater than 1")
        missing = [key for key in SERVICE_KEYS if key not in self.rates]
        if missing:
            raise ValueError(f"block rates missing services: {missing}")
        for key, rate in self.rates.items():
            if rate.base < 0 or rate.increment < 0:
                raise ValueError(f"negative block rate for {key}")

    def extra_blocks(self, measurement: Decimal) -> int:
        if measurement < self.threshold:
            return 0
        steps = ((measurement - self.threshold) / self.block_size).to_integral_value(rounding=ROUND_FLOOR)
        return int(steps) + 1

    def price(self, measurement: Decimal, service: str, frequency: Optional[str] = None) -> int:
        rate = self.rates.get(service)
        if rate is None:
            return 0
        weekly = round_currency(rate.base + self.extra_blocks(measurement) * rate.increment)
        if service == "mowing" and frequency == "biweekly":
            return round_currency(weekly * self.biweekly_multiplier)
        return weekly


@dataclass(frozen=True)
class PricingTier:
    min: int
    max: Optional[int]
    mowing_weekly: int
    mowing_biweekly: int
    aeration: int
    dethatching: int
    fertilizing: int

    def contains(self, measurement: int) -> bool:
        return measurement >= self.min and (self.max is None or measurement <= self.max)

    def price_for(self, service: str, frequency: Optional[str] = None) -> int:
        if service == "mowing":
            return self.mowing_biweekly if frequency == "biweekly" else self.mowing_weekly
        if service in ("aeration", "dethatching", "fertilizing"):
            return getattr(self, service)
        return 0

    def prices(self) -> tuple[int, ...]:
        return (
            self.mowing_weekly,
            self.mowing_biweekly,
            self.aeration,
            self.dethatching,
            self.fertilizing,
        )


class TierTable:
    """Monotonic, non-overlapping bands over the measurement domain."""

    kind = "tiers"

    def __init__(self, tiers: Sequence[PricingTier]):
        if not tiers:
            raise ValueError("a tier table needs at least one band")
        ordered = list(tiers)
        for prev, nxt in zip(ordered, ordered[1:]):
            if prev.max is None:
                raise ValueError("only the last band may be unbounded")
            if nxt.min <= prev.max:
                raise ValueError(f"bands overlap at {prev.max}/{nxt.min}")
            if any(b < a for a, b in zip(prev.prices(), nxt.prices())):
                raise ValueError(f"prices decrease between bands starting {prev.min} and {nxt.min}")
        for tier in ordered:
            if tier.max is not None and tier.max < tier.min:
                raise ValueError(f"band {tier.min}..{tier.max} is inverted")
            if min(tier.prices()) < 0:
                raise ValueError(f"negative price in band starting {tier.min}")
        self.tiers: tuple[PricingTier, ...] = tuple(ordered)

    @property
    def first(self) -> PricingTier:
        return self.tiers[0]

    @property
    def last(self) -> PricingTier:
        return self.tiers[-1]

    def find(self, measurement: Decimal) -> PricingTier:
        sqft = round_currency(measurement)
        if self.first.max is not None and sqft <= self.first.max:
            return self.first
        if sqft >= self.last.min:
            return self.last
        for tier in self.tiers:
            if tier.contains(sqft):
                return tier
        # Gap between bands: fall back to the highest band already reached
        reached = [tier for tier in self.tiers if tier.min <= sqft]
        return reached[-1] if reached else self.first

    def price(self, measurement: Decimal, service: str, frequency: Optional[str] = None) -> int:
        return self.find(measurement).price_for(service, frequency)


def _block(base: int, increment: int) -> BlockRate:
    return BlockRate(base=Decimal(base), increment=Decimal(increment))


DEFAULT_BLOCK_CARD = BlockRateCard(
    threshold=Decimal(4000),
    block_size=Decimal(500),
    rates={
        "mowing": _block(53, 2),
        "aeration": _block(65, 5),
        "dethatching": _block(85, 6),
        "fertilizing": _block(45, 3),
    },
)

DEFAULT_TIER_TABLE = TierTable(
    [
        PricingTier(0, 2500, 45, 54, 60, 80, 40),
        PricingTier(2501, 4000, 53, 64, 65, 85, 45),
        PricingTier(4001, 6000, 59, 71, 75, 95, 52),
        PricingTier(6001, 8000, 65, 78, 85, 105, 58),
        PricingTier(8001, 10000, 72, 86, 95, 118, 64),
        PricingTier(10001, None, 80, 96, 110, 130, 72),
    ]
)

RATE_CARDS: dict[str, Any] = {
    "blocks": DEFAULT_BLOCK_CARD,
    "tiers": DEFAULT_TIER_TABLE,
}


def get_rate_card(model: Optional[str]):
    """Return the rate card registered for ``model`` (default: blocks)."""
    return RATE_CARDS.get(model or "blocks", DEFAULT_BLOCK_CARD)
