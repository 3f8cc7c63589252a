"""Server-side re-validation of a submitted quote.

The browser is trusted for measurement entry only. Every submitted price is
recomputed here with the same pricing engine the preview uses, and the
submission is rejected unless the two agree to the cent.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from instant_quote.pricing import compute_quote, get_rate_card
from instant_quote.pricing.catalog import DEFAULT_FREQUENCY, accepts_frequency, is_known_service
from instant_quote.pricing.engine import Quote
from instant_quote.schemas.quote import QuoteSubmission
from instant_quote.utils.errors import QuoteValidationError

logger = logging.getLogger(__name__)

CENT_TOLERANCE = 1


def to_cents(value: Any) -> int:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite():
            raise InvalidOperation
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError) as exc:
        raise QuoteValidationError("One or more service prices are invalid.") from exc


def within_tolerance(claimed: Any, expected: Any, cents: int = CENT_TOLERANCE) -> bool:
    return abs(to_cents(claimed) - to_cents(expected)) <= cents


def validate_submission(payload: QuoteSubmission, rate_card=None) -> Quote:
    """Return the server-computed quote, or raise ``QuoteValidationError``.

    Tolerance rule: each claimed line price may differ from the recomputed
    price by at most one cent, and the claimed total may differ from the
    recomputed total by at most one cent per line item. A two-service
    $125.00 quote therefore accepts a claimed 125.02 and rejects 125.03.
    Emails always carry the server-computed amounts.
    """
    card = rate_card or get_rate_card(None)

    keys = [item.key for item in payload.services]
    if len(set(keys)) != len(keys):
        raise QuoteValidationError("Invalid services payload.")
    for item in payload.services:
        if not is_known_service(item.key):
            raise QuoteValidationError(f"Unknown service: {item.key}")
        # Mowing needs a frequency and nothing else may carry one
        if accepts_frequency(item.key) != (item.frequency is not None):
            raise QuoteValidationError("Invalid mowing frequency.")

    frequency = next(
        (item.frequency for item in payload.services if accepts_frequency(item.key)),
        DEFAULT_FREQUENCY,
    )
    quote = compute_quote(payload.sqft, keys, frequency, card)

    if len(quote.line_items) != len(payload.services):
        raise QuoteValidationError("Invalid services payload.")

    expected = quote.by_key()
    for item in payload.services:
        line = expected[item.key]
        if line.frequency != item.frequency:
            raise QuoteValidationError("Invalid mowing frequency.")
        if not within_tolerance(item.price, line.price):
            logger.info(
                "Rejected price for %s: claimed %s, expected %s", item.key, item.price, line.price
            )
            raise QuoteValidationError("One or more service prices are invalid.")

    # Each line may be off by a cent, so the total may drift by one cent per line
    if not within_tolerance(payload.total, quote.total, CENT_TOLERANCE * len(quote.line_items)):
        raise QuoteValidationError("Quote total does not match selected services.")

    return quote
