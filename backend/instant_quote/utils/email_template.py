"""HTML body for quote emails (owner lead notification and customer copy)."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from instant_quote.pricing.catalog import label_for
from instant_quote.pricing.engine import QuoteLineItem, format_currency
from instant_quote.pricing.rates import round_currency

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
env.filters["currency"] = format_currency


def owner_subject(address: str) -> str:
    return f"New Instant Quote Lead - {address}"


def customer_subject(address: str) -> str:
    return f"Your Quote for - {address}"


def build_quote_email_html(
    *,
    name: str,
    address: str,
    sqft: int,
    preferred_date: Optional[str],
    services: Iterable[QuoteLineItem],
    total: int,
    contact_phone: str,
    customer_phone: Optional[str] = None,
    customer_email: Optional[str] = None,
    show_lead_details: bool = False,
    brand_name: str = "Instant Quote",
) -> str:
    """Render the quote summary.

    Every visitor-supplied value is escaped by the template environment.
    The owner variant (``show_lead_details``) adds the customer's phone
    and email.
    """
    details = [
        ("Name", name),
        ("Address", address),
        ("Lawn Size", f"{max(0, round_currency(sqft)):,} sqft"),
        ("Preferred Date", preferred_date or "Not provided"),
    ]
    if show_lead_details:
        details.append(("Customer Phone", customer_phone or "N/A"))
        details.append(("Customer Email", customer_email or "N/A"))

    rows = [(label_for(item.key, item.frequency), item.price) for item in services]
    return env.get_template("quote_email.html").render(
        brand_name=brand_name,
        details=details,
        rows=rows,
        total=total,
        contact_phone=contact_phone,
    )
