"""Tenant registry.

Each tenant is a branded instance of the funnel. Tenants are looked up by
request host (``TENANT_HOST_MAP``) or by slug (``/t/<slug>/...`` and the
``X-Tenant-Slug`` header); anything unknown falls back to ``DEMO_TENANT``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from instant_quote.core.config import settings
from instant_quote.pricing.fence import DEFAULT_FENCE_CARD, FenceRateCard, fence_rate_card_from_config
from instant_quote.pricing.rates import get_rate_card


class TenantConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    brand_name: str
    tagline: Optional[str] = None
    logo_url: Optional[str] = None
    primary_hex: str = "#16a34a"
    bg_tint_hex: str = "#eafaf1"
    owner_email: Optional[str] = None
    bcc_email: Optional[str] = None
    support_phone: Optional[str] = None
    allowed_domains: tuple[str, ...] = ()
    pricing_model: Literal["blocks", "tiers"] = "blocks"
    funnel: Literal["lawn", "fence"] = "lawn"
    fence_pricing: Optional[dict[str, Any]] = Field(default=None)

    @property
    def rate_card(self):
        return get_rate_card(self.pricing_model)

    @property
    def fence_rate_card(self) -> FenceRateCard:
        if not self.fence_pricing:
            return DEFAULT_FENCE_CARD
        return fence_rate_card_from_config(self.fence_pricing)

    def resolved_owner_email(self) -> str:
        return (self.owner_email or settings.OWNER_EMAIL or "").strip()

    def resolved_bcc(self) -> Optional[str]:
        bcc = (self.bcc_email or settings.PUSHOVER_BCC_EMAIL or "").strip()
        return bcc or None

    def public_dict(self) -> dict[str, Any]:
        """Branding fields safe to expose to the browser."""
        return {
            "slug": self.slug,
            "brandName": self.brand_name,
            "tagline": self.tagline,
            "logoUrl": self.logo_url,
            "primaryHex": self.primary_hex,
            "bgTintHex": self.bg_tint_hex,
            "supportPhone": self.support_phone or settings.DEFAULT_CONTACT_PHONE,
            "pricingModel": self.pricing_model,
            "funnel": self.funnel,
        }


DEMO_TENANT = TenantConfig(
    slug="demo",
    brand_name="Instant Lawn Quote",
    tagline="Get an exact lawn care price in minutes.",
    primary_hex="#16a34a",
    bg_tint_hex="#eafaf1",
    support_phone="+18016516326",
    allowed_domains=("http://localhost:3000", "http://127.0.0.1:3000"),
)

FENCE_DEMO_TENANT = DEMO_TENANT.model_copy(
    update={
        "slug": "fence-demo",
        "brand_name": "Instant Fence Quote",
        "tagline": "Measure your fence line and get a price range.",
        "funnel": "fence",
    }
)

TENANT_HOST_MAP: dict[str, TenantConfig] = {
    "localhost": DEMO_TENANT,
    "127.0.0.1": DEMO_TENANT,
    "demo.instant-quote.online": DEMO_TENANT.model_copy(
        update={
            "allowed_domains": (
                "https://demo.instant-quote.online",
                "https://www.demo.instant-quote.online",
                "https://example-wordpress-site.com",
            )
        }
    ),
    "instant-quote-lawn-care.vercel.app": DEMO_TENANT.model_copy(
        update={
            "slug": "instant-quote-vercel",
            "brand_name": "Green Lawn Utah",
            "tagline": "Fast lawn pricing in minutes.",
            "primary_hex": "#FF7A00",
            "bg_tint_hex": "#ecfeff",
            "pricing_model": "tiers",
            "allowed_domains": ("https://instant-quote-lawn-care.vercel.app",),
        }
    ),
}


def _build_slug_map() -> dict[str, TenantConfig]:
    tenants: dict[str, TenantConfig] = {DEMO_TENANT.slug: DEMO_TENANT, FENCE_DEMO_TENANT.slug: FENCE_DEMO_TENANT}
    for tenant in TENANT_HOST_MAP.values():
        # First registration of a slug wins so "demo" keeps the local origins
        tenants.setdefault(tenant.slug, tenant)
    return tenants


TENANTS_BY_SLUG: dict[str, TenantConfig] = _build_slug_map()
