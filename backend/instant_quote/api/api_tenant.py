from fastapi import APIRouter, Depends

from ..tenants import TenantConfig, hex_to_rgb_css
from .dependencies import get_tenant

router = APIRouter(tags=["tenant"])


@router.get("/tenant")
def tenant_branding(tenant: TenantConfig = Depends(get_tenant)):
    """Branding for the resolved tenant, with CSS-ready RGB triplets."""
    return {
        **tenant.public_dict(),
        "theme": {
            "primaryRgb": hex_to_rgb_css(tenant.primary_hex),
            "bgTintRgb": hex_to_rgb_css(tenant.bg_tint_hex),
        },
    }
