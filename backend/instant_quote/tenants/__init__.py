from .registry import DEMO_TENANT, TENANT_HOST_MAP, TENANTS_BY_SLUG, TenantConfig
from .resolver import (
    extract_tenant_slug_from_path,
    frame_ancestors,
    get_allowed_origins,
    get_request_host,
    hex_to_rgb_css,
    is_allowed_embed_origin,
    resolve_tenant,
    resolve_tenant_from_host,
    resolve_tenant_from_slug,
    strip_port,
    strip_tenant_prefix,
)
