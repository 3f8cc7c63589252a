from __future__ import annotations

import re
from typing import Mapping, Optional
from urllib.parse import urlsplit

from .registry import DEMO_TENANT, TENANT_HOST_MAP, TENANTS_BY_SLUG, TenantConfig

TENANT_PATH_PREFIX = "/t/"
_PORT_RE = re.compile(r":\d+$")
_SLUG_RE = re.compile(r"^/t/([^/?#]+)")
FALLBACK_RGB = "22 163 74"


def strip_port(host: str) -> str:
    return _PORT_RE.sub("", (host or "").strip().lower())


def get_request_host(headers: Mapping[str, str]) -> str:
    """Prefer the proxy-supplied host so tenants resolve behind a CDN."""
    return headers.get("x-forwarded-host") or headers.get("host") or ""


def extract_tenant_slug_from_path(path: str) -> Optional[str]:
    match = _SLUG_RE.match(path or "")
    if not match:
        return None
    slug = match.group(1).strip().lower()
    return slug or None


def strip_tenant_prefix(path: str) -> str:
    """``/t/acme/api/quote`` -> ``/api/quote``; other paths are returned unchanged."""
    match = _SLUG_RE.match(path or "")
    if not match:
        return path
    rest = path[match.end():]
    return rest if rest.startswith("/") else "/" + rest


def resolve_tenant_from_slug(slug: Optional[str]) -> Optional[TenantConfig]:
    if not slug:
        return None
    return TENANTS_BY_SLUG.get(slug.strip().lower())


def resolve_tenant_from_host(host: str) -> TenantConfig:
    return TENANT_HOST_MAP.get(strip_port(host), DEMO_TENANT)


def resolve_tenant(host: str = "", slug: Optional[str] = None) -> TenantConfig:
    """Slug beats host; an unknown slug falls through to the host lookup."""
    return resolve_tenant_from_slug(slug) or resolve_tenant_from_host(host)


def normalize_origin(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        parts = urlsplit(value.strip())
        port = parts.port
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    origin = f"{parts.scheme}://{parts.hostname.lower()}"
    default_port = 443 if parts.scheme == "https" else 80
    if port is not None and port != default_port:
        origin += f":{port}"
    return origin


def get_allowed_origins(tenant: TenantConfig) -> list[str]:
    origins: list[str] = []
    for domain in tenant.allowed_domains:
        origin = normalize_origin(domain)
        if origin and origin not in origins:
            origins.append(origin)
    return origins


def is_allowed_embed_origin(tenant: TenantConfig, origin: Optional[str]) -> bool:
    normalized = normalize_origin(origin)
    if not normalized:
        return False
    return normalized in get_allowed_origins(tenant)


def frame_ancestors(tenant: TenantConfig) -> str:
    sources = ["'self'"]
    for origin in get_allowed_origins(tenant):
        if origin not in sources:
            sources.append(origin)
    return f"frame-ancestors {' '.join(sources)};"


def hex_to_rgb_css(hex_color: str) -> str:
    """``"#16a34a"`` -> ``"22 163 74"`` for CSS ``rgb(var(--brand))`` usage."""
    value = (hex_color or "").replace("#", "").strip()
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        return FALLBACK_RGB
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return FALLBACK_RGB
    return f"{r} {g} {b}"
