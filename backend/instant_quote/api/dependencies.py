from typing import Optional
from urllib.parse import urlsplit

from fastapi import Request

from ..tenants import (
    TenantConfig,
    extract_tenant_slug_from_path,
    get_request_host,
    resolve_tenant,
    resolve_tenant_from_slug,
)
from ..tenants.resolver import normalize_origin


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or "unknown"
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _referer_slug(request: Request) -> Optional[str]:
    referer = request.headers.get("referer")
    if not referer:
        return None
    try:
        return extract_tenant_slug_from_path(urlsplit(referer).path)
    except ValueError:
        return None


def get_tenant(request: Request) -> TenantConfig:
    """Tenant for the current request.

    The middleware already resolved explicit slugs (path or header) and the
    host. A widget page served under ``/t/<slug>/`` that posts to the bare
    API path is recognised through its Referer.
    """
    tenant = getattr(request.state, "tenant", None)
    if getattr(request.state, "tenant_slug", None):
        return tenant
    referer_tenant = resolve_tenant_from_slug(_referer_slug(request))
    if referer_tenant is not None:
        return referer_tenant
    return tenant or resolve_tenant(host=get_request_host(request.headers))


def request_origins(request: Request) -> tuple[Optional[str], Optional[str]]:
    """``(Origin, Referer origin)`` of the request, normalized."""
    return (
        normalize_origin(request.headers.get("origin")),
        normalize_origin(request.headers.get("referer")),
    )


def self_origin(request: Request) -> Optional[str]:
    return normalize_origin(str(request.base_url))
