"""Resolve the tenant for every request and attach its embedding policy."""

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from instant_quote.tenants import (
    extract_tenant_slug_from_path,
    frame_ancestors,
    get_request_host,
    resolve_tenant,
    resolve_tenant_from_slug,
    strip_tenant_prefix,
)

TENANT_HEADER = "x-tenant-slug"


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Store the resolved tenant on ``request.state.tenant``.

    ``/t/<slug>/...`` paths are rewritten to their unprefixed form so the
    routers never see the tenant segment. An unknown slug in the path is a
    404; an unknown slug header falls back to host resolution.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        host = get_request_host(request.headers)
        path_slug = extract_tenant_slug_from_path(request.url.path)
        if path_slug and resolve_tenant_from_slug(path_slug) is None:
            return PlainTextResponse("Tenant not found", status_code=404, headers={"Vary": "Host"})

        slug = path_slug or request.headers.get(TENANT_HEADER)
        tenant = resolve_tenant(host=host, slug=slug)
        request.state.tenant = tenant
        request.state.tenant_host = host
        request.state.tenant_slug = tenant.slug if resolve_tenant_from_slug(slug) else None

        if path_slug:
            path = strip_tenant_prefix(request.url.path)
            request.scope["path"] = path
            request.scope["raw_path"] = path.encode("utf-8")

        response = await call_next(request)
        response.headers["Content-Security-Policy"] = frame_ancestors(tenant)
        response.headers["Vary"] = "Host"
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=63072000; includeSubDomains"
        )
        return response
