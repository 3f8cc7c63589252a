import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_fence, api_geocode, api_measurement, api_quote, api_tenant
from .core.config import settings
from .core.observability import setup_logging
from .middleware.tenant_context import TenantContextMiddleware
from .utils.errors import QuoteError, RateLimitExceeded
from .utils.redis_cache import close_redis_client

setup_logging()
logger = logging.getLogger(__name__)

_BOOT_TS = time.time()

# Always use ORJSONResponse for JSON payloads to ensure consistent, fast
# serialization across all endpoints.
app = FastAPI(title="Instant Quote API", default_response_class=ORJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ORIGINS != ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)
# Added last so it runs first: tenant prefix rewrite happens before routing
app.add_middleware(TenantContextMiddleware)


@app.exception_handler(QuoteError)
async def quote_error_handler(request: Request, exc: QuoteError):
    if exc.status_code >= 500:
        logger.error("Quote error at %s: %s", request.url.path, exc.message)
    else:
        logger.warning("Quote request rejected at %s: %s", request.url.path, exc.message)
    headers = {}
    if isinstance(exc, RateLimitExceeded):
        headers["Retry-After"] = str(exc.retry_after)
    return ORJSONResponse(status_code=exc.status_code, content=exc.payload(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Public API payload errors use the funnel's ``{ok, error}`` shape."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    if request.url.path.startswith(settings.API_PREFIX):
        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": "Invalid request payload."},
        )
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.info("HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail)
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.get("/health", tags=["health"])
async def health():
    """Liveness probe: process can respond."""
    return {
        "status": "ok",
        "uptime_s": round(time.time() - _BOOT_TS, 1),
        "pid": os.getpid(),
    }


@app.on_event("shutdown")
def shutdown_redis_client() -> None:
    close_redis_client()


api_prefix = settings.API_PREFIX

app.include_router(api_quote.router, prefix=api_prefix)
app.include_router(api_fence.router, prefix=api_prefix)
app.include_router(api_measurement.router, prefix=api_prefix)
app.include_router(api_tenant.router, prefix=api_prefix)
app.include_router(api_geocode.router, prefix=api_prefix)
