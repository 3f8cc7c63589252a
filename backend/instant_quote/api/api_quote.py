from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from ..pricing import compute_quote
from ..schemas.quote import QuotePreviewRead, QuotePreviewRequest, QuoteSubmission, QuoteSubmissionResult
from ..services.quote_validation import validate_submission
from ..tenants import TenantConfig, is_allowed_embed_origin
from ..utils.email import MailMessage, ensure_mail_configured, send_with_retry
from ..utils.email_template import build_quote_email_html, customer_subject, owner_subject
from ..utils.errors import (
    MailDeliveryError,
    MissingConfigurationError,
    OriginNotAllowedError,
    QuoteValidationError,
    RateLimitExceeded,
)
from ..utils.rate_limit import get_rate_limiter
from ..core.config import settings
from .dependencies import get_client_ip, get_tenant, request_origins, self_origin

router = APIRouter(tags=["quotes"])
logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _origin_allowed(request: Request, tenant: TenantConfig) -> bool:
    origin, referer_origin = request_origins(request)
    if not origin and not referer_origin:
        return False
    if is_allowed_embed_origin(tenant, origin) or is_allowed_embed_origin(tenant, referer_origin):
        return True
    # Tenants without declared domains accept only the app's own origin
    if not tenant.allowed_domains:
        own = self_origin(request)
        return own is not None and own in (origin, referer_origin)
    return False


@router.post("/quote/preview", response_model=QuotePreviewRead)
def preview_quote(payload: QuotePreviewRequest, tenant: TenantConfig = Depends(get_tenant)):
    """Price a selection for display; the same engine re-validates submissions."""
    quote = compute_quote(payload.sqft, payload.services, payload.frequency, tenant.rate_card)
    return {**quote.as_dict(), "pricingModel": tenant.pricing_model}


@router.post("/quote", response_model=QuoteSubmissionResult)
async def submit_quote(request: Request, tenant: TenantConfig = Depends(get_tenant)):
    """Re-validate a quote and email the lead to the tenant owner and the customer.

    Origin and rate-limit checks run before the body is read so that
    abusive clients are turned away without any pricing work.
    """
    host = getattr(request.state, "tenant_host", "") or request.headers.get("host", "")
    ip = get_client_ip(request)
    log_ctx = {"tenant": tenant.slug, "host": host, "ip": ip}

    if not _origin_allowed(request, tenant):
        logger.error("quote_origin_rejected", extra={**log_ctx, "event": "quote_origin_rejected", "timestamp": _now()})
        raise OriginNotAllowedError()

    decision = get_rate_limiter().hit(f"{tenant.slug}:{ip}")
    if not decision.allowed:
        logger.error(
            "quote_rate_limited",
            extra={**log_ctx, "event": "quote_rate_limited", "timestamp": _now(), "retryAfter": decision.retry_after},
        )
        raise RateLimitExceeded(decision.retry_after)

    try:
        ensure_mail_configured()
        owner_email = tenant.resolved_owner_email()
        if not owner_email:
            raise MissingConfigurationError("OWNER_EMAIL")

        try:
            payload = QuoteSubmission.model_validate(await request.json())
        except (ValidationError, ValueError):
            raise QuoteValidationError("Invalid request payload.") from None

        quote = validate_submission(payload, tenant.rate_card)

        contact_phone = tenant.support_phone or settings.DEFAULT_CONTACT_PHONE
        common = dict(
            name=payload.name,
            address=payload.address,
            sqft=payload.sqft,
            preferred_date=payload.preferred_date,
            services=quote.line_items,
            total=quote.total,
            contact_phone=contact_phone,
            brand_name=tenant.brand_name,
        )
        owner_message = MailMessage(
            to=owner_email,
            subject=owner_subject(payload.address),
            html=build_quote_email_html(
                **common,
                customer_phone=payload.phone,
                customer_email=str(payload.email),
                show_lead_details=True,
            ),
            bcc=tenant.resolved_bcc(),
        )
        customer_message = MailMessage(
            to=str(payload.email),
            subject=customer_subject(payload.address),
            html=build_quote_email_html(**common),
        )

        await send_with_retry(owner_message, recipient_type="owner", context=log_ctx)
    except (MailDeliveryError, MissingConfigurationError) as exc:
        logger.error(
            "quote_submission_failed",
            extra={**log_ctx, "event": "quote_submission_failed", "timestamp": _now(), "reason": exc.message},
        )
        raise

    try:
        await send_with_retry(customer_message, recipient_type="customer", context=log_ctx)
    except MailDeliveryError as exc:
        # The lead already reached the owner; the customer copy is best effort
        logger.error(
            "quote_customer_email_non_blocking_failure",
            extra={
                **log_ctx,
                "event": "quote_customer_email_non_blocking_failure",
                "timestamp": _now(),
                "reason": exc.message,
            },
        )

    return QuoteSubmissionResult(ok=True)
