"""Outbound email through the SendGrid v3 ``mail/send`` REST API."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..core.config import settings
from .errors import MailDeliveryError, MissingConfigurationError, is_transient_status

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    to: str
    subject: str
    html: str
    bcc: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class MailReceipt:
    status_code: int
    message_id: Optional[str] = None


def _sendgrid_creds() -> tuple[str, str]:
    api_key = (settings.SENDGRID_API_KEY or "").strip()
    if not api_key:
        raise MissingConfigurationError("SENDGRID_API_KEY")
    from_email = (settings.SENDGRID_FROM_EMAIL or "").strip()
    if not from_email:
        raise MissingConfigurationError("SENDGRID_FROM_EMAIL")
    return api_key, from_email


def ensure_mail_configured() -> None:
    """Fail fast before any work is done for a submission."""
    _sendgrid_creds()


def build_payload(message: MailMessage, from_email: str) -> dict[str, Any]:
    personalization: dict[str, Any] = {"to": [{"email": message.to}]}
    if message.bcc and message.bcc.strip().lower() != message.to.strip().lower():
        personalization["bcc"] = [{"email": message.bcc}]
    payload: dict[str, Any] = {
        "personalizations": [personalization],
        "from": {"email": from_email},
        "subject": message.subject,
        "content": [{"type": "text/html", "value": message.html}],
    }
    if message.headers:
        payload["headers"] = dict(message.headers)
    return payload


async def send_email(message: MailMessage) -> MailReceipt:
    """Deliver one message; raises ``MailDeliveryError`` on any failure."""
    api_key, from_email = _sendgrid_creds()
    try:
        async with httpx.AsyncClient(timeout=settings.EMAIL_TIMEOUT) as client:
            res = await client.post(
                settings.SENDGRID_API_URL,
                json=build_payload(message, from_email),
                headers={"Authorization": f"Bearer {api_key}"},
            )
    except httpx.HTTPError as exc:
        # No response at all (DNS, connect, read timeout): always worth retrying
        raise MailDeliveryError(f"SendGrid request failed: {exc}", transient=True) from exc

    if res.status_code >= 400:
        body = res.text[:2000]
        raise MailDeliveryError(
            f"SendGrid responded {res.status_code}: {body}",
            status_code=res.status_code,
            transient=is_transient_status(res.status_code),
        )
    return MailReceipt(status_code=res.status_code, message_id=res.headers.get("x-message-id"))


Sender = Callable[[MailMessage], Awaitable[MailReceipt]]


async def send_with_retry(
    message: MailMessage,
    *,
    recipient_type: str,
    context: Optional[dict[str, Any]] = None,
    sender: Optional[Sender] = None,
    delays_ms: Optional[list[int]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> MailReceipt:
    """Send ``message``, retrying transient failures after each delay in turn.

    One initial attempt plus one per configured delay. Permanent failures
    (4xx other than 408/429) are raised immediately.
    """
    send = sender or send_email
    delays = settings.EMAIL_RETRY_DELAYS_MS if delays_ms is None else delays_ms
    base = dict(context or {}, recipientType=recipient_type)

    for attempt in range(len(delays) + 1):
        if attempt > 0:
            await sleep(delays[attempt - 1] / 1000.0)
        try:
            receipt = await send(message)
        except MailDeliveryError as exc:
            logger.error(
                "quote_email_failed",
                extra={
                    **base,
                    "event": "quote_email_failed",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "attempt": attempt + 1,
                    "statusCode": exc.provider_status,
                    "transient": exc.transient,
                    "reason": exc.message,
                },
            )
            if not exc.transient or attempt == len(delays):
                raise
            continue

        logger.info(
            "quote_email_sent",
            extra={
                **base,
                "event": "quote_email_sent",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "attempt": attempt + 1,
                "statusCode": receipt.status_code,
                "messageId": receipt.message_id,
            },
        )
        return receipt
