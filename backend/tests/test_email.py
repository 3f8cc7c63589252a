import asyncio
import json

import httpx
import pytest

from instant_quote.core.config import settings
from instant_quote.pricing import compute_quote
from instant_quote.utils import email as email_utils
from instant_quote.utils.email import MailMessage, MailReceipt, build_payload, send_email, send_with_retry
from instant_quote.utils.email_template import build_quote_email_html, customer_subject, owner_subject
from instant_quote.utils.errors import MailDeliveryError, MissingConfigurationError

MESSAGE = MailMessage(to="jane@example.com", subject="Your Quote", html="<p>hi</p>")


def patch_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(email_utils.httpx, "AsyncClient", client_factory)


class FlakySender:
    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self, message):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return MailReceipt(status_code=202, message_id="ok")


async def no_sleep(_seconds):
    return None


def test_payload_sets_bcc_only_for_a_different_address():
    payload = build_payload(MailMessage(to="a@example.com", subject="s", html="h", bcc="push@example.com"), "from@example.com")
    assert payload["personalizations"][0]["bcc"] == [{"email": "push@example.com"}]
    assert payload["from"] == {"email": "from@example.com"}
    assert payload["content"][0]["type"] == "text/html"

    same = build_payload(MailMessage(to="a@example.com", subject="s", html="h", bcc="A@example.com"), "from@example.com")
    assert "bcc" not in same["personalizations"][0]


def test_send_email_posts_to_sendgrid(monkeypatch):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(202, headers={"x-message-id": "abc123"})

    patch_transport(monkeypatch, handler)
    receipt = asyncio.run(send_email(MESSAGE))
    assert receipt == MailReceipt(status_code=202, message_id="abc123")
    assert seen["auth"] == "Bearer test-sendgrid-key"
    assert seen["body"]["personalizations"][0]["to"] == [{"email": "jane@example.com"}]


@pytest.mark.parametrize("status_code, transient", [(400, False), (401, False), (429, True), (503, True)])
def test_send_email_classifies_failures(monkeypatch, status_code, transient):
    patch_transport(monkeypatch, lambda request: httpx.Response(status_code, text="nope"))
    with pytest.raises(MailDeliveryError) as info:
        asyncio.run(send_email(MESSAGE))
    assert info.value.provider_status == status_code
    assert info.value.transient is transient


def test_network_errors_are_transient(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    patch_transport(monkeypatch, handler)
    with pytest.raises(MailDeliveryError) as info:
        asyncio.run(send_email(MESSAGE))
    assert info.value.transient is True
    assert info.value.provider_status is None


def test_missing_api_key_fails_before_sending(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "")
    with pytest.raises(MissingConfigurationError) as info:
        asyncio.run(send_email(MESSAGE))
    assert info.value.setting == "SENDGRID_API_KEY"
    assert info.value.payload()["error"] == "We could not send your quote right now. Please try again."


def test_retry_recovers_from_transient_failure():
    sender = FlakySender([MailDeliveryError("busy", status_code=503, transient=True)])
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    receipt = asyncio.run(
        send_with_retry(MESSAGE, recipient_type="customer", sender=sender, delays_ms=[300, 900], sleep=record_sleep)
    )
    assert receipt.status_code == 202
    assert sender.calls == 2
    assert delays == [0.3]


def test_permanent_failure_is_not_retried():
    sender = FlakySender([MailDeliveryError("bad", status_code=400, transient=False)])
    with pytest.raises(MailDeliveryError):
        asyncio.run(send_with_retry(MESSAGE, recipient_type="owner", sender=sender, delays_ms=[300, 900], sleep=no_sleep))
    assert sender.calls == 1


def test_retries_are_bounded():
    failures = [MailDeliveryError("busy", status_code=503, transient=True) for _ in range(5)]
    sender = FlakySender(failures)
    with pytest.raises(MailDeliveryError):
        asyncio.run(send_with_retry(MESSAGE, recipient_type="owner", sender=sender, delays_ms=[300, 900], sleep=no_sleep))
    assert sender.calls == 3


def test_delivery_attempts_are_logged(caplog):
    sender = FlakySender([MailDeliveryError("busy", status_code=429, transient=True)])
    with caplog.at_level("INFO", logger="instant_quote.utils.email"):
        asyncio.run(
            send_with_retry(
                MESSAGE, recipient_type="owner", context={"tenant": "demo"}, sender=sender, delays_ms=[0], sleep=no_sleep
            )
        )
    failed, sent = caplog.records
    assert failed.getMessage() == "quote_email_failed"
    assert failed.statusCode == 429
    assert failed.recipientType == "owner"
    assert failed.tenant == "demo"
    assert sent.getMessage() == "quote_email_sent"
    assert sent.attempt == 2


def test_template_escapes_visitor_input():
    quote = compute_quote(4200, ["mowing", "aeration"], "weekly")
    html = build_quote_email_html(
        name="<script>alert(1)</script>",
        address="12 Oak & Elm",
        sqft=4200,
        preferred_date=None,
        services=quote.line_items,
        total=quote.total,
        contact_phone="+18015550100",
    )
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "12 Oak &amp; Elm" in html
    assert "4,200 sqft" in html
    assert "Not provided" in html
    assert "Mowing (Weekly)" in html
    assert "$125" in html
    assert 'href="tel:+18015550100"' in html
    assert "Customer Phone" not in html


def test_owner_variant_adds_contact_details():
    quote = compute_quote(3000, ["mowing"], "weekly")
    html = build_quote_email_html(
        name="Jane",
        address="12 Oak St",
        sqft=3000,
        preferred_date="Friday",
        services=quote.line_items,
        total=quote.total,
        contact_phone="+18015550100",
        customer_phone="801-555-0199",
        customer_email="jane@example.com",
        show_lead_details=True,
    )
    assert "801-555-0199" in html
    assert "jane@example.com" in html
    assert "Friday" in html


def test_every_rendered_field_is_escaped():
    quote = compute_quote(3000, ["mowing"], "weekly")
    html = build_quote_email_html(
        name="Jane",
        address="12 Oak St",
        sqft=3000,
        preferred_date="<b>Friday</b>",
        services=quote.line_items,
        total=quote.total,
        contact_phone='" onclick="steal()',
        customer_phone="<img src=x>",
        customer_email="jane@example.com",
        show_lead_details=True,
        brand_name="Oak & Sons <Lawn>",
    )
    assert "<b>" not in html
    assert "<img" not in html
    assert 'onclick="' not in html
    assert "&#34; onclick=&#34;steal()" in html
    assert "<title>Oak &amp; Sons &lt;Lawn&gt;</title>" in html


def test_subjects():
    assert owner_subject("12 Oak St") == "New Instant Quote Lead - 12 Oak St"
    assert customer_subject("12 Oak St") == "Your Quote for - 12 Oak St"
