from pathlib import Path
from dotenv import load_dotenv
import pytest

# Load environment variables for tests before any settings are read
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

from fastapi.testclient import TestClient  # noqa: E402

from instant_quote.main import app  # noqa: E402
from instant_quote.measurement.headless import HeadlessMapProvider  # noqa: E402
from instant_quote.services.geocode import GeocodeResult  # noqa: E402
from instant_quote.utils import email as email_utils  # noqa: E402
from instant_quote.utils import rate_limit  # noqa: E402
from instant_quote.utils.email import MailReceipt  # noqa: E402

ALLOWED_ORIGIN = "http://localhost:3000"


@pytest.fixture(autouse=True)
def fresh_rate_limiter():
    """Each test starts with empty submission counters."""
    rate_limit.set_rate_limiter(None)
    yield
    rate_limit.set_rate_limiter(None)


@pytest.fixture
def sent_mail(monkeypatch):
    """Replace SendGrid delivery with an in-memory outbox."""
    outbox = []

    async def fake_send(message):
        outbox.append(message)
        return MailReceipt(status_code=202, message_id=f"msg-{len(outbox)}")

    monkeypatch.setattr(email_utils, "send_email", fake_send)
    return outbox


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def provider():
    async def fake_geocode(address):
        if "nowhere" in address.lower():
            return None
        return GeocodeResult(lat=40.7608, lng=-111.891, formatted_address=address.strip())

    return HeadlessMapProvider(geocoder=fake_geocode)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
