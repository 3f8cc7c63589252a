import fakeredis
import pytest

from instant_quote.api import api_geocode
from instant_quote.services import geocode as geocode_service
from instant_quote.services.geocode import GeocodeResult
from instant_quote.utils import redis_cache

LOT = [
    {"lat": 40.0, "lng": -111.0},
    {"lat": 40.0, "lng": -110.9995},
    {"lat": 40.0004, "lng": -110.9995},
    {"lat": 40.0004, "lng": -111.0},
]


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_tenant_branding(client):
    res = client.get("/api/tenant")
    assert res.status_code == 200
    body = res.json()
    assert body["slug"] == "demo"
    assert body["pricingModel"] == "blocks"
    assert body["theme"] == {"primaryRgb": "22 163 74", "bgTintRgb": "234 250 241"}


def test_tenant_branding_by_path_and_header(client):
    by_path = client.get("/t/instant-quote-vercel/api/tenant").json()
    assert by_path["brandName"] == "Green Lawn Utah"
    assert by_path["theme"]["primaryRgb"] == "255 122 0"

    by_header = client.get("/api/tenant", headers={"X-Tenant-Slug": "fence-demo"}).json()
    assert by_header["funnel"] == "fence"

    # Unknown header slugs fall back to the host
    assert client.get("/api/tenant", headers={"X-Tenant-Slug": "nope"}).json()["slug"] == "demo"


def test_referer_selects_tenant_for_bare_api_path(client):
    res = client.get("/api/tenant", headers={"Referer": "http://localhost:3000/t/fence-demo/"})
    assert res.json()["slug"] == "fence-demo"


def test_fence_estimate(client):
    res = client.post(
        "/api/fence/estimate",
        json={"feet": 100, "fenceType": "vinyl", "walkGateQty": 1, "doubleGateQty": 1, "removeOldFence": True},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["estimatedMin"] == 3500 + 350 + 650 + 400
    assert body["estimatedMax"] == 4800 + 550 + 950 + 700
    assert body["fenceTypes"] == ["aluminum", "chain_link", "vinyl", "wood"]


def test_fence_estimate_defaults_and_clamps(client):
    body = client.post("/api/fence/estimate", json={"feet": 10, "walkGateQty": 50}).json()
    assert body["fenceType"] == "wood"
    assert body["walkGateQty"] == 10


def test_measurement_area(client):
    res = client.post("/api/measurement", json={"mode": "area", "shapes": [LOT, LOT[:2]]})
    assert res.status_code == 200
    body = res.json()
    assert body["unit"] == "sqft"
    assert body["shapes"] == 1
    assert body["value"] > 0


def test_measurement_length(client):
    res = client.post("/api/measurement", json={"mode": "length", "shapes": [LOT[:2]]})
    body = res.json()
    assert body["unit"] == "ft"
    assert body["shapes"] == 1
    assert body["value"] > 0


def test_measurement_rejects_out_of_range_points(client):
    res = client.post("/api/measurement", json={"shapes": [[{"lat": 95, "lng": 0}]]})
    assert res.status_code == 400


def test_geocode_endpoint(client, monkeypatch):
    async def fake_geocode(address):
        if address == "Nowhere Lane":
            return None
        return GeocodeResult(lat=40.76, lng=-111.89, formatted_address="123 Main St, Salt Lake City, UT")

    monkeypatch.setattr(api_geocode, "geocode_address_async", fake_geocode)
    found = client.get("/api/geocode", params={"address": "123 Main St"})
    assert found.json() == {"lat": 40.76, "lng": -111.89, "formattedAddress": "123 Main St, Salt Lake City, UT"}

    missing = client.get("/api/geocode", params={"address": "Nowhere Lane"})
    assert missing.status_code == 404
    assert missing.json() == {"ok": False, "error": "Address not found. Try again."}


@pytest.fixture
def fake_redis(monkeypatch):
    fake = fakeredis.FakeStrictRedis(decode_responses=True)
    monkeypatch.setattr(redis_cache, "_redis_client", fake)
    return fake


def test_geocode_uses_cache(fake_redis, monkeypatch):
    import asyncio

    redis_cache.cache_geocode("12 Oak St", 40.1, -111.2, "12 Oak St, Provo, UT")
    monkeypatch.setattr(geocode_service.settings, "GOOGLE_MAPS_API_KEY", "")
    result = asyncio.run(geocode_service.geocode_address_async("  12 OAK st "))
    assert result == GeocodeResult(lat=40.1, lng=-111.2, formatted_address="12 Oak St, Provo, UT")


def test_geocode_without_key_returns_none(fake_redis, monkeypatch):
    import asyncio

    monkeypatch.setattr(geocode_service.settings, "GOOGLE_MAPS_API_KEY", "")
    assert asyncio.run(geocode_service.geocode_address_async("12 Oak St")) is None
