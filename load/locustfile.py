"""
Locust load script for the instant quote funnel.

Simulates realistic visitor behavior:
- Load tenant branding (/api/tenant)
- Re-price the selection a few times while the visitor toggles services
  (/api/quote/preview)
- Occasionally submit the quote (/api/quote) with the previewed prices

Submissions are throttled per client IP, so each simulated visitor sends a
distinct X-Forwarded-For address. Submissions send real mail unless the
target runs with a sandbox SendGrid key; keep IQ_SUBMIT_WEIGHT at 0 against
production.

Configure with env vars or Locust UI:
- HOST: pass via `--host https://demo.instant-quote.online` (recommended)
- IQ_ORIGIN: Origin header for submissions (default: the host itself)
- IQ_TENANT_SLUG: optional slug sent as X-Tenant-Slug
- IQ_SUBMIT_WEIGHT: relative weight of the submit task (default 0)

Run:
  locust -f load/locustfile.py --host https://demo.instant-quote.online
"""

from __future__ import annotations

import logging
import os
import random
from typing import Dict, List, Optional

from locust import HttpUser, between, events, task

# --- Config -------------------------------------------------------------------

SERVICES = ["mowing", "aeration", "dethatching", "fertilizing"]
TENANT_SLUG = os.getenv("IQ_TENANT_SLUG", "").strip()
ORIGIN = os.getenv("IQ_ORIGIN", "").strip()
SUBMIT_WEIGHT = int(os.getenv("IQ_SUBMIT_WEIGHT", "0") or 0)


# --- Helpers ------------------------------------------------------------------

def _safe_json(resp) -> Dict:
    try:
        return resp.json()
    except ValueError:
        return {}


def _random_selection() -> List[str]:
    picked = [key for key in SERVICES if random.random() < 0.5]
    return picked or ["mowing"]


def _fake_ip() -> str:
    return "10.{}.{}.{}".format(random.randint(0, 255), random.randint(0, 255), random.randint(1, 254))


# --- The User Model -----------------------------------------------------------

class QuoteVisitor(HttpUser):
    wait_time = between(1, 4)

    sqft: int = 0
    frequency: str = "weekly"
    services: List[str] = []
    last_preview: Optional[Dict] = None

    def on_start(self):
        self.ip = _fake_ip()
        self.sqft = random.randint(1500, 14000)
        self.frequency = random.choice(["weekly", "biweekly"])
        self.services = _random_selection()
        self.client.get("/api/tenant", headers=self._headers(), name="/api/tenant")

    def _headers(self) -> Dict[str, str]:
        headers = {"X-Forwarded-For": self.ip}
        if TENANT_SLUG:
            headers["X-Tenant-Slug"] = TENANT_SLUG
        return headers

    @task(8)
    def preview(self):
        # Visitors toggle a service now and then before settling
        if random.random() < 0.3:
            self.services = _random_selection()
        r = self.client.post(
            "/api/quote/preview",
            json={"sqft": self.sqft, "services": self.services, "frequency": self.frequency},
            headers=self._headers(),
            name="/api/quote/preview",
        )
        if r.status_code == 200:
            self.last_preview = _safe_json(r)

    @task(SUBMIT_WEIGHT)
    def submit(self):
        if not self.last_preview:
            return
        services = [
            {key: value for key, value in item.items() if key in ("key", "frequency", "price")}
            for item in self.last_preview.get("lineItems") or []
        ]
        if not services:
            return
        headers = self._headers()
        headers["Origin"] = ORIGIN or self.host
        with self.client.post(
            "/api/quote",
            json={
                "name": "Load Test",
                "phone": "801-555-0100",
                "email": "loadtest@example.com",
                "address": f"{random.randint(1, 9999)} Test St",
                "sqft": self.sqft,
                "services": services,
                "total": self.last_preview.get("total", 0),
            },
            headers=headers,
            name="/api/quote",
            catch_response=True,
        ) as resp:
            # Throttling is expected behavior under load, not a failure
            if resp.status_code in (200, 429):
                resp.success()


# --- Optional event hooks -----------------------------------------------------

@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    logging.getLogger("locust").info(
        "Starting quote funnel test (tenant=%s, submit weight=%s)", TENANT_SLUG or "host", SUBMIT_WEIGHT
    )


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    logging.getLogger("locust").info("Test finished")
