"""
Locust Load Test Suite

The API must run with ADMIN_USER_IDS='["load_admin"]' and the same
STRIPE_WEBHOOK_SECRET exported here, so completions can be signed locally.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Oversell protection under webhook bursts
  locust -f locustfile.py --tags throughput   # Catalog cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import hashlib
import hmac
import json
import os
import random
import string
import time
import uuid

from locust import HttpUser, task, between, tag, events

WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "whsec_load_test")
ADMIN_HEADERS = {"Authorization": "Bearer load_admin"}
CONCURRENCY_LIMIT = 10

# Shared state
TITLE_IDS = []
CONCURRENCY_TITLE_ID = None


def random_uid():
    return "load_" + "".join(random.choices(string.ascii_lowercase + string.digits, k=10))


def signed_completion(title_id, user_id, session_id=None):
    """Body and Stripe-Signature header for a checkout.session.completed event."""
    body = json.dumps({
        "id": f"evt_{uuid.uuid4().hex}",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": session_id or f"cs_test_{uuid.uuid4().hex}",
            "object": "checkout.session",
            "payment_status": "paid",
            "metadata": {"titleId": title_id, "userId": user_id},
        }},
    })
    timestamp = int(time.time())
    signature = hmac.new(
        WEBHOOK_SECRET.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256
    ).hexdigest()
    return body, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"SETUP: first concurrency user creates a title with limit {CONCURRENCY_LIMIT}")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 buyers → 10 slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT purchased_count FROM titles WHERE title_id = X;   -- exactly 10
      SELECT COUNT(*) FROM rights WHERE title_id = X;          -- exactly 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = random_uid()
        if not CONCURRENCY_TITLE_ID:
            resp = self.client.post("/api/v1/admin/titles/",
                json={
                    "name": f"Concurrency Title {random.randint(1, 10000)}",
                    "description": "10 slots only",
                    "base_price": 1000,
                    "purchasable_limit": CONCURRENCY_LIMIT,
                    "status": "available",
                },
                headers=ADMIN_HEADERS,
            )
            if resp.status_code == 201:
                globals()["CONCURRENCY_TITLE_ID"] = resp.json()["title_id"]
                print(f"\n✓ Created title {CONCURRENCY_TITLE_ID} "
                      f"({resp.json()['official_number']}) with {CONCURRENCY_LIMIT} slots\n")

    @tag("concurrency")
    @task(5)
    def complete_purchase(self):
        """Every buyer's payment completes at once; only 10 may be granted."""
        if not CONCURRENCY_TITLE_ID:
            return
        body, headers = signed_completion(CONCURRENCY_TITLE_ID, self.user_id)
        with self.client.post("/api/v1/webhooks/stripe", data=body, headers=headers,
                              name="/api/v1/webhooks/stripe [completion]",
                              catch_response=True) as resp:
            if resp.status_code == 200:
                resp.success()  # granted or acknowledged as sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def replay_completion(self):
        """Redelivery of one session must never produce a second right."""
        if not CONCURRENCY_TITLE_ID:
            return
        session_id = f"cs_replay_{self.user_id}"
        for _ in range(2):
            body, headers = signed_completion(CONCURRENCY_TITLE_ID, self.user_id, session_id)
            self.client.post("/api/v1/webhooks/stripe", data=body, headers=headers,
                             name="/api/v1/webhooks/stripe [replay]")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_titles_cached(self):
        resp = self.client.get("/api/v1/titles/", name="/api/v1/titles/ [cached]")
        if resp.status_code == 200:
            for title in resp.json().get("titles", []):
                if title["title_id"] not in TITLE_IDS:
                    TITLE_IDS.append(title["title_id"])

    @tag("throughput", "read")
    @task(3)
    def get_title_detail(self):
        if TITLE_IDS:
            self.client.get(f"/api/v1/titles/{random.choice(TITLE_IDS)}",
                name="/api/v1/titles/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = {"Authorization": f"Bearer {random_uid()}"}

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def checkout_missing_title(self):
        with self.client.post("/api/v1/checkout/sessions",
            json={"titleId": "does-not-exist", "titleName": "x", "price": 1000},
            headers=self.headers, catch_response=True) as resp:
            # 500 when the load environment has no Stripe secret key configured
            self._expect(resp, [404, 500])

    @tag("edge")
    @task
    def checkout_without_auth(self):
        with self.client.post("/api/v1/checkout/sessions",
            json={"titleId": "x", "titleName": "x", "price": 1000},
            catch_response=True) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def webhook_bad_signature(self):
        body, _ = signed_completion("x", "y")
        with self.client.post("/api/v1/webhooks/stripe", data=body,
            headers={"Stripe-Signature": "t=1,v1=deadbeef"},
            catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def proposal_missing_reason(self):
        with self.client.post("/api/v1/proposals/",
            json={"proposed_title": "No reason"},
            headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def admin_route_as_user(self):
        with self.client.get("/api/v1/admin/users/", headers=self.headers,
            catch_response=True) as resp:
            self._expect(resp, [403])
