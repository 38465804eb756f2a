"""
Tests for checkout session creation.
"""

import pytest
import stripe
from httpx import AsyncClient

from conftest import bearer, completion_payload
from katagaki.infrastructure.stripe_gateway import PaymentGateway, get_payment_gateway
from katagaki.main import app


def checkout_body(title, price=None):
    return {
        "titleId": title.title_id,
        "titleName": title.name,
        "price": title.base_price if price is None else price,
    }


@pytest.mark.asyncio
async def test_create_checkout_session(client: AsyncClient, auth_headers, title, stripe_calls):
    """Session is priced from the stored title and carries title/user metadata."""
    response = await client.post(
        "/api/v1/checkout/sessions",
        json=checkout_body(title),
        headers={**auth_headers, "Origin": "https://app.katagaki.test"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["sessionId"].startswith("cs_test_")
    assert data["url"].startswith("https://checkout.stripe.com/")

    assert len(stripe_calls) == 1
    params = stripe_calls[0]
    assert params["mode"] == "payment"
    line_item = params["line_items"][0]
    assert line_item["quantity"] == 1
    assert line_item["price_data"]["currency"] == "jpy"
    assert line_item["price_data"]["unit_amount"] == 1200
    assert line_item["price_data"]["product_data"]["name"] == title.name
    assert line_item["price_data"]["product_data"]["description"] == "年間使用権"
    assert params["metadata"] == {"titleId": title.title_id, "userId": "user_alice"}
    assert params["success_url"] == (
        "https://app.katagaki.test/purchase/success?session_id={CHECKOUT_SESSION_ID}"
    )
    assert params["cancel_url"] == f"https://app.katagaki.test/titles/{title.title_id}"


@pytest.mark.asyncio
async def test_checkout_origin_falls_back_to_referer_then_config(client: AsyncClient, auth_headers, title, stripe_calls):
    await client.post(
        "/api/v1/checkout/sessions",
        json=checkout_body(title),
        headers={**auth_headers, "Referer": "https://shop.example.com/titles/abc?x=1"},
    )
    await client.post("/api/v1/checkout/sessions", json=checkout_body(title), headers=auth_headers)

    assert stripe_calls[0]["cancel_url"].startswith("https://shop.example.com/titles/")
    assert stripe_calls[1]["cancel_url"].startswith("https://katagaki.test/titles/")


@pytest.mark.asyncio
async def test_checkout_unauthenticated(client: AsyncClient, title, stripe_calls):
    response = await client.post("/api/v1/checkout/sessions", json=checkout_body(title))
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert stripe_calls == []


@pytest.mark.asyncio
async def test_checkout_malformed_bearer(client: AsyncClient, title, stripe_calls):
    response = await client.post(
        "/api/v1/checkout/sessions",
        json=checkout_body(title),
        headers={"Authorization": "Bearer not a uid"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_price_mismatch(client: AsyncClient, auth_headers, title, stripe_calls):
    """A stale client price is refused, never charged."""
    response = await client.post(
        "/api/v1/checkout/sessions",
        json=checkout_body(title, price=1),
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "price_mismatch"
    assert stripe_calls == []


@pytest.mark.asyncio
async def test_checkout_missing_title(client: AsyncClient, auth_headers, stripe_calls):
    response = await client.post(
        "/api/v1/checkout/sessions",
        json={"titleId": "nope", "titleName": "x", "price": 100},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Title not found"


@pytest.mark.asyncio
async def test_checkout_body_missing_title_id(client: AsyncClient, auth_headers, stripe_calls):
    """Body validation failures share the {error, details} shape."""
    response = await client.post(
        "/api/v1/checkout/sessions",
        json={"titleName": "x", "price": 100},
        headers=auth_headers,
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Invalid request"
    assert any(err["loc"] == ["body", "titleId"] for err in body["details"])
    assert stripe_calls == []


@pytest.mark.asyncio
async def test_checkout_draft_title(client: AsyncClient, auth_headers, draft_title, stripe_calls):
    response = await client.post(
        "/api/v1/checkout/sessions", json=checkout_body(draft_title), headers=auth_headers
    )
    assert response.status_code == 409
    assert stripe_calls == []


@pytest.mark.asyncio
async def test_checkout_sold_out_title(client: AsyncClient, auth_headers, single_slot_title, post_webhook, stripe_calls):
    await post_webhook(completion_payload(single_slot_title.title_id, "user_bob"))

    response = await client.post(
        "/api/v1/checkout/sessions", json=checkout_body(single_slot_title), headers=auth_headers
    )
    assert response.status_code == 409
    assert response.json()["details"]["status"] == "sold_out"
    assert stripe_calls == []


@pytest.mark.asyncio
async def test_checkout_upstream_failure(client: AsyncClient, auth_headers, title, monkeypatch):
    def failing_create(**params):
        raise stripe.APIConnectionError("Could not connect to Stripe")

    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)

    response = await client.post(
        "/api/v1/checkout/sessions", json=checkout_body(title), headers=auth_headers
    )
    assert response.status_code == 502
    assert response.json()["details"]["type"] == "APIConnectionError"


@pytest.mark.asyncio
async def test_checkout_without_secret_key(client: AsyncClient, auth_headers, title, stripe_calls):
    """Missing processor credentials fail before the title is even read."""
    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(
        secret_key=None, webhook_secret="whsec_x"
    )

    response = await client.post(
        "/api/v1/checkout/sessions",
        json={"titleId": "does-not-matter", "price": 1},
        headers=bearer("user_alice"),
    )
    assert response.status_code == 500
    assert "Missing secret key" in response.json()["error"]
    assert stripe_calls == []
