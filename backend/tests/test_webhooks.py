"""
Tests for the Stripe webhook: signature checks, idempotency and sold-out handling.
"""

import json
import time

import pytest
from sqlalchemy import select

from conftest import completion_payload, sign
from katagaki.core.errors import StoreConnectivityError
from katagaki.infrastructure.stripe_gateway import PaymentGateway, get_payment_gateway
from katagaki.main import app
from katagaki.models import Right, Title
from katagaki.services import webhook_service


async def load_state(session_factory, title_id):
    async with session_factory() as session:
        title = await session.get(Title, title_id)
        rights = (
            await session.execute(select(Right).where(Right.title_id == title_id))
        ).scalars().all()
    return title, rights


@pytest.mark.asyncio
async def test_completion_grants_right(post_webhook, session_factory, title):
    response = await post_webhook(completion_payload(title.title_id, "user_alice", "cs_test_1"))
    assert response.status_code == 200
    assert response.json() == {"received": True}

    stored, rights = await load_state(session_factory, title.title_id)
    assert stored.purchased_count == 1
    assert stored.status == "available"
    assert len(rights) == 1
    assert rights[0].user_id == "user_alice"
    assert rights[0].stripe_session_id == "cs_test_1"
    assert rights[0].is_active is True


@pytest.mark.asyncio
async def test_invalid_signature_rejected_without_mutation(post_webhook, session_factory, title):
    payload = completion_payload(title.title_id, "user_alice")
    response = await post_webhook(payload, signature=sign(payload, secret="whsec_wrong"))
    assert response.status_code == 400
    assert response.json()["error"].startswith("Webhook Error")

    stored, rights = await load_state(session_factory, title.title_id)
    assert stored.purchased_count == 0
    assert rights == []


@pytest.mark.asyncio
async def test_missing_signature(post_webhook, title):
    response = await post_webhook(completion_payload(title.title_id, "user_alice"), signature="")
    assert response.status_code == 400
    assert response.json() == {"error": "No signature"}


@pytest.mark.asyncio
async def test_tampered_payload_rejected(post_webhook, session_factory, title):
    genuine = completion_payload(title.title_id, "user_alice")
    tampered = genuine.replace("user_alice", "user_mallory")
    response = await post_webhook(tampered, signature=sign(genuine))
    assert response.status_code == 400

    _, rights = await load_state(session_factory, title.title_id)
    assert rights == []


@pytest.mark.asyncio
async def test_stale_timestamp_rejected(post_webhook, title):
    payload = completion_payload(title.title_id, "user_alice")
    response = await post_webhook(payload, signature=sign(payload, timestamp=int(time.time()) - 3600))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_missing_webhook_secret(client, title):
    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(
        secret_key="sk_test_x", webhook_secret=None
    )
    payload = completion_payload(title.title_id, "user_alice")
    response = await client.post(
        "/api/v1/webhooks/stripe", content=payload, headers={"Stripe-Signature": sign(payload)}
    )
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_replayed_session_grants_once(post_webhook, session_factory, title):
    """Stripe redelivery of the same session yields exactly one right."""
    for _ in range(3):
        response = await post_webhook(completion_payload(title.title_id, "user_alice", "cs_test_replay"))
        assert response.status_code == 200

    stored, rights = await load_state(session_factory, title.title_id)
    assert stored.purchased_count == 1
    assert len(rights) == 1


@pytest.mark.asyncio
async def test_last_slot_then_sold_out(post_webhook, session_factory, single_slot_title):
    """Limit 1: the first payment takes the slot, the second is acknowledged without a right."""
    first = await post_webhook(completion_payload(single_slot_title.title_id, "user_alice", "cs_a"))
    assert first.status_code == 200

    stored, rights = await load_state(session_factory, single_slot_title.title_id)
    assert stored.purchased_count == 1
    assert stored.status == "sold_out"
    assert len(rights) == 1

    second = await post_webhook(completion_payload(single_slot_title.title_id, "user_bob", "cs_b"))
    assert second.status_code == 200
    assert second.json() == {"received": True}

    stored, rights = await load_state(session_factory, single_slot_title.title_id)
    assert stored.purchased_count == 1
    assert [r.user_id for r in rights] == ["user_alice"]


@pytest.mark.asyncio
async def test_missing_metadata_acknowledged(post_webhook, session_factory, title):
    payload = completion_payload(title.title_id, "user_alice", metadata={"titleId": title.title_id})
    response = await post_webhook(payload)
    assert response.status_code == 200

    stored, rights = await load_state(session_factory, title.title_id)
    assert stored.purchased_count == 0
    assert rights == []


@pytest.mark.asyncio
async def test_deleted_title_acknowledged(post_webhook, client, admin_headers, session_factory, title):
    deleted = await client.delete(f"/api/v1/admin/titles/{title.title_id}", headers=admin_headers)
    assert deleted.status_code == 204

    response = await post_webhook(completion_payload(title.title_id, "user_alice"))
    assert response.status_code == 200

    _, rights = await load_state(session_factory, title.title_id)
    assert rights == []


@pytest.mark.asyncio
async def test_malformed_payload_acknowledged(post_webhook):
    response = await post_webhook("this is not json")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_other_event_types_ignored(post_webhook, session_factory, title):
    payload = json.dumps({
        "id": "evt_pi",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_123", "object": "payment_intent"}},
    })
    response = await post_webhook(payload)
    assert response.status_code == 200

    stored, _ = await load_state(session_factory, title.title_id)
    assert stored.purchased_count == 0


@pytest.mark.asyncio
async def test_store_failure_answers_500_for_redelivery(post_webhook, session_factory, title, monkeypatch):
    async def unreachable(db, **kwargs):
        raise StoreConnectivityError(details={"operation": "Title.increment"})

    monkeypatch.setattr(webhook_service, "grant_right", unreachable)

    response = await post_webhook(completion_payload(title.title_id, "user_alice", "cs_test_down"))
    assert response.status_code == 500
    assert response.json() == {"error": "Entity store unreachable"}

    stored, rights = await load_state(session_factory, title.title_id)
    assert stored.purchased_count == 0
    assert stored.version == title.version
    assert rights == []
