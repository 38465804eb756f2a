"""
Tests for title catalog endpoints and admin title management.
"""

import pytest
from httpx import AsyncClient

from conftest import bearer, completion_payload


def new_title(**overrides):
    data = {
        "name": "星の守護者",
        "description": "Guardian of the stars",
        "base_price": 3000,
        "price_tier": "Premium",
        "is_official": True,
        "status": "available",
        "purchasable_limit": 5,
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_admin_creates_title(client: AsyncClient, admin_headers, category):
    response = await client.post(
        "/api/v1/admin/titles/",
        json=new_title(category_id=category.category_id),
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["official_number"] == "ktgk_000001"
    assert data["purchased_count"] == 0
    assert data["status"] == "available"
    assert data["price_tier"] == "Premium"
    assert data["category_id"] == category.category_id


@pytest.mark.asyncio
async def test_create_title_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/admin/titles/", json=new_title(), headers=auth_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/admin/titles/", json=new_title())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_bootstrap_admin_is_provisioned_as_admin(client: AsyncClient):
    response = await client.post(
        "/api/v1/admin/titles/", json=new_title(), headers=bearer("bootstrap_admin")
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_create_title_unknown_category(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/v1/admin/titles/", json=new_title(category_id="missing"), headers=admin_headers
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Category not found"


@pytest.mark.asyncio
async def test_create_title_invalid_input(client: AsyncClient, admin_headers):
    for bad in (new_title(base_price=0), new_title(purchasable_limit=0), new_title(status="sold_out")):
        response = await client.post("/api/v1/admin/titles/", json=bad, headers=admin_headers)
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_public_list_hides_drafts(client: AsyncClient, admin_headers, title, draft_title):
    response = await client.get("/api/v1/titles/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["cached"] is False
    assert [t["title_id"] for t in data["titles"]] == [title.title_id]

    response = await client.get("/api/v1/admin/titles/", headers=admin_headers)
    assert {t["title_id"] for t in response.json()} == {title.title_id, draft_title.title_id}


@pytest.mark.asyncio
async def test_get_title(client: AsyncClient, title):
    response = await client.get(f"/api/v1/titles/{title.title_id}")
    assert response.status_code == 200
    assert response.json()["name"] == title.name

    response = await client.get("/api/v1/titles/unknown")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_title_partial(client: AsyncClient, admin_headers, title):
    response = await client.patch(
        f"/api/v1/admin/titles/{title.title_id}",
        json={"base_price": 1500},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["base_price"] == 1500
    assert data["name"] == title.name
    assert data["official_number"] == title.official_number


@pytest.mark.asyncio
async def test_update_rejects_counter_fields(client: AsyncClient, admin_headers, title):
    response = await client.patch(
        f"/api/v1/admin/titles/{title.title_id}",
        json={"purchased_count": 0},
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_limit_cannot_drop_below_sold(client: AsyncClient, admin_headers, title, post_webhook):
    for n in range(2):
        await post_webhook(completion_payload(title.title_id, f"buyer_{n}"))

    response = await client.patch(
        f"/api/v1/admin/titles/{title.title_id}",
        json={"purchasable_limit": 1},
        headers=admin_headers,
    )
    assert response.status_code == 409

    response = await client.patch(
        f"/api/v1/admin/titles/{title.title_id}",
        json={"purchasable_limit": 2},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "sold_out"


@pytest.mark.asyncio
async def test_sold_out_title_cannot_reopen_at_limit(client: AsyncClient, admin_headers, single_slot_title, post_webhook):
    await post_webhook(completion_payload(single_slot_title.title_id, "buyer"))

    response = await client.patch(
        f"/api/v1/admin/titles/{single_slot_title.title_id}",
        json={"status": "available"},
        headers=admin_headers,
    )
    assert response.status_code == 409

    # Raising the limit reopens it
    response = await client.patch(
        f"/api/v1/admin/titles/{single_slot_title.title_id}",
        json={"status": "available", "purchasable_limit": 2},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "available"


@pytest.mark.asyncio
async def test_delete_title_keeps_rights(client: AsyncClient, admin_headers, auth_headers, title, post_webhook):
    await post_webhook(completion_payload(title.title_id, "user_alice"))

    response = await client.delete(f"/api/v1/admin/titles/{title.title_id}", headers=admin_headers)
    assert response.status_code == 204

    response = await client.get(f"/api/v1/titles/{title.title_id}")
    assert response.status_code == 404

    response = await client.get("/api/v1/rights/mine", headers=auth_headers)
    rights = response.json()
    assert len(rights) == 1
    assert rights[0]["title_id"] == title.title_id
    assert rights[0]["title"] is None


@pytest.mark.asyncio
async def test_delete_missing_title(client: AsyncClient, admin_headers):
    response = await client.delete("/api/v1/admin/titles/missing", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_holders_lists_public_profiles_only(client: AsyncClient, title, post_webhook):
    await client.patch(
        "/api/v1/users/me",
        json={"display_name": "Alice", "is_profile_public": True, "public_profile_text": "hello"},
        headers=bearer("user_alice"),
    )
    await client.get("/api/v1/users/me", headers=bearer("user_bob"))

    await post_webhook(completion_payload(title.title_id, "user_alice", "cs_a1"))
    await post_webhook(completion_payload(title.title_id, "user_alice", "cs_a2"))
    await post_webhook(completion_payload(title.title_id, "user_bob", "cs_b"))

    response = await client.get(f"/api/v1/titles/{title.title_id}/holders")
    assert response.status_code == 200
    assert response.json() == [
        {"user_id": "user_alice", "display_name": "Alice", "public_profile_text": "hello"}
    ]


@pytest.mark.asyncio
async def test_admin_dashboard_stats(client: AsyncClient, admin_headers, auth_headers, title, draft_title, post_webhook):
    for proposed in ("夜明けの詩人", "黄昏の旅人"):
        response = await client.post(
            "/api/v1/proposals/",
            json={"proposed_title": proposed, "proposal_reason": "I earned it"},
            headers=auth_headers,
        )
        assert response.status_code == 201
    await client.post(
        f"/api/v1/admin/proposals/{response.json()['proposal_id']}/review",
        json={"status": "rejected"},
        headers=admin_headers,
    )

    await post_webhook(completion_payload(title.title_id, "user_alice", "cs_s1"))
    await post_webhook(completion_payload(title.title_id, "user_bob", "cs_s2"))

    response = await client.get("/api/v1/admin/stats", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {
        "total_titles": 2,
        "available_titles": 1,
        "total_proposals": 2,
        "pending_proposals": 1,
        # admin_carol and user_alice; webhook buyers are not provisioned
        "total_users": 2,
        "total_revenue": 2400,
    }


@pytest.mark.asyncio
async def test_admin_dashboard_stats_on_empty_store(client: AsyncClient, admin_headers):
    response = await client.get("/api/v1/admin/stats", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total_titles"] == 0
    assert response.json()["total_revenue"] == 0


@pytest.mark.asyncio
async def test_admin_dashboard_stats_requires_admin(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/admin/stats", headers=auth_headers)
    assert response.status_code == 403

    response = await client.get("/api/v1/admin/stats")
    assert response.status_code == 401
