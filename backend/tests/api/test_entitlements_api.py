"""Tests for GET /api/entitlements."""

import pytest

pytestmark = pytest.mark.integration


async def test_free_user_sees_locked_features(login, client):
    login("free-user")

    response = await client.get("/api/entitlements")

    assert response.status_code == 200
    body = response.json()
    assert body["tier"] == "free"
    assert set(body["allowed"]) == {"horoscope_generation", "tarot_reading", "iching_generation"}
    assert {item["feature"]: item["required_tier"] for item in body["locked"]} == {
        "horoscope_enhanced": "premium",
        "dream_interpretation": "premium",
    }
    labels = {item["feature"]: item["label"] for item in body["locked"]}
    assert labels["dream_interpretation"] == "Dream Interpretations"


async def test_pro_user_has_nothing_locked(login, client):
    login("pro-user")

    body = (await client.get("/api/entitlements")).json()

    assert body["tier"] == "pro"
    assert body["locked"] == []
    assert len(body["allowed"]) == 5


async def test_lapsed_subscription_reports_free(login, client, subscriptions):
    subscriptions.set("premium-user", "premium", status="expired")
    login("premium-user")

    body = (await client.get("/api/entitlements")).json()

    assert body["tier"] == "free"


async def test_tier_changes_are_visible_immediately(login, client, subscriptions):
    login("free-user")
    assert (await client.get("/api/entitlements")).json()["tier"] == "free"

    subscriptions.set("free-user", "pro")

    assert (await client.get("/api/entitlements")).json()["tier"] == "pro"


async def test_unprovisioned_user_gets_503(login, client):
    login("ghost")

    response = await client.get("/api/entitlements")

    assert response.status_code == 503


async def test_requires_authentication(client):
    response = await client.get("/api/entitlements")
    assert response.status_code == 401
