"""Integration tests for the admin commission settings endpoints."""

from decimal import Decimal

import pytest
from services.payments_service.app.main import app
from tests.factories import CommissionRateFactory, make_admin_user, override_auth

BASE = "/payments/admin/settings/commission"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_default_rate_before_any_publish(payments_client):
    with override_auth(app, make_admin_user()):
        response = await payments_client.get(BASE)

    assert response.status_code == 200
    data = response.json()
    assert data["version"] == 0
    assert Decimal(data["commission_rate"]) == Decimal("0.10")
    assert data["effective_from"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_publish_appends_versions(payments_client):
    with override_auth(app, make_admin_user()):
        first = await payments_client.put(BASE, json={"commission_rate": "0.05"})
        second = await payments_client.put(BASE, json={"commission_rate": "0.08"})
        current = await payments_client.get(BASE)
        history = await payments_client.get(f"{BASE}/history")

    assert first.status_code == 200, first.text
    assert first.json()["version"] == 1
    assert first.json()["created_by"] == "admin-1"
    assert second.json()["version"] == 2

    assert current.json()["version"] == 2
    assert Decimal(current.json()["commission_rate"]) == Decimal("0.08")

    versions = history.json()
    assert [v["version"] for v in versions] == [2, 1]
    assert Decimal(versions[1]["rate"]) == Decimal("0.05")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_publish_continues_after_existing_versions(payments_client, db_session):
    db_session.add(CommissionRateFactory.create(version=3, rate=Decimal("0.1200")))
    await db_session.commit()

    with override_auth(app, make_admin_user("admin-2")):
        before = await payments_client.get(BASE)
        published = await payments_client.put(BASE, json={"commission_rate": "0.07"})

    assert before.json()["version"] == 3
    assert Decimal(before.json()["commission_rate"]) == Decimal("0.12")
    assert published.json()["version"] == 4
    assert published.json()["created_by"] == "admin-2"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_rate_out_of_range_rejected(payments_client):
    with override_auth(app, make_admin_user()):
        response = await payments_client.put(BASE, json={"commission_rate": "1.5"})

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_non_admin_forbidden(payments_client):
    assert (await payments_client.get(BASE)).status_code == 403
    assert (
        await payments_client.put(BASE, json={"commission_rate": "0.01"})
    ).status_code == 403
