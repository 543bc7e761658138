"""Integration tests for the rewards service endpoints."""

from decimal import Decimal

import pytest
from services.rewards_service.app.main import app
from services.rewards_service.services.points import credit_points
from tests.factories import DiscountCodeFactory, make_admin_user, override_auth


@pytest.mark.asyncio
@pytest.mark.integration
async def test_points_default_to_zero(rewards_client):
    response = await rewards_client.get("/rewards/points")

    assert response.status_code == 200
    data = response.json()
    assert data["balance"] == "0.00"
    assert data["recent_transactions"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_points_reflect_credits(rewards_client, db_session):
    for n, amount in enumerate(["1.50", "0.25"]):
        await credit_points(
            db_session,
            user_auth_id="customer-1",
            amount=Decimal(amount),
            idempotency_key=f"cashback-{n}",
        )
    await db_session.commit()

    response = await rewards_client.get("/rewards/points")

    data = response.json()
    assert data["balance"] == "1.75"
    assert data["total_earned"] == "1.75"
    assert len(data["recent_transactions"]) == 2
    assert {t["transaction_type"] for t in data["recent_transactions"]} == {"earned"}


# ---------------------------------------------------------------------------
# Discount preview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_validate_known_code(rewards_client, db_session):
    db_session.add(DiscountCodeFactory.create(code="TENOFF", discount_value=Decimal("10.00")))
    await db_session.commit()

    response = await rewards_client.post(
        "/rewards/discount-codes/validate",
        json={"code": " tenoff ", "order_total": "25.00"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is True
    assert data["code"] == "TENOFF"
    assert data["discount_amount"] == "10.00"
    assert data["final_total"] == "15.00"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_validate_unknown_code_is_not_an_error(rewards_client):
    response = await rewards_client.post(
        "/rewards/discount-codes/validate",
        json={"code": "nope", "order_total": "25.00"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is False
    assert data["final_total"] == "25.00"
    assert data["message"]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_creates_and_lists_codes(rewards_client):
    with override_auth(app, make_admin_user()):
        created = await rewards_client.post(
            "/rewards/admin/discount-codes",
            json={
                "code": "spring",
                "discount_type": "percentage",
                "discount_value": "15",
                "usage_limit": 100,
            },
        )
        duplicate = await rewards_client.post(
            "/rewards/admin/discount-codes",
            json={"code": "SPRING", "discount_type": "fixed", "discount_value": "5"},
        )
        listing = await rewards_client.get("/rewards/admin/discount-codes")

    assert created.status_code == 201, created.text
    assert created.json()["code"] == "SPRING"
    assert created.json()["used_count"] == 0
    assert created.json()["created_by"] == "admin-1"
    assert duplicate.status_code == 409
    assert [c["code"] for c in listing.json()] == ["SPRING"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cannot_manage_codes(rewards_client):
    response = await rewards_client.get("/rewards/admin/discount-codes")
    assert response.status_code == 403
