"""Integration tests for the Stripe webhook endpoint."""

import json
import time

import pytest
from libs.common.config import get_settings
from services.payments_service.stripe_client import compute_signature
from services.store_service.models import OrderGroup, OrderStatus
from sqlalchemy import select
from tests.factories import OrderGroupFactory, RetailerFactory


def _signed_headers(raw: bytes, secret: str | None = None) -> dict[str, str]:
    timestamp = int(time.time())
    signature = compute_signature(
        raw, timestamp, secret or get_settings().STRIPE_WEBHOOK_SECRET
    )
    return {
        "stripe-signature": f"t={timestamp},v1={signature}",
        "content-type": "application/json",
    }


async def _pending_order(db):
    retailer = RetailerFactory.create()
    db.add(retailer)
    await db.commit()
    order = OrderGroupFactory.create(
        retailer_id=retailer.id, external_session_ref="cs_hook"
    )
    db.add(order)
    await db.commit()
    return order.id


def _completed_event(order_id, event_id="evt_hook_1") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_hook",
                    "payment_intent": "pi_hook",
                    "metadata": {"order_group_id": str(order_id)},
                }
            },
        }
    ).encode()


async def _status(db, order_id):
    return await db.scalar(select(OrderGroup.status).where(OrderGroup.id == order_id))


@pytest.mark.asyncio
@pytest.mark.integration
async def test_signed_event_settles_order(payments_client, db_session):
    order_id = await _pending_order(db_session)
    raw = _completed_event(order_id)

    response = await payments_client.post(
        "/payments/webhooks/stripe", content=raw, headers=_signed_headers(raw)
    )

    assert response.status_code == 200, response.text
    assert response.json() == {"received": True, "outcome": "applied"}
    assert await _status(db_session, order_id) == OrderStatus.PROCESSING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bad_signature_rejected_before_processing(payments_client, db_session):
    order_id = await _pending_order(db_session)
    raw = _completed_event(order_id)

    response = await payments_client.post(
        "/payments/webhooks/stripe",
        content=raw,
        headers=_signed_headers(raw, secret="whsec_wrong"),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "signature_invalid"
    assert await _status(db_session, order_id) == OrderStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_missing_signature_rejected(payments_client):
    response = await payments_client.post(
        "/payments/webhooks/stripe", content=b'{"id": "evt_x"}'
    )
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redelivered_event_is_duplicate(payments_client, db_session):
    order_id = await _pending_order(db_session)
    raw = _completed_event(order_id)

    first = await payments_client.post(
        "/payments/webhooks/stripe", content=raw, headers=_signed_headers(raw)
    )
    second = await payments_client.post(
        "/payments/webhooks/stripe", content=raw, headers=_signed_headers(raw)
    )

    assert first.json()["outcome"] == "applied"
    assert second.status_code == 200
    assert second.json()["outcome"] == "duplicate"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_event_type_acknowledged(payments_client):
    raw = json.dumps(
        {"id": "evt_other", "type": "customer.created", "data": {"object": {}}}
    ).encode()

    response = await payments_client.post(
        "/payments/webhooks/stripe", content=raw, headers=_signed_headers(raw)
    )

    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"
