"""Integration tests for checkout, order history and retailer fulfilment."""

import uuid
from decimal import Decimal

import pytest
from services.store_service.app.main import app
from services.store_service.models import OrderStatus
from tests.factories import (
    DestinationAccountFactory,
    DiscountCodeFactory,
    OrderGroupFactory,
    RetailerFactory,
    make_retailer_user,
    override_auth,
    seed_product,
)


async def _connected_retailer(db, user_auth_id=None):
    retailer = RetailerFactory.create(
        user_auth_id=user_auth_id or f"retailer-{uuid.uuid4().hex[:8]}"
    )
    db.add(retailer)
    await db.commit()
    db.add(DestinationAccountFactory.create(retailer_id=retailer.id))
    await db.commit()
    return retailer


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_splits_cart_by_retailer(store_client, db_session, fake_stripe):
    r1 = await _connected_retailer(db_session)
    r2 = await _connected_retailer(db_session)
    a = await seed_product(db_session, r1, name="A", price="10.00")
    b = await seed_product(db_session, r2, name="B", price="5.00")
    db_session.add(DiscountCodeFactory.create(code="SAVE5"))
    await db_session.commit()

    await store_client.post("/store/cart", json={"product_id": str(a.id), "quantity": 2})
    await store_client.post("/store/cart", json={"product_id": str(b.id), "quantity": 1})

    response = await store_client.post(
        "/store/orders",
        json={"discount_code": "save5", "pickup_instructions": "Side door"},
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["warnings"] == []
    orders = data["orders"]
    assert [o["retailer_id"] for o in orders] == [str(r1.id), str(r2.id)]
    assert [o["total"] for o in orders] == ["17.50", "2.50"]
    assert [o["discount_amount"] for o in orders] == ["2.50", "2.50"]
    assert all(o["pickup_instructions"] == "Side door" for o in orders)
    assert orders[0]["lines"][0]["product_name"] == "A"
    assert set(data["checkout_urls"]) == {o["id"] for o in orders}

    cart = await store_client.get("/store/cart")
    assert cart.json()["items"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_empty_cart(store_client):
    response = await store_client.post("/store/orders", json={})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_out_of_stock(store_client, db_session):
    retailer = await _connected_retailer(db_session)
    product = await seed_product(db_session, retailer, name="Rare", stock=1)
    await store_client.post(
        "/store/cart", json={"product_id": str(product.id), "quantity": 2}
    )

    response = await store_client.post("/store/orders", json={})

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "out_of_stock"
    assert body["shortages"][0]["product_name"] == "Rare"
    assert body["shortages"][0]["available"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_with_unknown_code_warns(store_client, db_session):
    retailer = await _connected_retailer(db_session)
    product = await seed_product(db_session, retailer)
    await store_client.post("/store/cart", json={"product_id": str(product.id)})

    response = await store_client.post("/store/orders", json={"discount_code": "NOPE"})

    assert response.status_code == 201
    [warning] = response.json()["warnings"]
    assert warning["code"] == "promotion_not_applied"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_sees_only_own_orders(store_client, db_session):
    retailer = await _connected_retailer(db_session)
    mine = OrderGroupFactory.create(retailer_id=retailer.id)
    theirs = OrderGroupFactory.create(retailer_id=retailer.id, user_auth_id="other")
    db_session.add_all([mine, theirs])
    await db_session.commit()

    listing = await store_client.get("/store/orders")
    assert listing.status_code == 200
    data = listing.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(mine.id)

    assert (await store_client.get(f"/store/orders/{mine.id}")).status_code == 200
    assert (await store_client.get(f"/store/orders/{theirs.id}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_retailer_sees_orders_placed_with_them(store_client, db_session):
    retailer = await _connected_retailer(db_session, user_auth_id="shop-1")
    other = await _connected_retailer(db_session)
    db_session.add_all(
        [
            OrderGroupFactory.create(retailer_id=retailer.id),
            OrderGroupFactory.create(retailer_id=retailer.id),
            OrderGroupFactory.create(retailer_id=other.id),
        ]
    )
    await db_session.commit()

    with override_auth(app, make_retailer_user("shop-1")):
        response = await store_client.get("/store/orders", params={"page_size": 1})

    data = response.json()
    assert data["total"] == 2
    assert len(data["items"]) == 1
    assert data["page_size"] == 1


# ---------------------------------------------------------------------------
# Fulfilment
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_retailer_moves_order_forward(store_client, db_session):
    retailer = await _connected_retailer(db_session, user_auth_id="shop-1")
    order = OrderGroupFactory.create(
        retailer_id=retailer.id, status=OrderStatus.PROCESSING, total=Decimal("9.00")
    )
    db_session.add(order)
    await db_session.commit()

    with override_auth(app, make_retailer_user("shop-1")):
        response = await store_client.put(
            f"/store/orders/{order.id}/status", json={"status": "ready_for_pickup"}
        )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "ready_for_pickup"
    assert data["ready_for_pickup_at"] is not None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_transition_rejected(store_client, db_session):
    retailer = await _connected_retailer(db_session, user_auth_id="shop-1")
    order = OrderGroupFactory.create(retailer_id=retailer.id, status=OrderStatus.SHIPPED)
    db_session.add(order)
    await db_session.commit()

    with override_auth(app, make_retailer_user("shop-1")):
        response = await store_client.put(
            f"/store/orders/{order.id}/status", json={"status": "picked_up"}
        )

    assert response.status_code == 400
    assert response.json()["current_status"] == "shipped"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_retailer_forbidden(store_client, db_session):
    owner = await _connected_retailer(db_session)
    await _connected_retailer(db_session, user_auth_id="shop-2")
    order = OrderGroupFactory.create(retailer_id=owner.id)
    db_session.add(order)
    await db_session.commit()

    with override_auth(app, make_retailer_user("shop-2")):
        response = await store_client.put(
            f"/store/orders/{order.id}/status", json={"status": "processing"}
        )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cannot_update_status(store_client, db_session):
    response = await store_client.put(
        f"/store/orders/{uuid.uuid4()}/status", json={"status": "processing"}
    )
    assert response.status_code == 403
