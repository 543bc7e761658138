"""Integration tests for the store cart endpoints."""

import uuid

import pytest
from tests.factories import RetailerFactory, seed_product


async def _product(db, **kwargs):
    retailer = RetailerFactory.create()
    db.add(retailer)
    await db.commit()
    return await seed_product(db, retailer, **kwargs)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(store_client):
    response = await store_client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "store"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_request_id_propagated(store_client):
    traced = await store_client.get("/store/cart", headers={"X-Request-ID": "req-123"})
    untraced = await store_client.get("/store/cart")

    assert traced.headers["X-Request-ID"] == "req-123"
    assert untraced.headers["X-Request-ID"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_cart(store_client):
    response = await store_client.get("/store/cart")

    assert response.status_code == 200
    assert response.json() == {"items": [], "item_count": 0, "subtotal": "0.00"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_add_same_product_twice_increases_quantity(store_client, db_session):
    product = await _product(db_session, price="2.50")

    first = await store_client.post(
        "/store/cart", json={"product_id": str(product.id), "quantity": 2}
    )
    second = await store_client.post(
        "/store/cart", json={"product_id": str(product.id), "quantity": 1}
    )

    assert first.status_code == 201, first.text
    assert second.status_code == 201, second.text
    data = second.json()
    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 3
    assert data["item_count"] == 3
    assert data["subtotal"] == "7.50"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cannot_add_unknown_or_inactive_product(store_client, db_session):
    product = await _product(db_session)
    product.is_active = False
    await db_session.commit()

    missing = await store_client.post(
        "/store/cart", json={"product_id": str(uuid.uuid4())}
    )
    inactive = await store_client.post(
        "/store/cart", json={"product_id": str(product.id)}
    )

    assert missing.status_code == 404
    assert inactive.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_zero_quantity_rejected(store_client, db_session):
    product = await _product(db_session)

    response = await store_client.post(
        "/store/cart", json={"product_id": str(product.id), "quantity": 0}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_and_remove_line(store_client, db_session):
    product = await _product(db_session, price="4.00")
    await store_client.post("/store/cart", json={"product_id": str(product.id)})

    updated = await store_client.put(
        f"/store/cart/{product.id}", json={"quantity": 5}
    )
    assert updated.status_code == 200
    assert updated.json()["subtotal"] == "20.00"

    removed = await store_client.delete(f"/store/cart/{product.id}")
    assert removed.status_code == 200
    assert removed.json()["items"] == []

    again = await store_client.delete(f"/store/cart/{product.id}")
    assert again.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_clear_cart(store_client, db_session):
    a = await _product(db_session)
    b = await _product(db_session)
    await store_client.post("/store/cart", json={"product_id": str(a.id)})
    await store_client.post("/store/cart", json={"product_id": str(b.id)})

    response = await store_client.delete("/store/cart")

    assert response.status_code == 200
    assert (await store_client.get("/store/cart")).json()["item_count"] == 0
