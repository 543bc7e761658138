"""Unit tests for retailer-driven order status transitions."""

import uuid

import pytest
from libs.common.errors import NotFound, PermissionDenied, ValidationError
from services.store_service.models import OrderStatus
from services.store_service.services.order_status import (
    can_transition,
    get_retailer_for_user,
    update_order_status,
)
from tests.factories import OrderGroupFactory, RetailerFactory


async def _order(db, status=OrderStatus.PENDING):
    retailer = RetailerFactory.create()
    db.add(retailer)
    await db.commit()
    order = OrderGroupFactory.create(retailer_id=retailer.id, status=status)
    db.add(order)
    await db.commit()
    return retailer, order


# ---------------------------------------------------------------------------
# can_transition
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PROCESSING, OrderStatus.READY_FOR_PICKUP),
        (OrderStatus.READY_FOR_PICKUP, OrderStatus.PICKED_UP),
        (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    ],
)
def test_forward_moves_allowed(current, target):
    assert can_transition(current, target)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PROCESSING, OrderStatus.PENDING),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
        (OrderStatus.READY_FOR_PICKUP, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.PICKED_UP),
        (OrderStatus.PICKED_UP, OrderStatus.PROCESSING),
        (OrderStatus.CANCELLED, OrderStatus.PROCESSING),
    ],
)
def test_backward_and_cross_track_moves_rejected(current, target):
    assert not can_transition(current, target)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PENDING, OrderStatus.READY_FOR_PICKUP),
        (OrderStatus.PENDING, OrderStatus.DELIVERED),
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.PROCESSING, OrderStatus.PICKED_UP),
        (OrderStatus.PROCESSING, OrderStatus.DELIVERED),
    ],
)
def test_skipping_steps_rejected(current, target):
    assert not can_transition(current, target)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_pending_cannot_jump_to_delivered(db_session):
    retailer, order = await _order(db_session, OrderStatus.PENDING)

    with pytest.raises(ValidationError) as exc_info:
        await update_order_status(
            db_session,
            retailer_id=retailer.id,
            order_group_id=order.id,
            status=OrderStatus.DELIVERED,
        )
    assert exc_info.value.details["current_status"] == "pending"


# ---------------------------------------------------------------------------
# update_order_status
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ready_then_picked_up_stamps_times(db_session):
    retailer, order = await _order(db_session, OrderStatus.PROCESSING)

    updated = await update_order_status(
        db_session,
        retailer_id=retailer.id,
        order_group_id=order.id,
        status=OrderStatus.READY_FOR_PICKUP,
    )
    assert updated.status == OrderStatus.READY_FOR_PICKUP
    assert updated.ready_for_pickup_at is not None

    updated = await update_order_status(
        db_session,
        retailer_id=retailer.id,
        order_group_id=order.id,
        status=OrderStatus.PICKED_UP,
    )
    assert updated.status == OrderStatus.PICKED_UP
    assert updated.picked_up_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_only_while_pending(db_session):
    retailer, order = await _order(db_session, OrderStatus.PENDING)

    cancelled = await update_order_status(
        db_session,
        retailer_id=retailer.id,
        order_group_id=order.id,
        status=OrderStatus.CANCELLED,
    )
    assert cancelled.cancelled_at is not None

    _, processing = await _order(db_session, OrderStatus.PROCESSING)
    with pytest.raises(ValidationError) as exc_info:
        await update_order_status(
            db_session,
            retailer_id=processing.retailer_id,
            order_group_id=processing.id,
            status=OrderStatus.CANCELLED,
        )
    assert exc_info.value.details["current_status"] == "processing"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_same_status_is_a_no_op(db_session):
    retailer, order = await _order(db_session, OrderStatus.SHIPPED)

    updated = await update_order_status(
        db_session,
        retailer_id=retailer.id,
        order_group_id=order.id,
        status=OrderStatus.SHIPPED,
    )
    assert updated.status == OrderStatus.SHIPPED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_other_retailer_cannot_touch_order(db_session):
    _, order = await _order(db_session)

    with pytest.raises(PermissionDenied):
        await update_order_status(
            db_session,
            retailer_id=uuid.uuid4(),
            order_group_id=order.id,
            status=OrderStatus.PROCESSING,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_order(db_session):
    with pytest.raises(NotFound):
        await update_order_status(
            db_session,
            retailer_id=uuid.uuid4(),
            order_group_id=uuid.uuid4(),
            status=OrderStatus.PROCESSING,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_retailer_lookup_by_auth_id(db_session):
    retailer = RetailerFactory.create(user_auth_id="shop-owner")
    db_session.add(retailer)
    await db_session.commit()

    assert (await get_retailer_for_user(db_session, "shop-owner")).id == retailer.id
    with pytest.raises(NotFound):
        await get_retailer_for_user(db_session, "nobody")
