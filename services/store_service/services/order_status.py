"""Retailer-driven order status updates.

Two fulfilment tracks share the first steps:

    pending -> processing -> ready_for_pickup -> picked_up
    pending -> processing -> shipped          -> delivered

Each update moves exactly one step along a track; steps cannot be skipped.
``cancelled`` is only reachable while the order is still pending.
"""

import uuid

from libs.common.datetime_utils import utc_now
from libs.common.errors import NotFound, PermissionDenied, ValidationError
from libs.common.logging import get_logger
from services.store_service.models import OrderGroup, OrderStatus, Retailer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.READY_FOR_PICKUP, OrderStatus.SHIPPED}),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.PICKED_UP}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.PICKED_UP: frozenset(),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


async def get_retailer_for_user(db: AsyncSession, user_auth_id: str) -> Retailer:
    result = await db.execute(
        select(Retailer).where(Retailer.user_auth_id == user_auth_id)
    )
    retailer = result.scalar_one_or_none()
    if retailer is None:
        raise NotFound("Retailer profile not found")
    return retailer


async def update_order_status(
    db: AsyncSession,
    *,
    retailer_id: uuid.UUID,
    order_group_id: uuid.UUID,
    status: OrderStatus,
) -> OrderGroup:
    """Move an order group forward. Only its own retailer may do so."""
    result = await db.execute(
        select(OrderGroup)
        .where(OrderGroup.id == order_group_id)
        .options(selectinload(OrderGroup.lines))
        .with_for_update()
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFound("Order not found")
    if order.retailer_id != retailer_id:
        raise PermissionDenied("Order belongs to another retailer")

    if order.status == status:
        return order
    if not can_transition(order.status, status):
        raise ValidationError(
            f"Cannot move order from {order.status.value} to {status.value}",
            current_status=order.status.value,
        )

    now = utc_now()
    previous = order.status
    order.status = status
    if status == OrderStatus.READY_FOR_PICKUP:
        order.ready_for_pickup_at = now
    elif status == OrderStatus.PICKED_UP:
        order.picked_up_at = now
    elif status == OrderStatus.CANCELLED:
        order.cancelled_at = now

    await db.commit()

    logger.info(
        "Order %s moved %s -> %s",
        order.order_number,
        previous.value,
        status.value,
        extra={"extra_fields": {"retailer_id": str(retailer_id)}},
    )
    return order
