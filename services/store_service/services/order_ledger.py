"""Order ledger writer: persists order groups inside the checkout transaction.

Per retailer group it inserts the order group and its lines, decrements
stock with a conditional update, removes the consumed cart lines, and
applies the allocated promotions. Nothing here commits; the checkout
orchestrator owns the transaction.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO
from libs.common.errors import OutOfStock, Shortage
from libs.common.logging import get_logger
from services.rewards_service.services.discounts import (
    DiscountQuote,
    claim_discount_use,
    record_order_discount,
)
from services.rewards_service.services.points import debit_points
from services.store_service.models import (
    CartLine,
    OrderGroup,
    OrderLine,
    OrderStatus,
    StockUnit,
)
from services.store_service.services.cart_materializer import LineSnapshot
from services.store_service.services.promotion_allocator import GroupAllocation
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def decrement_stock(db: AsyncSession, line: LineSnapshot) -> None:
    """Take ``line.quantity`` off the shelf or raise ``OutOfStock``."""
    result = await db.execute(
        update(StockUnit)
        .where(
            StockUnit.product_id == line.product_id,
            StockUnit.quantity >= line.quantity,
        )
        .values(quantity=StockUnit.quantity - line.quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    available = await db.scalar(
        select(StockUnit.quantity).where(StockUnit.product_id == line.product_id)
    )
    raise OutOfStock(
        [
            Shortage(
                product_id=str(line.product_id),
                product_name=line.product_name,
                available=available or 0,
                requested=line.quantity,
            )
        ]
    )


async def write_order_groups(
    db: AsyncSession,
    *,
    user_auth_id: str,
    customer_email: Optional[str],
    checkout_id: uuid.UUID,
    allocations: list[GroupAllocation],
    discount: Optional[DiscountQuote] = None,
    pickup_instructions: Optional[str] = None,
) -> tuple[list[OrderGroup], list[str]]:
    """
    Write one order group per allocation. Returns the groups (lines loaded)
    and any promotion warnings.

    Stock shortfalls raise ``OutOfStock`` and the caller rolls back.
    Promotions are best-effort: if the code is exhausted or the points
    balance shrank since quoting, the group keeps its pre-promotion amount.
    """
    warnings: list[str] = []

    discount_claimed = False
    if discount is not None and any(a.discount_amount > 0 for a in allocations):
        discount_claimed = await claim_discount_use(db, discount.discount_code_id)
        if not discount_claimed:
            warnings.append(f"Discount code {discount.code} is no longer available")

    groups: list[OrderGroup] = []
    for allocation in allocations:
        group = allocation.group
        discount_amount = allocation.discount_amount if discount_claimed else ZERO

        order = OrderGroup(
            id=uuid.uuid4(),
            order_number=OrderGroup.generate_order_number(),
            checkout_id=checkout_id,
            user_auth_id=user_auth_id,
            customer_email=customer_email,
            retailer_id=group.retailer_id,
            subtotal=group.subtotal,
            discount_amount=discount_amount,
            points_used=ZERO,
            total=group.subtotal - discount_amount,
            discount_code=discount.code if discount_amount > 0 else None,
            status=OrderStatus.PENDING,
            pickup_location=group.pickup_location,
            pickup_instructions=pickup_instructions,
        )
        order.lines = [
            OrderLine(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in group.lines
        ]
        db.add(order)
        await db.flush()

        for line in group.lines:
            await decrement_stock(db, line)

        if discount_amount > 0:
            record_order_discount(
                db,
                order_group_id=order.id,
                discount_code_id=discount.discount_code_id,
                amount=discount_amount,
            )

        if allocation.points_used > 0:
            debited = await debit_points(
                db,
                user_auth_id=user_auth_id,
                amount=allocation.points_used,
                idempotency_key=f"redeem-{order.id}",
                order_group_id=order.id,
                description=f"Redeemed on order {order.order_number}",
            )
            if debited:
                order.points_used = allocation.points_used
                order.total = order.total - allocation.points_used
            else:
                warnings.append(
                    f"Points could not be redeemed on order {order.order_number}"
                )

        groups.append(order)

    cart_line_ids = [
        line.cart_line_id for a in allocations for line in a.group.lines
    ]
    await db.execute(
        delete(CartLine)
        .where(CartLine.id.in_(cart_line_ids))
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    logger.info(
        "Wrote %d order group(s) for checkout %s (user=%s)",
        len(groups),
        checkout_id,
        user_auth_id,
    )
    return groups, warnings


def line_subtotal(order: OrderGroup) -> Decimal:
    return sum((line.line_total for line in order.lines), ZERO)
