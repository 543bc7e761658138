"""Checkout orchestrator: cart -> order groups -> hosted checkout sessions.

Phase 1 runs in one transaction (isolation CHECKOUT_ISOLATION_LEVEL):
materialize the cart, quote and allocate promotions, write the order
ledger, accrue cashback, commit.

Phase 2 runs after the commit, one order group at a time: stamp the
commission from the rate in force now and open a hosted checkout session.
Phase 2 failures become warnings; they never undo phase 1.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.currency import ZERO, split_proportionally, to_money
from libs.common.errors import Conflict
from libs.common.logging import get_logger
from libs.db.session import is_retryable, set_isolation_level
from services.payments_service.services.checkout_sessions import (
    CheckoutWarning,
    open_checkout_session,
)
from services.payments_service.stripe_client import StripeClient
from services.rewards_service.services.points import credit_points
from services.store_service.models import OrderGroup
from services.store_service.services.cart_materializer import materialize_cart
from services.store_service.services.order_ledger import write_order_groups
from services.store_service.services.promotion_allocator import (
    allocate,
    quote_promotions,
)
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PROMOTION_NOT_APPLIED = "promotion_not_applied"


@dataclass
class CheckoutResult:
    checkout_id: uuid.UUID
    orders: list[OrderGroup]
    warnings: list[CheckoutWarning] = field(default_factory=list)

    @property
    def checkout_urls(self) -> dict[str, str]:
        return {
            str(order.id): order.checkout_url
            for order in self.orders
            if order.checkout_url
        }


async def accrue_cashback(
    db: AsyncSession, user_auth_id: str, orders: list[OrderGroup]
) -> Decimal:
    """
    Credit cashback on the combined order total, split across groups in
    proportion to their totals. Accrues now, before any payment settles.
    """
    combined = sum((order.total for order in orders), ZERO)
    cashback = to_money(combined * get_settings().CASHBACK_RATE)
    if cashback <= 0:
        return ZERO

    shares = split_proportionally(cashback, [order.total for order in orders])
    for order, share in zip(orders, shares):
        if share <= 0:
            continue
        order.points_earned = share
        await credit_points(
            db,
            user_auth_id=user_auth_id,
            amount=share,
            idempotency_key=f"cashback-{order.id}",
            order_group_id=order.id,
            description=f"Cashback on order {order.order_number}",
        )
    return cashback


async def checkout_cart(
    db: AsyncSession,
    *,
    user: AuthUser,
    discount_code: Optional[str] = None,
    points_to_redeem: Optional[Decimal] = None,
    pickup_instructions: Optional[str] = None,
    client: Optional[StripeClient] = None,
) -> CheckoutResult:
    """
    Turn the user's cart into one order group per retailer.

    Raises ``ValidationError`` (empty cart) or ``OutOfStock`` with nothing
    written, and ``Conflict`` when the transaction loses a serialization race.
    """
    checkout_id = uuid.uuid4()
    await set_isolation_level(db, get_settings().CHECKOUT_ISOLATION_LEVEL)

    try:
        groups = await materialize_cart(db, user.user_id)
        quote = await quote_promotions(
            db,
            user_auth_id=user.user_id,
            groups=groups,
            discount_code=discount_code,
            points_to_redeem=points_to_redeem,
        )
        allocations = allocate(groups, quote.discount_amount, quote.points)
        orders, ledger_warnings = await write_order_groups(
            db,
            user_auth_id=user.user_id,
            customer_email=user.email,
            checkout_id=checkout_id,
            allocations=allocations,
            discount=quote.discount,
            pickup_instructions=pickup_instructions,
        )
        cashback = await accrue_cashback(db, user.user_id, orders)
        await db.commit()
    except DBAPIError as exc:
        await db.rollback()
        if is_retryable(exc):
            raise Conflict("Checkout collided with another order, please retry") from exc
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Checkout %s committed: %d order group(s), cashback %s",
        checkout_id,
        len(orders),
        cashback,
        extra={"extra_fields": {"user_auth_id": user.user_id}},
    )

    result = CheckoutResult(checkout_id=checkout_id, orders=orders)
    for message in quote.warnings + ledger_warnings:
        result.warnings.append(
            CheckoutWarning(
                order_group_id=None, code=PROMOTION_NOT_APPLIED, message=message
            )
        )

    for order in orders:
        warning = await open_checkout_session(db, order, client=client)
        if warning is not None:
            result.warnings.append(warning)

    return result
