"""Hosted checkout session creation for a committed order group.

Runs strictly after the checkout transaction has committed. A failure here
never rolls anything back; the order group stays valid but sessionless,
and the reconciliation worker retries it later.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import pounds_to_pence
from libs.common.datetime_utils import utc_now
from libs.common.errors import ExternalServiceError
from libs.common.logging import get_logger
from services.payments_service.models import DestinationAccount
from services.payments_service.services.commission import (
    current_rate,
    split_commission,
)
from services.payments_service.stripe_client import StripeClient
from services.store_service.models import OrderGroup, OrderStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

DESTINATION_MISSING = "payment_destination_missing"
SESSION_FAILED = "checkout_session_failed"
PAYMENTS_UNAVAILABLE = "payments_unavailable"


@dataclass
class CheckoutWarning:
    order_group_id: Optional[str]
    code: str
    message: str


async def get_charge_destination(
    db: AsyncSession, retailer_id
) -> Optional[DestinationAccount]:
    """Return the retailer's destination account if it can accept charges."""
    result = await db.execute(
        select(DestinationAccount).where(
            DestinationAccount.retailer_id == retailer_id,
            DestinationAccount.charges_enabled.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def stamp_checkout_commission(db: AsyncSession, order: OrderGroup) -> None:
    """Stamp commission from the rate in force now. Never re-stamps."""
    if order.commission_rate_version is not None:
        return
    snapshot = await current_rate(db)
    commission, _ = split_commission(order.total, snapshot.rate)
    order.commission = commission
    order.commission_rate = snapshot.rate
    order.commission_rate_version = snapshot.version


def _success_url(order: OrderGroup) -> str:
    return f"{get_settings().FRONTEND_URL}/orders/{order.id}?success=true"


def _cancel_url(order: OrderGroup) -> str:
    return (
        f"{get_settings().FRONTEND_URL}/checkout?canceled=true"
        f"&order_group_id={order.id}"
    )


async def open_checkout_session(
    db: AsyncSession,
    order: OrderGroup,
    *,
    client: Optional[StripeClient],
) -> Optional[CheckoutWarning]:
    """
    Create the hosted checkout session for one order group.

    Returns a warning instead of raising when the group cannot be charged
    right now (no destination, Stripe unconfigured, Stripe failure).
    """
    if order.external_session_ref:
        return None

    if order.total <= 0:
        # Nothing to charge: promotions covered the whole group.
        await stamp_checkout_commission(db, order)
        order.retailer_net = Decimal("0.00")
        order.settled_amount = Decimal("0.00")
        order.settled_at = utc_now()
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.PROCESSING
        await db.commit()
        return None

    destination = await get_charge_destination(db, order.retailer_id)
    if destination is None:
        logger.warning(
            "Retailer %s has no charge-enabled destination; order %s left unpaid",
            order.retailer_id,
            order.order_number,
        )
        return CheckoutWarning(
            order_group_id=str(order.id),
            code=DESTINATION_MISSING,
            message="Retailer cannot accept online payments yet",
        )

    await stamp_checkout_commission(db, order)
    await db.commit()

    if client is None:
        return CheckoutWarning(
            order_group_id=str(order.id),
            code=PAYMENTS_UNAVAILABLE,
            message="Online payments are not configured",
        )

    metadata = {
        "order_group_id": str(order.id),
        "checkout_id": str(order.checkout_id),
        "retailer_id": str(order.retailer_id),
    }
    try:
        session = await client.create_checkout_session(
            amount=pounds_to_pence(order.total),
            currency=get_settings().BASE_CURRENCY,
            application_fee_amount=pounds_to_pence(order.commission),
            destination=destination.external_account_id,
            product_name=f"Order {order.order_number}",
            customer_email=order.customer_email,
            success_url=_success_url(order),
            cancel_url=_cancel_url(order),
            metadata=metadata,
            idempotency_key=f"checkout-session-{order.id}",
        )
    except ExternalServiceError as exc:
        logger.error(
            "Checkout session creation failed for order %s: %s",
            order.order_number,
            exc.message,
            extra={"extra_fields": {"order_group_id": str(order.id)}},
        )
        return CheckoutWarning(
            order_group_id=str(order.id),
            code=SESSION_FAILED,
            message="Payment session could not be created; it will be retried",
        )

    order.external_session_ref = session.id
    order.checkout_url = session.url
    await db.commit()

    logger.info(
        "Created checkout session %s for order %s (total=%s, fee=%s)",
        session.id,
        order.order_number,
        order.total,
        order.commission,
    )
    return None
