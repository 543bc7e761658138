"""Settlement reconciler: applies verified Stripe events to order groups.

Each order group is a small state machine. Transitions are keyed by the
external session / payment ids and are pure overwrites, so at-least-once,
out-of-order delivery converges on the same state as a single delivery.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from libs.common.currency import pence_to_pounds
from libs.common.datetime_utils import from_timestamp, utc_now
from libs.common.logging import get_logger
from services.payments_service.models import DestinationAccount, WebhookEvent
from services.payments_service.services.commission import (
    rate_effective_at,
    split_commission,
)
from services.payments_service.services.connect import apply_account_flags
from services.payments_service.stripe_client import account_from_payload
from services.store_service.models import OrderGroup, OrderStatus
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"
ACCOUNT_UPDATED = "account.updated"

# Outcomes
APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"
UNMATCHED = "unmatched"
CONFLICT = "conflict"


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


async def _lock_order_group(
    db: AsyncSession,
    *,
    order_group_id: Optional[uuid.UUID] = None,
    session_ref: Optional[str] = None,
    payment_ref: Optional[str] = None,
) -> Optional[OrderGroup]:
    """Find an order group by id, session or payment reference, row-locked."""
    if order_group_id:
        condition = OrderGroup.id == order_group_id
    elif session_ref:
        condition = OrderGroup.external_session_ref == session_ref
    elif payment_ref:
        condition = OrderGroup.external_payment_ref == payment_ref
    else:
        return None
    result = await db.execute(select(OrderGroup).where(condition).with_for_update())
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def apply_checkout_completed(
    db: AsyncSession,
    *,
    session_id: str,
    metadata: dict,
    payment_intent_id: Optional[str] = None,
) -> str:
    """pending -> processing; records the session id."""
    order = await _lock_order_group(
        db,
        order_group_id=_as_uuid(metadata.get("order_group_id")),
        session_ref=session_id,
    )
    if order is None:
        logger.warning("Checkout session %s matches no order group", session_id)
        return UNMATCHED

    if order.external_session_ref is None:
        order.external_session_ref = session_id
    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PROCESSING

    logger.info(
        "Checkout completed for order %s (session=%s, payment_intent=%s)",
        order.order_number,
        session_id,
        payment_intent_id,
    )
    return APPLIED


async def apply_payment_succeeded(
    db: AsyncSession,
    *,
    payment_intent_id: str,
    amount_received: int,
    paid_at: datetime,
    metadata: dict,
) -> str:
    """
    Finalize commission and retailer net using the rate in force at
    ``paid_at``. Every derived field is overwritten, never incremented.
    """
    order = await _lock_order_group(
        db,
        order_group_id=_as_uuid(metadata.get("order_group_id")),
        payment_ref=payment_intent_id,
    )
    if order is None:
        logger.warning("Payment %s matches no order group", payment_intent_id)
        return UNMATCHED

    if order.external_payment_ref and order.external_payment_ref != payment_intent_id:
        logger.error(
            "Order %s already settled by %s; ignoring payment %s",
            order.order_number,
            order.external_payment_ref,
            payment_intent_id,
            extra={"extra_fields": {"order_group_id": str(order.id)}},
        )
        return CONFLICT

    outcome = APPLIED
    if order.status == OrderStatus.CANCELLED:
        # Payment facts are still recorded; cancelled groups never count as earnings.
        logger.error(
            "Payment %s received for cancelled order %s",
            payment_intent_id,
            order.order_number,
            extra={"extra_fields": {"order_group_id": str(order.id)}},
        )
        outcome = CONFLICT

    snapshot = await rate_effective_at(db, paid_at)
    commission, retailer_net = split_commission(order.total, snapshot.rate)

    order.commission = commission
    order.commission_rate = snapshot.rate
    order.commission_rate_version = snapshot.version
    order.retailer_net = retailer_net
    order.external_payment_ref = payment_intent_id
    order.settled_amount = pence_to_pounds(amount_received)
    order.settled_at = paid_at
    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PROCESSING

    logger.info(
        "Settled order %s via %s (commission=%s, net=%s, rate v%d)",
        order.order_number,
        payment_intent_id,
        commission,
        retailer_net,
        snapshot.version,
    )
    return outcome


async def apply_account_updated(db: AsyncSession, account: dict) -> str:
    """Refresh destination eligibility flags. Never touches order groups."""
    parsed = account_from_payload(account)
    result = await db.execute(
        select(DestinationAccount).where(
            DestinationAccount.external_account_id == parsed.id
        )
    )
    destination = result.scalar_one_or_none()
    if destination is None:
        return UNMATCHED

    apply_account_flags(destination, parsed)
    return APPLIED


# ---------------------------------------------------------------------------
# Event dispatch
# ---------------------------------------------------------------------------


async def handle_event(db: AsyncSession, event: dict) -> str:
    """
    Apply one verified Stripe event. Redelivered event ids are acknowledged
    without reprocessing; unknown event types are recorded and ignored.
    """
    event_id = event.get("id")
    event_type = event.get("type") or ""
    obj = (event.get("data") or {}).get("object") or {}

    if event_id:
        seen = await db.scalar(
            select(WebhookEvent.id).where(WebhookEvent.event_id == event_id)
        )
        if seen:
            logger.info("Webhook %s (%s) already processed", event_id, event_type)
            return DUPLICATE

    if event_type == CHECKOUT_COMPLETED:
        outcome = await apply_checkout_completed(
            db,
            session_id=obj.get("id", ""),
            metadata=obj.get("metadata") or {},
            payment_intent_id=obj.get("payment_intent"),
        )
    elif event_type == PAYMENT_SUCCEEDED:
        paid_at = from_timestamp(obj.get("created") or event.get("created"))
        outcome = await apply_payment_succeeded(
            db,
            payment_intent_id=obj.get("id", ""),
            amount_received=obj.get("amount_received") or obj.get("amount") or 0,
            paid_at=paid_at or utc_now(),
            metadata=obj.get("metadata") or {},
        )
    elif event_type == ACCOUNT_UPDATED:
        outcome = await apply_account_updated(db, obj)
    else:
        outcome = IGNORED

    if event_id:
        db.add(WebhookEvent(event_id=event_id, event_type=event_type))
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent delivery of the same event won the insert.
        await db.rollback()
        return DUPLICATE

    logger.info(
        "Webhook %s (%s): %s",
        event_id,
        event_type,
        outcome,
        extra={"extra_fields": {"event_id": event_id, "outcome": outcome}},
    )
    return outcome
