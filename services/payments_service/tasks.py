"""Background reconciliation tasks for payments service.

Webhooks are the primary settlement path; these sweeps repair whatever a
lost delivery or a crashed request left behind. Each sweep is safe to run
repeatedly.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import from_timestamp, utc_now
from libs.common.errors import ExternalServiceError
from libs.common.logging import get_logger
from services.payments_service.models import (
    IN_FLIGHT_PAYOUT_STATUSES,
    DestinationAccount,
    Payout,
    PayoutStatus,
)
from services.payments_service.services.checkout_sessions import (
    open_checkout_session,
)
from services.payments_service.services.settlement import (
    APPLIED,
    apply_checkout_completed,
    apply_payment_succeeded,
)
from services.payments_service.stripe_client import StripeClient
from services.store_service.models import OrderGroup, OrderStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAID = "paid"
SUCCEEDED = "succeeded"


def _cutoff():
    return utc_now() - timedelta(minutes=get_settings().RECONCILE_AFTER_MINUTES)


# ---------------------------------------------------------------------------
# Unsettled checkout sessions
# ---------------------------------------------------------------------------


async def reconcile_order_group(
    db: AsyncSession, order: OrderGroup, client: StripeClient
) -> Optional[str]:
    """Ask Stripe about one sessioned-but-unpaid group and settle it if paid."""
    session = await client.retrieve_checkout_session(order.external_session_ref)
    if session.payment_status != PAID or not session.payment_intent:
        return None

    metadata = {**session.metadata, "order_group_id": str(order.id)}
    await apply_checkout_completed(
        db,
        session_id=session.id,
        metadata=metadata,
        payment_intent_id=session.payment_intent,
    )

    intent = await client.retrieve_payment_intent(session.payment_intent)
    if intent.status != SUCCEEDED:
        await db.commit()
        return None

    outcome = await apply_payment_succeeded(
        db,
        payment_intent_id=intent.id,
        amount_received=intent.amount_received,
        paid_at=from_timestamp(intent.created) or utc_now(),
        metadata=metadata,
    )
    await db.commit()
    return outcome


async def reconcile_unsettled_sessions(
    db: AsyncSession, client: Optional[StripeClient]
) -> int:
    """Settle groups whose payment webhook never arrived."""
    if client is None:
        return 0

    result = await db.execute(
        select(OrderGroup.id)
        .where(
            OrderGroup.status.in_([OrderStatus.PENDING, OrderStatus.PROCESSING]),
            OrderGroup.external_session_ref.is_not(None),
            OrderGroup.external_payment_ref.is_(None),
            OrderGroup.created_at <= _cutoff(),
        )
        .order_by(OrderGroup.created_at.asc())
        .limit(get_settings().RECONCILE_BATCH_SIZE)
    )
    order_ids = list(result.scalars().all())

    settled = 0
    for order_id in order_ids:
        # A rollback below expires everything, so reload per iteration.
        order = await db.get(OrderGroup, order_id)
        try:
            outcome = await reconcile_order_group(db, order, client)
        except ExternalServiceError as exc:
            logger.warning(
                "Session reconcile failed for order %s: %s", order_id, exc.message
            )
            await db.rollback()
            continue
        if outcome == APPLIED:
            settled += 1

    if order_ids:
        logger.info(
            "Reconciled %d/%d unsettled order group(s)", settled, len(order_ids)
        )
    return settled


# ---------------------------------------------------------------------------
# Missing checkout sessions
# ---------------------------------------------------------------------------


async def retry_missing_checkout_sessions(
    db: AsyncSession, client: Optional[StripeClient]
) -> int:
    """Open sessions for pending groups whose retailer can now be charged."""
    if client is None:
        return 0

    result = await db.execute(
        select(OrderGroup)
        .join(
            DestinationAccount,
            DestinationAccount.retailer_id == OrderGroup.retailer_id,
        )
        .where(
            OrderGroup.status == OrderStatus.PENDING,
            OrderGroup.external_session_ref.is_(None),
            OrderGroup.total > 0,
            DestinationAccount.charges_enabled.is_(True),
        )
        .order_by(OrderGroup.created_at.asc())
        .limit(get_settings().RECONCILE_BATCH_SIZE)
    )
    orders = list(result.scalars().all())

    opened = 0
    for order in orders:
        warning = await open_checkout_session(db, order, client=client)
        if warning is None and order.external_session_ref:
            opened += 1

    if orders:
        logger.info("Opened %d/%d missing checkout session(s)", opened, len(orders))
    return opened


# ---------------------------------------------------------------------------
# Stuck payouts
# ---------------------------------------------------------------------------


async def resolve_stuck_payout(
    db: AsyncSession, payout: Payout, client: StripeClient
) -> PayoutStatus:
    """
    Settle an unresolved payout from Stripe's record of its transfer group.
    Never issues a new transfer.
    """
    transfers = await client.list_transfers(payout.transfer_group)
    landed = next((t for t in transfers if not t.reversed), None)

    now = utc_now()
    if landed is not None:
        payout.status = PayoutStatus.COMPLETED
        payout.transfer_ref = landed.id
        payout.completed_at = payout.completed_at or now
    else:
        payout.status = PayoutStatus.FAILED
        payout.failure_reason = "No transfer found for payout"
    payout.processed_at = payout.processed_at or now
    await db.commit()

    logger.info("Resolved stuck payout %s as %s", payout.id, payout.status.value)
    return payout.status


async def reconcile_stuck_payouts(
    db: AsyncSession, client: Optional[StripeClient]
) -> int:
    if client is None:
        return 0

    result = await db.execute(
        select(Payout.id)
        .where(
            Payout.status.in_(IN_FLIGHT_PAYOUT_STATUSES),
            Payout.updated_at <= _cutoff(),
        )
        .order_by(Payout.created_at.asc())
        .limit(get_settings().RECONCILE_BATCH_SIZE)
    )
    payout_ids = list(result.scalars().all())

    resolved = 0
    for payout_id in payout_ids:
        payout = await db.get(Payout, payout_id)
        try:
            await resolve_stuck_payout(db, payout, client)
        except ExternalServiceError as exc:
            logger.warning(
                "Transfer lookup failed for payout %s: %s", payout_id, exc.message
            )
            await db.rollback()
            continue
        resolved += 1

    if payout_ids:
        logger.info("Resolved %d/%d stuck payout(s)", resolved, len(payout_ids))
    return resolved
