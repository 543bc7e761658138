"""Retailer payout balance and transfer execution.

Available balance (base currency):
    settled revenue (retailer net of groups that have been paid for and
    are neither pending nor cancelled)
  - completed payouts
  - pending + processing payouts

A payout request is evaluated while holding a row lock on the retailer's
``PayoutAccount``, so two concurrent requests cannot both see the same
pre-debit balance. The transfer itself runs after the lock is released.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import (
    ZERO,
    normalize_currency,
    pounds_to_pence,
    to_base,
    to_money,
)
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    ExternalServiceError,
    InsufficientBalance,
    ValidationError,
)
from libs.common.logging import get_logger
from services.payments_service.models import (
    IN_FLIGHT_PAYOUT_STATUSES,
    DestinationAccount,
    Payout,
    PayoutAccount,
    PayoutMethod,
    PayoutStatus,
)
from services.payments_service.stripe_client import StripeClient
from services.store_service.models import EARNING_EXCLUDED_STATUSES, OrderGroup
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class BalanceSummary:
    total_revenue: Decimal
    completed_payouts: Decimal
    in_flight_payouts: Decimal
    available_balance: Decimal
    currency: str


async def compute_balance(db: AsyncSession, retailer_id: uuid.UUID) -> BalanceSummary:
    revenue = await db.scalar(
        select(func.coalesce(func.sum(OrderGroup.retailer_net), 0)).where(
            OrderGroup.retailer_id == retailer_id,
            OrderGroup.status.not_in(EARNING_EXCLUDED_STATUSES),
            OrderGroup.settled_at.is_not(None),
            OrderGroup.retailer_net.is_not(None),
        )
    )
    completed = await db.scalar(
        select(func.coalesce(func.sum(Payout.amount_base), 0)).where(
            Payout.retailer_id == retailer_id,
            Payout.status == PayoutStatus.COMPLETED,
        )
    )
    in_flight = await db.scalar(
        select(func.coalesce(func.sum(Payout.amount_base), 0)).where(
            Payout.retailer_id == retailer_id,
            Payout.status.in_(IN_FLIGHT_PAYOUT_STATUSES),
        )
    )

    total_revenue = to_money(revenue or ZERO)
    completed_payouts = to_money(completed or ZERO)
    in_flight_payouts = to_money(in_flight or ZERO)
    return BalanceSummary(
        total_revenue=total_revenue,
        completed_payouts=completed_payouts,
        in_flight_payouts=in_flight_payouts,
        available_balance=total_revenue - completed_payouts - in_flight_payouts,
        currency=get_settings().BASE_CURRENCY,
    )


async def _lock_payout_account(
    db: AsyncSession, retailer_id: uuid.UUID
) -> Optional[PayoutAccount]:
    result = await db.execute(
        select(PayoutAccount)
        .where(PayoutAccount.retailer_id == retailer_id)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def request_payout(
    db: AsyncSession,
    *,
    retailer_id: uuid.UUID,
    amount: Decimal,
    currency: str,
    notes: Optional[str] = None,
    client: Optional[StripeClient],
) -> Payout:
    """
    Validate, reserve and execute a payout.

    Raises ``InsufficientBalance`` (no row created) when the amount in base
    currency exceeds the available balance. Otherwise returns the payout in
    its final state for this request: completed, or failed with a reason.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Valid amount is required")
    code = normalize_currency(currency)
    amount_base = to_base(amount, code)
    if amount_base <= 0:
        raise ValidationError("Amount is too small to pay out")

    account = await _lock_payout_account(db, retailer_id)
    if account is None:
        await db.rollback()
        raise ValidationError("Please configure payout settings first")

    summary = await compute_balance(db, retailer_id)
    if amount_base > summary.available_balance:
        await db.rollback()
        logger.info(
            "Payout rejected for retailer %s: requested %s %s (base %s), available %s",
            retailer_id,
            amount,
            code,
            amount_base,
            summary.available_balance,
        )
        raise InsufficientBalance(
            available=summary.available_balance,
            requested=amount_base,
            currency=summary.currency,
        )

    payout = Payout(
        retailer_id=retailer_id,
        amount=amount,
        currency=code,
        amount_base=amount_base,
        base_currency=summary.currency,
        status=PayoutStatus.PENDING,
        payout_method=account.payout_method,
        notes=notes,
    )
    db.add(payout)
    # Commit releases the lock; the pending row now counts as in-flight.
    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s reserved for retailer %s: %s %s (base %s)",
        payout.id,
        retailer_id,
        amount,
        code,
        amount_base,
    )
    return await execute_transfer(db, payout, client=client)


async def _fail(db: AsyncSession, payout: Payout, reason: str) -> Payout:
    payout.status = PayoutStatus.FAILED
    payout.failure_reason = reason
    payout.processed_at = payout.processed_at or utc_now()
    await db.commit()
    logger.warning("Payout %s failed: %s", payout.id, reason)
    return payout


async def execute_transfer(
    db: AsyncSession, payout: Payout, *, client: Optional[StripeClient]
) -> Payout:
    """
    Send a pending payout to the retailer's connected account.

    Success marks it completed. Any failure marks it failed and it is not
    retried automatically: a timed-out transfer may still have landed.
    """
    if payout.status != PayoutStatus.PENDING:
        return payout

    if client is None:
        return await _fail(db, payout, "Online payouts are not configured")

    destination = await db.scalar(
        select(DestinationAccount).where(
            DestinationAccount.retailer_id == payout.retailer_id
        )
    )
    if destination is None:
        return await _fail(db, payout, "No connected Stripe account for retailer")

    payout.status = PayoutStatus.PROCESSING
    payout.processed_at = utc_now()
    await db.commit()

    try:
        transfer = await client.create_transfer(
            amount=pounds_to_pence(payout.amount_base),
            currency=payout.base_currency,
            destination=destination.external_account_id,
            transfer_group=payout.transfer_group,
            metadata={
                "payout_id": str(payout.id),
                "retailer_id": str(payout.retailer_id),
            },
            idempotency_key=f"payout-transfer-{payout.id}",
        )
    except ExternalServiceError as exc:
        return await _fail(db, payout, exc.message)

    payout.status = PayoutStatus.COMPLETED
    payout.transfer_ref = transfer.id
    payout.completed_at = utc_now()
    await db.commit()

    logger.info(
        "Payout %s completed via transfer %s (%s %s)",
        payout.id,
        transfer.id,
        payout.amount_base,
        payout.base_currency,
    )
    return payout


# ---------------------------------------------------------------------------
# Payout settings and history
# ---------------------------------------------------------------------------

# Keys whose tail identifies an account without exposing it.
_IDENTIFYING_KEYS = ("account_number", "iban", "email", "account_id")


def mask_account_details(details: Optional[dict]) -> Optional[dict]:
    """Only ever expose the last four characters of an account."""
    if not details:
        return None
    last4 = details.get("last4")
    if not last4:
        for key in _IDENTIFYING_KEYS:
            value = str(details.get(key) or "")
            if len(value) >= 4:
                last4 = value[-4:]
                break
    return {"last4": last4 or "****"}


async def get_payout_account(
    db: AsyncSession, retailer_id: uuid.UUID
) -> Optional[PayoutAccount]:
    result = await db.execute(
        select(PayoutAccount).where(PayoutAccount.retailer_id == retailer_id)
    )
    return result.scalar_one_or_none()


async def save_payout_settings(
    db: AsyncSession,
    *,
    retailer_id: uuid.UUID,
    payout_method: PayoutMethod,
    account_details: dict,
) -> PayoutAccount:
    if not account_details:
        raise ValidationError("Account details are required")

    account = await get_payout_account(db, retailer_id)
    if account is None:
        account = PayoutAccount(retailer_id=retailer_id)
        db.add(account)
    account.payout_method = payout_method
    account.account_details = dict(account_details)
    # New details have not been verified yet.
    account.is_verified = False
    await db.commit()
    await db.refresh(account)

    logger.info(
        "Saved payout settings for retailer %s (method=%s)",
        retailer_id,
        payout_method.value,
    )
    return account


async def list_payouts(
    db: AsyncSession, retailer_id: uuid.UUID, limit: int = 50
) -> list[Payout]:
    result = await db.execute(
        select(Payout)
        .where(Payout.retailer_id == retailer_id)
        .order_by(Payout.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
