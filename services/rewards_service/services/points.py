"""Points ledger: balances, cashback accrual and redemption.

Balances only move through conditional updates paired with an
append-only ``PointsTransaction`` row keyed by an idempotency key.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO, to_money
from libs.common.errors import ValidationError
from libs.common.logging import get_logger
from services.rewards_service.models import (
    PointsBalance,
    PointsTransaction,
    PointsTransactionType,
)
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_points_balance(
    db: AsyncSession, user_auth_id: str
) -> Optional[PointsBalance]:
    result = await db.execute(
        select(PointsBalance)
        .where(PointsBalance.user_auth_id == user_auth_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def quote_points(
    db: AsyncSession, user_auth_id: str, requested: Optional[Decimal]
) -> Decimal:
    """Points that can be redeemed now: ``requested`` capped at the balance."""
    if requested is None:
        return ZERO
    requested = to_money(requested)
    if requested < 0:
        raise ValidationError("Points to redeem cannot be negative")
    if requested == 0:
        return ZERO
    balance = await get_points_balance(db, user_auth_id)
    available = to_money(balance.balance) if balance else ZERO
    return min(requested, available)


async def _already_recorded(db: AsyncSession, idempotency_key: str) -> bool:
    existing = await db.scalar(
        select(PointsTransaction.id).where(
            PointsTransaction.idempotency_key == idempotency_key
        )
    )
    return existing is not None


async def debit_points(
    db: AsyncSession,
    *,
    user_auth_id: str,
    amount: Decimal,
    idempotency_key: str,
    order_group_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
) -> bool:
    """
    Redeem points. Returns False, changing nothing, when the balance no
    longer covers ``amount``. Does not commit.
    """
    amount = to_money(amount)
    if amount <= 0:
        return False
    if await _already_recorded(db, idempotency_key):
        return True

    result = await db.execute(
        update(PointsBalance)
        .where(
            PointsBalance.user_auth_id == user_auth_id,
            PointsBalance.balance >= amount,
        )
        .values(
            balance=PointsBalance.balance - amount,
            total_redeemed=PointsBalance.total_redeemed + amount,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "Points debit of %s for %s refused: balance too low", amount, user_auth_id
        )
        return False

    db.add(
        PointsTransaction(
            idempotency_key=idempotency_key,
            user_auth_id=user_auth_id,
            order_group_id=order_group_id,
            transaction_type=PointsTransactionType.REDEEMED,
            amount=amount,
            description=description,
        )
    )
    await db.flush()
    return True


async def credit_points(
    db: AsyncSession,
    *,
    user_auth_id: str,
    amount: Decimal,
    idempotency_key: str,
    order_group_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
) -> bool:
    """Accrue points. Idempotent per key; returns False for a replay. Does not commit."""
    amount = to_money(amount)
    if amount <= 0:
        return False
    if await _already_recorded(db, idempotency_key):
        return False

    if await get_points_balance(db, user_auth_id) is None:
        db.add(PointsBalance(user_auth_id=user_auth_id))
        await db.flush()

    await db.execute(
        update(PointsBalance)
        .where(PointsBalance.user_auth_id == user_auth_id)
        .values(
            balance=PointsBalance.balance + amount,
            total_earned=PointsBalance.total_earned + amount,
        )
        .execution_options(synchronize_session=False)
    )
    db.add(
        PointsTransaction(
            idempotency_key=idempotency_key,
            user_auth_id=user_auth_id,
            order_group_id=order_group_id,
            transaction_type=PointsTransactionType.EARNED,
            amount=amount,
            description=description,
        )
    )
    await db.flush()
    return True


async def list_points_transactions(
    db: AsyncSession, user_auth_id: str, limit: int = 50
) -> list[PointsTransaction]:
    result = await db.execute(
        select(PointsTransaction)
        .where(PointsTransaction.user_auth_id == user_auth_id)
        .order_by(PointsTransaction.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
