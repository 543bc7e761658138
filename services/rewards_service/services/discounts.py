"""Discount code validation, quoting and usage accounting."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO, to_money
from libs.common.datetime_utils import ensure_aware, utc_now
from libs.common.errors import Conflict, PromotionInvalid, ValidationError
from libs.common.logging import get_logger
from services.rewards_service.models import (
    DiscountCode,
    DiscountType,
    OrderDiscountCode,
)
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountQuote:
    discount_code_id: uuid.UUID
    code: str
    discount_type: DiscountType
    amount: Decimal


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


async def get_discount_code(db: AsyncSession, code: str) -> Optional[DiscountCode]:
    result = await db.execute(
        select(DiscountCode).where(DiscountCode.code == normalize_code(code))
    )
    return result.scalar_one_or_none()


def check_discount(
    discount: Optional[DiscountCode], order_total: Decimal, now: datetime
) -> None:
    """Raise ``PromotionInvalid`` unless the code can apply to ``order_total``."""
    if discount is None or not discount.is_active:
        raise PromotionInvalid("Invalid discount code")

    valid_from = ensure_aware(discount.valid_from)
    valid_until = ensure_aware(discount.valid_until)
    if valid_from and valid_from > now:
        raise PromotionInvalid("Discount code is not yet active")
    if valid_until and valid_until < now:
        raise PromotionInvalid("Discount code has expired")

    if discount.usage_limit is not None and discount.used_count >= discount.usage_limit:
        raise PromotionInvalid("Discount code has reached its usage limit")

    minimum = discount.min_purchase_amount or ZERO
    if order_total < minimum:
        raise PromotionInvalid(
            f"Minimum purchase of £{to_money(minimum)} required",
            min_purchase_amount=str(to_money(minimum)),
        )


def compute_discount_amount(discount: DiscountCode, order_total: Decimal) -> Decimal:
    """Absolute discount for ``order_total``, never more than the total."""
    if discount.discount_type == DiscountType.PERCENTAGE:
        amount = to_money(order_total * Decimal(discount.discount_value) / 100)
        if discount.max_discount_amount is not None:
            amount = min(amount, to_money(discount.max_discount_amount))
    else:
        amount = to_money(discount.discount_value)
    return max(ZERO, min(amount, to_money(order_total)))


async def quote_discount(
    db: AsyncSession,
    code: str,
    order_total: Decimal,
    now: Optional[datetime] = None,
) -> DiscountQuote:
    """Validate ``code`` against ``order_total`` and price it. Read-only."""
    discount = await get_discount_code(db, code)
    check_discount(discount, to_money(order_total), now or utc_now())
    return DiscountQuote(
        discount_code_id=discount.id,
        code=discount.code,
        discount_type=discount.discount_type,
        amount=compute_discount_amount(discount, to_money(order_total)),
    )


async def claim_discount_use(db: AsyncSession, discount_code_id: uuid.UUID) -> bool:
    """
    Consume one use of a code. The conditional update keeps ``used_count``
    within ``usage_limit`` even when checkouts race; returns False when the
    code was exhausted or deactivated since it was quoted.
    """
    result = await db.execute(
        update(DiscountCode)
        .where(
            DiscountCode.id == discount_code_id,
            DiscountCode.is_active.is_(True),
            or_(
                DiscountCode.usage_limit.is_(None),
                DiscountCode.used_count < DiscountCode.usage_limit,
            ),
        )
        .values(used_count=DiscountCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def record_order_discount(
    db: AsyncSession,
    *,
    order_group_id: uuid.UUID,
    discount_code_id: uuid.UUID,
    amount: Decimal,
) -> OrderDiscountCode:
    link = OrderDiscountCode(
        order_group_id=order_group_id,
        discount_code_id=discount_code_id,
        discount_amount=amount,
    )
    db.add(link)
    return link


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


async def create_discount_code(
    db: AsyncSession,
    *,
    code: str,
    discount_type: DiscountType,
    discount_value: Decimal,
    description: Optional[str] = None,
    min_purchase_amount: Decimal = ZERO,
    max_discount_amount: Optional[Decimal] = None,
    usage_limit: Optional[int] = None,
    valid_from: Optional[datetime] = None,
    valid_until: Optional[datetime] = None,
    is_active: bool = True,
    created_by: Optional[str] = None,
) -> DiscountCode:
    code = normalize_code(code)
    if not code:
        raise ValidationError("Code is required")
    if discount_value <= 0:
        raise ValidationError("Discount value must be positive")
    if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
        raise ValidationError("Percentage discount cannot exceed 100")
    if valid_from and valid_until and valid_until < valid_from:
        raise ValidationError("valid_until must be after valid_from")

    if await get_discount_code(db, code):
        raise Conflict(f"Discount code {code} already exists")

    discount = DiscountCode(
        code=code,
        description=description,
        discount_type=discount_type,
        discount_value=discount_value,
        min_purchase_amount=min_purchase_amount,
        max_discount_amount=max_discount_amount,
        usage_limit=usage_limit,
        valid_from=valid_from,
        valid_until=valid_until,
        is_active=is_active,
        created_by=created_by,
    )
    db.add(discount)
    await db.commit()
    await db.refresh(discount)

    logger.info("Created discount code %s by %s", code, created_by)
    return discount


async def list_discount_codes(db: AsyncSession) -> list[DiscountCode]:
    result = await db.execute(select(DiscountCode).order_by(DiscountCode.created_at.desc()))
    return list(result.scalars().all())
