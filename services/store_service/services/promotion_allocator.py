"""Promotion allocator: turns a discount code and a points redemption into
per-retailer-group deductions.

With several retailer groups the discount and the points are split evenly
by group count, not by subtotal. Each group's deduction is clamped to what
the group can absorb (discount first, then points), so
``subtotal - discount - points == total >= 0`` holds exactly per group.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO, split_evenly, to_money
from libs.common.errors import PromotionInvalid
from libs.common.logging import get_logger
from services.rewards_service.services.discounts import DiscountQuote, quote_discount
from services.rewards_service.services.points import quote_points
from services.store_service.services.cart_materializer import RetailerGroup
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class GroupAllocation:
    group: RetailerGroup
    discount_amount: Decimal
    points_used: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.group.subtotal

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount_amount - self.points_used


@dataclass
class PromotionQuote:
    discount: Optional[DiscountQuote]
    points: Decimal
    warnings: list[str]

    @property
    def discount_amount(self) -> Decimal:
        return self.discount.amount if self.discount else ZERO


async def quote_promotions(
    db: AsyncSession,
    *,
    user_auth_id: str,
    groups: list[RetailerGroup],
    discount_code: Optional[str],
    points_to_redeem: Optional[Decimal],
) -> PromotionQuote:
    """
    Validate the requested promotions against the combined subtotal.
    An unusable discount code degrades to a warning and never blocks checkout.
    """
    combined = sum((g.subtotal for g in groups), ZERO)
    warnings: list[str] = []

    discount: Optional[DiscountQuote] = None
    if discount_code and discount_code.strip():
        try:
            discount = await quote_discount(db, discount_code, combined)
        except PromotionInvalid as exc:
            logger.info("Discount %r not applied: %s", discount_code, exc.message)
            warnings.append(exc.message)

    points = await quote_points(db, user_auth_id, points_to_redeem)
    if points_to_redeem and points < to_money(points_to_redeem):
        warnings.append(f"Only {points} points were available to redeem")

    return PromotionQuote(discount=discount, points=points, warnings=warnings)


def allocate(
    groups: list[RetailerGroup], discount_amount: Decimal, points: Decimal
) -> list[GroupAllocation]:
    """Split deductions evenly by group count, clamped per group."""
    count = len(groups)
    discount_shares = split_evenly(discount_amount, count)
    points_shares = split_evenly(points, count)

    allocations: list[GroupAllocation] = []
    for group, discount_share, points_share in zip(
        groups, discount_shares, points_shares
    ):
        subtotal = group.subtotal
        group_discount = min(discount_share, subtotal)
        group_points = min(points_share, subtotal - group_discount)
        allocations.append(
            GroupAllocation(
                group=group,
                discount_amount=to_money(group_discount),
                points_used=to_money(group_points),
            )
        )
    return allocations
