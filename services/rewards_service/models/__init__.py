"""Rewards Service models package."""

from services.rewards_service.models.core import (
    DiscountCode,
    OrderDiscountCode,
    PointsBalance,
    PointsTransaction,
)
from services.rewards_service.models.enums import DiscountType, PointsTransactionType

__all__ = [
    "DiscountCode",
    "DiscountType",
    "OrderDiscountCode",
    "PointsBalance",
    "PointsTransaction",
    "PointsTransactionType",
]
