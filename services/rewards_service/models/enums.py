"""Enum definitions for rewards service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PointsTransactionType(str, enum.Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"
