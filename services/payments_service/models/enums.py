"""Enum definitions for payments service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Requested or sent but not yet resolved; counts against the balance.
IN_FLIGHT_PAYOUT_STATUSES = (PayoutStatus.PENDING, PayoutStatus.PROCESSING)


class PayoutMethod(str, enum.Enum):
    BANK = "bank"
    PAYPAL = "paypal"
    STRIPE = "stripe"
