"""Payments Service models package."""

from services.payments_service.models.core import (
    CommissionRate,
    DestinationAccount,
    Payout,
    PayoutAccount,
    WebhookEvent,
)
from services.payments_service.models.enums import (
    IN_FLIGHT_PAYOUT_STATUSES,
    PayoutMethod,
    PayoutStatus,
)

__all__ = [
    "CommissionRate",
    "DestinationAccount",
    "IN_FLIGHT_PAYOUT_STATUSES",
    "Payout",
    "PayoutAccount",
    "PayoutMethod",
    "PayoutStatus",
    "WebhookEvent",
]
