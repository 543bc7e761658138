"""Payments Service schemas package."""

from services.payments_service.schemas.main import (
    CommissionRateResponse,
    CommissionRateUpdate,
    CommissionRateVersionResponse,
    ConnectLinkResponse,
    ConnectStatusResponse,
    WebhookAck,
)
from services.payments_service.schemas.payout import (
    EarningsResponse,
    PayoutRequest,
    PayoutResponse,
    PayoutSettingsResponse,
    PayoutSettingsUpdate,
)

__all__ = [
    "CommissionRateResponse",
    "CommissionRateUpdate",
    "CommissionRateVersionResponse",
    "ConnectLinkResponse",
    "ConnectStatusResponse",
    "EarningsResponse",
    "PayoutRequest",
    "PayoutResponse",
    "PayoutSettingsResponse",
    "PayoutSettingsUpdate",
    "WebhookAck",
]
