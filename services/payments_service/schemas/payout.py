"""Payout schemas for retailer earnings and payouts."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from services.payments_service.models import PayoutMethod, PayoutStatus


class PayoutSettingsUpdate(BaseModel):
    """Schema for saving payout settings."""

    payout_method: PayoutMethod
    account_details: dict[str, Any] = Field(..., min_length=1)


class PayoutSettingsResponse(BaseModel):
    """Payout settings with the account details masked."""

    id: uuid.UUID
    retailer_id: uuid.UUID
    payout_method: PayoutMethod
    is_verified: bool
    account_details: Optional[dict[str, str]] = None
    created_at: datetime
    updated_at: datetime


class EarningsResponse(BaseModel):
    """Balance summary in the base currency."""

    total_revenue: Decimal
    completed_payouts: Decimal
    pending_payouts: Decimal
    available_balance: Decimal
    currency: str


class PayoutRequest(BaseModel):
    """Schema for requesting a payout."""

    amount: Decimal = Field(..., gt=0)
    currency: str = Field(default="GBP", min_length=3, max_length=3)
    notes: Optional[str] = None


class PayoutResponse(BaseModel):
    """Response for a retailer payout."""

    id: uuid.UUID
    retailer_id: uuid.UUID

    amount: Decimal
    currency: str
    amount_base: Decimal
    base_currency: str

    status: PayoutStatus
    payout_method: PayoutMethod
    transfer_ref: Optional[str] = None
    notes: Optional[str] = None
    failure_reason: Optional[str] = None

    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
