"""Pydantic schemas for rewards service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.rewards_service.models import DiscountType, PointsTransactionType

# ============================================================================
# POINTS SCHEMAS
# ============================================================================


class PointsTransactionResponse(BaseModel):
    id: uuid.UUID
    order_group_id: Optional[uuid.UUID] = None
    transaction_type: PointsTransactionType
    amount: Decimal
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PointsBalanceResponse(BaseModel):
    balance: Decimal = Decimal("0.00")
    total_earned: Decimal = Decimal("0.00")
    total_redeemed: Decimal = Decimal("0.00")
    recent_transactions: list[PointsTransactionResponse] = []


# ============================================================================
# DISCOUNT SCHEMAS
# ============================================================================


class DiscountValidateRequest(BaseModel):
    code: str = Field(..., max_length=50)
    order_total: Decimal = Field(..., ge=0)


class DiscountValidateResponse(BaseModel):
    valid: bool
    code: str
    discount_type: Optional[DiscountType] = None
    discount_amount: Decimal = Decimal("0.00")
    final_total: Decimal
    message: Optional[str] = None


class DiscountCodeBase(BaseModel):
    code: str = Field(..., max_length=50)
    description: Optional[str] = Field(None, max_length=255)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    min_purchase_amount: Decimal = Field(Decimal("0.00"), ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True


class DiscountCodeCreate(DiscountCodeBase):
    pass


class DiscountCodeResponse(DiscountCodeBase):
    id: uuid.UUID
    used_count: int
    created_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
