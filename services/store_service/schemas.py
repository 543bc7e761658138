"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.store_service.models import OrderStatus

# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    retailer_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class CartResponse(BaseModel):
    items: list[CartItemResponse] = []
    item_count: int = 0
    subtotal: Decimal = Decimal("0.00")


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutRequest(BaseModel):
    discount_code: Optional[str] = Field(None, max_length=50)
    points_to_redeem: Optional[Decimal] = Field(None, ge=0)
    pickup_instructions: Optional[str] = None


class CheckoutWarningResponse(BaseModel):
    order_group_id: Optional[str] = None
    code: str
    message: str


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderLineResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderGroupResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    checkout_id: uuid.UUID
    retailer_id: uuid.UUID
    status: OrderStatus

    subtotal: Decimal
    discount_amount: Decimal
    points_used: Decimal
    total: Decimal
    points_earned: Decimal
    discount_code: Optional[str] = None

    commission: Optional[Decimal] = None
    retailer_net: Optional[Decimal] = None
    checkout_url: Optional[str] = None
    settled_at: Optional[datetime] = None

    pickup_location: Optional[str] = None
    pickup_instructions: Optional[str] = None
    ready_for_pickup_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None

    lines: list[OrderLineResponse] = []

    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CheckoutResponse(BaseModel):
    checkout_id: uuid.UUID
    orders: list[OrderGroupResponse]
    checkout_urls: dict[str, str] = {}
    warnings: list[CheckoutWarningResponse] = []


class OrderListResponse(BaseModel):
    items: list[OrderGroupResponse]
    total: int
    page: int
    page_size: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
