"""Store orders router: checkout, order history and retailer fulfilment."""

import uuid
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import get_current_user, require_retailer
from libs.auth.models import RETAILER, AuthUser
from libs.db.session import get_async_db
from services.payments_service.stripe_client import StripeClient, get_stripe_client
from services.store_service.models import OrderGroup
from services.store_service.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    CheckoutWarningResponse,
    OrderGroupResponse,
    OrderListResponse,
    OrderStatusUpdate,
)
from services.store_service.services.checkout import checkout_cart
from services.store_service.services.order_status import (
    get_retailer_for_user,
    update_order_status,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["store"])


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("/orders", response_model=CheckoutResponse, status_code=201)
async def create_orders(
    request: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """
    Check out the whole cart: one order group per retailer, each with its
    own hosted payment page.
    """
    result = await checkout_cart(
        db,
        user=current_user,
        discount_code=request.discount_code,
        points_to_redeem=request.points_to_redeem,
        pickup_instructions=request.pickup_instructions,
        client=client,
    )
    return CheckoutResponse(
        checkout_id=result.checkout_id,
        orders=[OrderGroupResponse.model_validate(order) for order in result.orders],
        checkout_urls=result.checkout_urls,
        warnings=[CheckoutWarningResponse(**asdict(w)) for w in result.warnings],
    )


# ============================================================================
# ORDER READS
# ============================================================================


async def _order_scope(db: AsyncSession, user: AuthUser):
    """Customers see their own orders, retailers the orders placed with them."""
    if user.role == RETAILER:
        retailer = await get_retailer_for_user(db, user.user_id)
        return OrderGroup.retailer_id == retailer.id
    return OrderGroup.user_auth_id == user.user_id


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    scope = await _order_scope(db, current_user)

    total = await db.scalar(select(func.count(OrderGroup.id)).where(scope))
    result = await db.execute(
        select(OrderGroup)
        .where(scope)
        .options(selectinload(OrderGroup.lines))
        .order_by(OrderGroup.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    orders = result.scalars().all()

    return OrderListResponse(
        items=[OrderGroupResponse.model_validate(order) for order in orders],
        total=total or 0,
        page=page,
        page_size=page_size,
    )


@router.get("/orders/{order_group_id}", response_model=OrderGroupResponse)
async def get_order(
    order_group_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    scope = await _order_scope(db, current_user)
    result = await db.execute(
        select(OrderGroup)
        .where(OrderGroup.id == order_group_id, scope)
        .options(selectinload(OrderGroup.lines))
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ============================================================================
# FULFILMENT
# ============================================================================


@router.put("/orders/{order_group_id}/status", response_model=OrderGroupResponse)
async def set_order_status(
    order_group_id: uuid.UUID,
    update: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_retailer),
    db: AsyncSession = Depends(get_async_db),
):
    """Retailer moves one of its order groups forward."""
    retailer = await get_retailer_for_user(db, current_user.user_id)
    return await update_order_status(
        db,
        retailer_id=retailer.id,
        order_group_id=order_group_id,
        status=update.status,
    )
