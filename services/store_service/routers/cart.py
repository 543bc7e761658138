"""Store cart router: one cart per customer, one line per product."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.currency import ZERO, to_money
from libs.db.session import get_async_db
from services.store_service.models import CartLine, Product
from services.store_service.schemas import (
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
)
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["store"])


# ============================================================================
# CART HELPERS
# ============================================================================


async def build_cart_response(db: AsyncSession, user_auth_id: str) -> CartResponse:
    result = await db.execute(
        select(CartLine)
        .where(CartLine.user_auth_id == user_auth_id)
        .options(selectinload(CartLine.product))
        .order_by(CartLine.created_at, CartLine.id)
    )
    items = []
    for line in result.scalars().all():
        items.append(
            CartItemResponse(
                id=line.id,
                product_id=line.product_id,
                product_name=line.product.name,
                retailer_id=line.product.retailer_id,
                quantity=line.quantity,
                unit_price=line.product.price,
                line_total=to_money(line.product.price * line.quantity),
            )
        )
    return CartResponse(
        items=items,
        item_count=sum(item.quantity for item in items),
        subtotal=sum((item.line_total for item in items), ZERO),
    )


async def get_active_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def get_cart_line(
    db: AsyncSession, user_auth_id: str, product_id: uuid.UUID
) -> Optional[CartLine]:
    result = await db.execute(
        select(CartLine).where(
            CartLine.user_auth_id == user_auth_id,
            CartLine.product_id == product_id,
        )
    )
    return result.scalar_one_or_none()


# ============================================================================
# CART ENDPOINTS
# ============================================================================


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current user's cart."""
    return await build_cart_response(db, current_user.user_id)


@router.post("/cart", response_model=CartResponse, status_code=201)
async def add_to_cart(
    item: CartItemCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product to the cart. Adding it again increases the quantity."""
    await get_active_product(db, item.product_id)

    line = await get_cart_line(db, current_user.user_id, item.product_id)
    if line:
        line.quantity += item.quantity
    else:
        db.add(
            CartLine(
                user_auth_id=current_user.user_id,
                product_id=item.product_id,
                quantity=item.quantity,
            )
        )
    await db.commit()

    return await build_cart_response(db, current_user.user_id)


@router.put("/cart/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: uuid.UUID,
    update: CartItemUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Set the quantity of a product already in the cart."""
    line = await get_cart_line(db, current_user.user_id, product_id)
    if not line:
        raise HTTPException(status_code=404, detail="Item not in cart")

    line.quantity = update.quantity
    await db.commit()

    return await build_cart_response(db, current_user.user_id)


@router.delete("/cart/{product_id}", response_model=CartResponse)
async def remove_cart_item(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove a product from the cart."""
    line = await get_cart_line(db, current_user.user_id, product_id)
    if not line:
        raise HTTPException(status_code=404, detail="Item not in cart")

    await db.delete(line)
    await db.commit()

    return await build_cart_response(db, current_user.user_id)


@router.delete("/cart", response_model=CartResponse)
async def clear_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await db.execute(
        delete(CartLine).where(CartLine.user_auth_id == current_user.user_id)
    )
    await db.commit()
    return CartResponse()
