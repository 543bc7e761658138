"""Cart materializer: turns a user's cart into per-retailer groups.

Reads every cart line with its product's current price and stock,
row-locking the stock units for the rest of the checkout transaction.
Prices are frozen into immutable snapshots at this point, so a concurrent
price edit cannot change an in-flight checkout.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO, to_money
from libs.common.errors import OutOfStock, Shortage, ValidationError
from services.store_service.models import CartLine, Product, Retailer, StockUnit
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class LineSnapshot:
    cart_line_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class RetailerGroup:
    retailer_id: uuid.UUID
    pickup_location: Optional[str]
    lines: tuple[LineSnapshot, ...]

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)


async def _lock_stock(
    db: AsyncSession, product_ids: list[uuid.UUID]
) -> dict[uuid.UUID, int]:
    # Lock in a stable order so concurrent checkouts cannot deadlock.
    result = await db.execute(
        select(StockUnit)
        .where(StockUnit.product_id.in_(product_ids))
        .order_by(StockUnit.product_id)
        .with_for_update()
    )
    return {unit.product_id: unit.quantity for unit in result.scalars()}


async def materialize_cart(db: AsyncSession, user_auth_id: str) -> list[RetailerGroup]:
    """
    Snapshot the user's cart, grouped by retailer. Groups come out in the
    order their first line was added to the cart.

    Raises ``ValidationError`` for an empty cart and ``OutOfStock`` listing
    every short line when any line asks for more than is on hand. Inactive
    products and products without a stock row count as zero available.
    """
    result = await db.execute(
        select(CartLine, Product, Retailer)
        .join(Product, CartLine.product_id == Product.id)
        .join(Retailer, Product.retailer_id == Retailer.id)
        .where(CartLine.user_auth_id == user_auth_id)
        .order_by(CartLine.created_at, CartLine.id)
    )
    rows = result.all()
    if not rows:
        raise ValidationError("Cart is empty")

    stock = await _lock_stock(db, [product.id for _, product, _ in rows])

    shortages: list[Shortage] = []
    grouped: dict[uuid.UUID, list[LineSnapshot]] = {}
    retailers: dict[uuid.UUID, Retailer] = {}

    for cart_line, product, retailer in rows:
        available = stock.get(product.id, 0) if product.is_active else 0
        if cart_line.quantity > available:
            shortages.append(
                Shortage(
                    product_id=str(product.id),
                    product_name=product.name,
                    available=available,
                    requested=cart_line.quantity,
                )
            )
            continue

        retailers[retailer.id] = retailer
        grouped.setdefault(retailer.id, []).append(
            LineSnapshot(
                cart_line_id=cart_line.id,
                product_id=product.id,
                product_name=product.name,
                quantity=cart_line.quantity,
                unit_price=to_money(product.price),
            )
        )

    if shortages:
        raise OutOfStock(shortages)

    return [
        RetailerGroup(
            retailer_id=retailer_id,
            pickup_location=retailers[retailer_id].pickup_location,
            lines=tuple(lines),
        )
        for retailer_id, lines in grouped.items()
    ]
