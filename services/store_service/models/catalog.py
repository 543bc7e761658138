"""Store catalog models: retailers and the products they sell.

Product editing lives elsewhere; checkout only reads name, price,
retailer and active flag from these tables.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Retailer(Base):
    """A shop selling through the marketplace."""

    __tablename__ = "store_retailers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_auth_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_address: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True
    )
    postcode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    products = relationship("Product", back_populates="retailer")

    @property
    def pickup_location(self) -> Optional[str]:
        parts = [p for p in (self.business_address, self.city, self.postcode) if p]
        return ", ".join(parts) or None

    def __repr__(self):
        return f"<Retailer {self.business_name}>"


class Product(Base):
    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    retailer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_retailers.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("price >= 0", name="non_negative_price"),)

    retailer = relationship("Retailer", back_populates="products")
    stock_unit = relationship("StockUnit", back_populates="product", uselist=False)

    def __repr__(self):
        return f"<Product {self.name} price={self.price}>"
