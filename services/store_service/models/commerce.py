"""Store commerce models: cart lines, order groups and order lines."""

import random
import string
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import OrderStatus, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# CART MODELS
# ============================================================================


class CartLine(Base):
    """One product in a customer's cart. Destroyed when ordered or removed."""

    __tablename__ = "store_cart_lines"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_auth_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint("user_auth_id", "product_id", name="unique_cart_product"),
        CheckConstraint("quantity > 0", name="positive_cart_quantity"),
    )

    product = relationship("Product")

    def __repr__(self):
        return f"<CartLine product={self.product_id} qty={self.quantity}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class OrderGroup(Base):
    """One retailer's slice of a checkout and its own settlement unit.

    ``subtotal - discount_amount - points_used == total`` always holds.
    Commission fields are stamped once, together with the rate version
    that produced them.
    """

    __tablename__ = "store_order_groups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )
    checkout_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    # Customer
    user_auth_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    retailer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_retailers.id"), index=True, nullable=False
    )

    # Pricing (GBP)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0"
    )
    points_used: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0"
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    points_earned: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0"
    )
    discount_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        default=OrderStatus.PENDING,
        server_default="pending",
    )

    # Commission (stamped with the rate version that produced it)
    commission: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    commission_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 4), nullable=True
    )
    commission_rate_version: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    retailer_net: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    # Hosted checkout + settlement
    external_session_ref: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )
    checkout_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_payment_ref: Mapped[Optional[str]] = mapped_column(
        String(255), index=True, nullable=True
    )
    settled_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Pickup
    pickup_location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pickup_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ready_for_pickup_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    picked_up_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("total >= 0", name="non_negative_total"),
        CheckConstraint("discount_amount >= 0", name="non_negative_discount"),
        CheckConstraint("points_used >= 0", name="non_negative_points_used"),
    )

    # Relationships
    lines = relationship(
        "OrderLine",
        back_populates="order_group",
        cascade="all, delete-orphan",
        order_by="OrderLine.created_at",
    )
    retailer = relationship("Retailer")

    @staticmethod
    def generate_order_number() -> str:
        """Generate a unique order number like HS-20260104-A1B2C."""
        date_part = utc_now().strftime("%Y%m%d")
        random_part = "".join(
            random.choices(string.ascii_uppercase + string.digits, k=5)
        )
        return f"HS-{date_part}-{random_part}"

    def __repr__(self):
        return f"<OrderGroup {self.order_number} status={self.status}>"


class OrderLine(Base):
    """Order line (price snapshot taken when the cart was materialized)."""

    __tablename__ = "store_order_lines"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_order_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id"), nullable=False
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (CheckConstraint("quantity > 0", name="positive_line_quantity"),)

    order_group = relationship("OrderGroup", back_populates="lines")

    def __repr__(self):
        return f"<OrderLine {self.product_name} qty={self.quantity}>"
