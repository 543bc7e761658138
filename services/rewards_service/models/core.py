"""Rewards models: discount codes and the points ledger."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.rewards_service.models.enums import (
    DiscountType,
    PointsTransactionType,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
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
# DISCOUNT CODES
# ============================================================================


class DiscountCode(Base):
    """Discount codes redeemable at checkout."""

    __tablename__ = "rewards_discount_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(
        String(50), unique=True, index=True, nullable=False
    )  # Stored upper-case
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(
        SAEnum(
            DiscountType,
            name="rewards_discount_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )  # % or fixed amount
    min_purchase_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0"
    )
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    # Usage limits
    usage_limit: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )  # None = unlimited
    used_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    # Validity period
    valid_from: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("discount_value > 0", name="positive_discount_value"),
        CheckConstraint(
            "usage_limit IS NULL OR used_count <= usage_limit",
            name="used_within_limit",
        ),
    )

    def __repr__(self):
        return f"<DiscountCode {self.code}>"


class OrderDiscountCode(Base):
    """Records which code was applied to which order group, and for how much."""

    __tablename__ = "rewards_order_discount_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_order_groups.id", ondelete="CASCADE"),
        nullable=False,
    )
    discount_code_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rewards_discount_codes.id"), nullable=False
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "order_group_id", "discount_code_id", name="unique_order_discount_code"
        ),
    )

    discount_code = relationship("DiscountCode")


# ============================================================================
# POINTS
# ============================================================================


class PointsBalance(Base):
    """Per-user points balance. One point is worth £1 at checkout."""

    __tablename__ = "rewards_points_balances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_auth_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0", nullable=False
    )
    total_earned: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0", nullable=False
    )
    total_redeemed: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), server_default="0", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("balance >= 0", name="non_negative_points"),)

    def __repr__(self):
        return f"<PointsBalance {self.user_auth_id} balance={self.balance}>"


class PointsTransaction(Base):
    """Append-only points ledger."""

    __tablename__ = "rewards_points_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    idempotency_key: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    user_auth_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    order_group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("store_order_groups.id", ondelete="SET NULL"),
        nullable=True,
    )
    transaction_type: Mapped[PointsTransactionType] = mapped_column(
        SAEnum(
            PointsTransactionType,
            name="rewards_points_transaction_type_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (CheckConstraint("amount > 0", name="positive_points_amount"),)

    def __repr__(self):
        return f"<PointsTransaction {self.transaction_type} {self.amount}>"
