"""Store inventory model: on-hand stock per product."""

import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# INVENTORY MODELS
# ============================================================================


class StockUnit(Base):
    """Stock level per product.

    Only ever decremented by the order ledger writer, in the same
    transaction that creates the order lines.
    """

    __tablename__ = "store_stock_units"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (CheckConstraint("quantity >= 0", name="non_negative_stock"),)

    product = relationship("Product", back_populates="stock_unit")

    def __repr__(self):
        return f"<StockUnit product={self.product_id} qty={self.quantity}>"
