"""Payments models: destinations, commission rates, payouts, webhook log."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.payments_service.models.enums import (
    PayoutMethod,
    PayoutStatus,
    enum_values,
)
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

# Shared by payout settings and payout rows so the DB type is declared once.
payout_method_enum = SAEnum(
    PayoutMethod,
    name="payments_payout_method_enum",
    values_callable=enum_values,
)

# ============================================================================
# DESTINATION ACCOUNTS
# ============================================================================


class DestinationAccount(Base):
    """A retailer's connected Stripe account and its eligibility flags.

    Updated by the OAuth callback and by ``account.updated`` events only.
    """

    __tablename__ = "payments_destination_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    retailer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, index=True, nullable=False
    )
    external_account_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    charges_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    details_submitted: Mapped[bool] = mapped_column(Boolean, default=False)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<DestinationAccount {self.external_account_id}>"


# ============================================================================
# COMMISSION
# ============================================================================


class CommissionRate(Base):
    """Append-only, versioned platform commission rate."""

    __tablename__ = "payments_commission_rates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    version: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    effective_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    __table_args__ = (
        CheckConstraint("rate >= 0 AND rate <= 1", name="rate_in_unit_interval"),
    )

    def __repr__(self):
        return f"<CommissionRate v{self.version} {self.rate}>"


# ============================================================================
# PAYOUTS
# ============================================================================


class PayoutAccount(Base):
    """Retailer payout settings.

    Also the per-retailer row locked while a payout request is evaluated.
    """

    __tablename__ = "payments_payout_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    retailer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, index=True, nullable=False
    )
    payout_method: Mapped[PayoutMethod] = mapped_column(
        payout_method_enum, nullable=False
    )
    account_details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<PayoutAccount retailer={self.retailer_id} {self.payout_method}>"


class Payout(Base):
    """Retailer payout request and its transfer outcome."""

    __tablename__ = "payments_payouts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    retailer_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    # Requested
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # Normalized to the base currency at request time
    amount_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[PayoutStatus] = mapped_column(
        SAEnum(
            PayoutStatus,
            name="payments_payout_status_enum",
            values_callable=enum_values,
        ),
        default=PayoutStatus.PENDING,
        index=True,
    )
    payout_method: Mapped[PayoutMethod] = mapped_column(
        payout_method_enum, nullable=False
    )

    transfer_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_payout_amount"),
        CheckConstraint("amount_base > 0", name="positive_payout_amount_base"),
    )

    @property
    def transfer_group(self) -> str:
        return f"payout-{self.id}"

    def __repr__(self):
        return f"<Payout {self.id} {self.amount} {self.currency} {self.status}>"


# ============================================================================
# WEBHOOK EVENTS
# ============================================================================


class WebhookEvent(Base):
    """Processed processor events, for redelivery dedup and audit."""

    __tablename__ = "payments_webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    def __repr__(self):
        return f"<WebhookEvent {self.event_type} {self.event_id}>"
