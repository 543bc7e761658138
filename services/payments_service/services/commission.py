"""Versioned platform commission rate.

The rate is append-only: publishing a new rate inserts a new version with
an ``effective_from`` timestamp. Callers read the version effective at the
moment that matters (checkout time or payment time) and stamp both the
rate and its version onto the record they derive from it.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.datetime_utils import utc_now
from libs.common.errors import ValidationError
from libs.common.logging import get_logger
from services.payments_service.models import CommissionRate
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Version number stamped when no rate has ever been published.
DEFAULT_RATE_VERSION = 0


@dataclass(frozen=True)
class RateSnapshot:
    version: int
    rate: Decimal
    effective_from: Optional[datetime]


async def rate_effective_at(db: AsyncSession, at: datetime) -> RateSnapshot:
    """Return the commission rate version in force at ``at``."""
    result = await db.execute(
        select(CommissionRate)
        .where(CommissionRate.effective_from <= at)
        .order_by(CommissionRate.effective_from.desc(), CommissionRate.version.desc())
        .limit(1)
    )
    row = result.scalar_one_or_none()
    if row is None:
        return RateSnapshot(
            version=DEFAULT_RATE_VERSION,
            rate=get_settings().PLATFORM_COMMISSION_RATE,
            effective_from=None,
        )
    return RateSnapshot(
        version=row.version, rate=Decimal(row.rate), effective_from=row.effective_from
    )


async def current_rate(db: AsyncSession) -> RateSnapshot:
    return await rate_effective_at(db, utc_now())


async def publish_rate(
    db: AsyncSession,
    *,
    rate: Decimal,
    created_by: Optional[str] = None,
    effective_from: Optional[datetime] = None,
) -> CommissionRate:
    """Append a new commission rate version. Existing versions never change."""
    rate = Decimal(rate)
    if rate < 0 or rate > 1:
        raise ValidationError("Commission rate must be between 0 and 1")

    latest = await db.scalar(select(func.max(CommissionRate.version)))
    row = CommissionRate(
        version=(latest or DEFAULT_RATE_VERSION) + 1,
        rate=rate,
        effective_from=effective_from or utc_now(),
        created_by=created_by,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)

    logger.info(
        "Published commission rate v%d = %s",
        row.version,
        row.rate,
        extra={"extra_fields": {"created_by": created_by}},
    )
    return row


def split_commission(total: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    """Return ``(commission, retailer_net)`` for a gross ``total``."""
    commission = to_money(Decimal(total) * Decimal(rate))
    return commission, to_money(Decimal(total) - commission)
