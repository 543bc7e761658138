"""Admin settings: the versioned platform commission rate."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.payments_service.models import CommissionRate
from services.payments_service.schemas import (
    CommissionRateResponse,
    CommissionRateUpdate,
    CommissionRateVersionResponse,
)
from services.payments_service.services.commission import current_rate, publish_rate
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments/admin/settings", tags=["payments-admin"])


@router.get("/commission", response_model=CommissionRateResponse)
async def get_commission_rate(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Rate in force right now (the configured default when none was published)."""
    snapshot = await current_rate(db)
    return CommissionRateResponse(
        commission_rate=snapshot.rate,
        version=snapshot.version,
        effective_from=snapshot.effective_from,
    )


@router.put("/commission", response_model=CommissionRateVersionResponse)
async def update_commission_rate(
    payload: CommissionRateUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Publish a new rate version. Orders already stamped keep their rate."""
    return await publish_rate(
        db,
        rate=payload.commission_rate,
        created_by=current_user.user_id,
        effective_from=payload.effective_from,
    )


@router.get(
    "/commission/history", response_model=list[CommissionRateVersionResponse]
)
async def list_commission_rates(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(
        select(CommissionRate).order_by(CommissionRate.version.desc())
    )
    return result.scalars().all()
