"""Points balance for the signed-in user."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.rewards_service.schemas import (
    PointsBalanceResponse,
    PointsTransactionResponse,
)
from services.rewards_service.services.points import (
    get_points_balance,
    list_points_transactions,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("/points", response_model=PointsBalanceResponse)
async def get_my_points(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the current user's points balance and recent ledger entries."""
    balance = await get_points_balance(db, current_user.user_id)
    transactions = await list_points_transactions(db, current_user.user_id)

    response = PointsBalanceResponse(
        recent_transactions=[
            PointsTransactionResponse.model_validate(t) for t in transactions
        ]
    )
    if balance:
        response.balance = balance.balance
        response.total_earned = balance.total_earned
        response.total_redeemed = balance.total_redeemed
    return response
