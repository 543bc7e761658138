"""Discount code preview (public) and admin management."""

from decimal import Decimal

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.currency import to_money
from libs.common.errors import PromotionInvalid
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.rewards_service.schemas import (
    DiscountCodeCreate,
    DiscountCodeResponse,
    DiscountValidateRequest,
    DiscountValidateResponse,
)
from services.rewards_service.services.discounts import (
    create_discount_code,
    list_discount_codes,
    normalize_code,
    quote_discount,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/rewards", tags=["rewards"])
admin_router = APIRouter(prefix="/rewards/admin", tags=["rewards-admin"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


@router.post("/discount-codes/validate", response_model=DiscountValidateResponse)
async def validate_discount_code(
    payload: DiscountValidateRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Preview a discount code against an order total.
    Does NOT consume a use of the code.
    """
    order_total = to_money(payload.order_total)
    try:
        quote = await quote_discount(db, payload.code, order_total)
    except PromotionInvalid as exc:
        return DiscountValidateResponse(
            valid=False,
            code=normalize_code(payload.code),
            final_total=order_total,
            message=exc.message,
        )

    return DiscountValidateResponse(
        valid=True,
        code=quote.code,
        discount_type=quote.discount_type,
        discount_amount=quote.amount,
        final_total=max(order_total - quote.amount, Decimal("0.00")),
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@admin_router.post(
    "/discount-codes", response_model=DiscountCodeResponse, status_code=201
)
async def create_code(
    payload: DiscountCodeCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await create_discount_code(
        db, **payload.model_dump(), created_by=current_user.user_id
    )


@admin_router.get("/discount-codes", response_model=list[DiscountCodeResponse])
async def list_codes(
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_discount_codes(db)
