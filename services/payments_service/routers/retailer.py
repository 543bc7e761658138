"""Retailer-facing payments: payout settings, earnings, payouts, Stripe Connect."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from libs.auth.dependencies import require_retailer
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.errors import ExternalServiceError, ValidationError
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.schemas import (
    ConnectLinkResponse,
    ConnectStatusResponse,
    EarningsResponse,
    PayoutRequest,
    PayoutResponse,
    PayoutSettingsResponse,
    PayoutSettingsUpdate,
)
from services.payments_service.services.connect import (
    build_connect_state,
    complete_oauth,
    get_destination,
    refresh_destination,
)
from services.payments_service.services.payouts import (
    compute_balance,
    get_payout_account,
    list_payouts,
    mask_account_details,
    request_payout,
    save_payout_settings,
)
from services.payments_service.stripe_client import StripeClient, get_stripe_client
from services.store_service.models import Retailer
from services.store_service.services.order_status import get_retailer_for_user
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments/retailer", tags=["payments-retailer"])
logger = get_logger(__name__)


async def get_current_retailer(
    current_user: AuthUser = Depends(require_retailer),
    db: AsyncSession = Depends(get_async_db),
) -> Retailer:
    return await get_retailer_for_user(db, current_user.user_id)


# =============================================================================
# Payout settings
# =============================================================================


def _settings_to_response(account) -> PayoutSettingsResponse:
    return PayoutSettingsResponse(
        id=account.id,
        retailer_id=account.retailer_id,
        payout_method=account.payout_method,
        is_verified=account.is_verified,
        account_details=mask_account_details(account.account_details),
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


@router.get("/payout-settings", response_model=Optional[PayoutSettingsResponse])
async def get_payout_settings(
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
):
    """Current payout settings, or null when none are saved yet."""
    account = await get_payout_account(db, retailer.id)
    if account is None:
        return None
    return _settings_to_response(account)


@router.put("/payout-settings", response_model=PayoutSettingsResponse)
async def update_payout_settings(
    payload: PayoutSettingsUpdate,
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
):
    account = await save_payout_settings(
        db,
        retailer_id=retailer.id,
        payout_method=payload.payout_method,
        account_details=payload.account_details,
    )
    return _settings_to_response(account)


# =============================================================================
# Earnings and payouts
# =============================================================================


@router.get("/earnings", response_model=EarningsResponse)
async def get_earnings(
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
):
    summary = await compute_balance(db, retailer.id)
    return EarningsResponse(
        total_revenue=summary.total_revenue,
        completed_payouts=summary.completed_payouts,
        pending_payouts=summary.in_flight_payouts,
        available_balance=summary.available_balance,
        currency=summary.currency,
    )


@router.get("/payouts", response_model=list[PayoutResponse])
async def get_payout_history(
    limit: int = Query(50, ge=1, le=200),
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_payouts(db, retailer.id, limit=limit)


@router.post("/payouts/request", response_model=PayoutResponse, status_code=201)
async def create_payout_request(
    payload: PayoutRequest,
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """
    Request a payout of available earnings. The transfer runs immediately;
    the returned payout is either completed or failed with a reason.
    """
    return await request_payout(
        db,
        retailer_id=retailer.id,
        amount=payload.amount,
        currency=payload.currency,
        notes=payload.notes,
        client=client,
    )


# =============================================================================
# Stripe Connect
# =============================================================================


@router.get("/stripe/connect", response_model=ConnectLinkResponse)
async def get_connect_link(
    request: Request,
    current_user: AuthUser = Depends(require_retailer),
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """OAuth authorize URL for linking a Stripe account."""
    destination = await get_destination(db, retailer.id)
    if destination and destination.charges_enabled and destination.payouts_enabled:
        return ConnectLinkResponse(
            message="Stripe account already connected. No action required."
        )
    if client is None:
        raise ExternalServiceError("Online payments are not configured")

    state = build_connect_state(retailer.id, current_user.user_id)
    redirect_uri = str(request.url_for("stripe_oauth_callback"))
    return ConnectLinkResponse(url=client.oauth_authorize_url(state, redirect_uri))


@router.get("/stripe/oauth/callback", name="stripe_oauth_callback")
async def stripe_oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    """Stripe redirects here after the retailer authorizes the link."""
    if error:
        raise ValidationError(f"Stripe OAuth error: {error_description or error}")
    if not code or not state:
        raise ValidationError("Missing code or state")
    if client is None:
        raise ExternalServiceError("Online payments are not configured")

    destination = await complete_oauth(db, code=code, state=state, client=client)
    return RedirectResponse(
        f"{get_settings().FRONTEND_URL}/retailer/payouts"
        f"?stripe=connected&acct={destination.external_account_id}",
        status_code=302,
    )


@router.get("/stripe/status", response_model=ConnectStatusResponse)
async def get_connect_status(
    retailer: Retailer = Depends(get_current_retailer),
    db: AsyncSession = Depends(get_async_db),
    client: Optional[StripeClient] = Depends(get_stripe_client),
):
    destination = await get_destination(db, retailer.id)
    if destination is None:
        return ConnectStatusResponse(connected=False)

    destination = await refresh_destination(db, destination, client)
    return ConnectStatusResponse(
        connected=True,
        account_id=destination.external_account_id,
        charges_enabled=destination.charges_enabled,
        payouts_enabled=destination.payouts_enabled,
        details_submitted=destination.details_submitted,
        onboarding_completed=destination.onboarding_completed,
    )
