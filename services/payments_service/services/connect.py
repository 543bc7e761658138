"""Stripe Connect onboarding: OAuth state, account linking and status refresh."""

import uuid
from datetime import timedelta
from typing import Optional

from jose import JWTError
from libs.auth.tokens import create_token, decode_token
from libs.common.errors import ExternalServiceError, ValidationError
from libs.common.logging import get_logger
from services.payments_service.models import DestinationAccount
from services.payments_service.stripe_client import ConnectedAccount, StripeClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CONNECT_STATE_PURPOSE = "stripe_connect"
CONNECT_STATE_TTL = timedelta(minutes=15)


def build_connect_state(retailer_id: uuid.UUID, user_auth_id: str) -> str:
    """Signed, short-lived OAuth ``state`` naming the retailer being linked."""
    return create_token(
        {
            "purpose": CONNECT_STATE_PURPOSE,
            "retailer_id": str(retailer_id),
            "sub": user_auth_id,
        },
        CONNECT_STATE_TTL,
    )


def parse_connect_state(state: str) -> uuid.UUID:
    try:
        claims = decode_token(state)
    except JWTError:
        raise ValidationError("Invalid or expired OAuth state")
    if claims.get("purpose") != CONNECT_STATE_PURPOSE:
        raise ValidationError("Invalid OAuth state")
    try:
        return uuid.UUID(claims.get("retailer_id") or "")
    except ValueError:
        raise ValidationError("Invalid OAuth state")


def apply_account_flags(
    destination: DestinationAccount, account: ConnectedAccount
) -> None:
    destination.charges_enabled = account.charges_enabled
    destination.payouts_enabled = account.payouts_enabled
    destination.details_submitted = account.details_submitted
    destination.onboarding_completed = (
        account.details_submitted and account.charges_enabled
    )


async def get_destination(
    db: AsyncSession, retailer_id: uuid.UUID
) -> Optional[DestinationAccount]:
    result = await db.execute(
        select(DestinationAccount).where(DestinationAccount.retailer_id == retailer_id)
    )
    return result.scalar_one_or_none()


async def link_destination_account(
    db: AsyncSession, retailer_id: uuid.UUID, account: ConnectedAccount
) -> DestinationAccount:
    """Create or repoint the retailer's destination account."""
    destination = await get_destination(db, retailer_id)
    if destination is None:
        destination = DestinationAccount(
            retailer_id=retailer_id, external_account_id=account.id
        )
        db.add(destination)
    else:
        destination.external_account_id = account.id
    apply_account_flags(destination, account)
    await db.commit()

    logger.info(
        "Linked Stripe account %s to retailer %s (charges_enabled=%s)",
        account.id,
        retailer_id,
        account.charges_enabled,
    )
    return destination


async def complete_oauth(
    db: AsyncSession, *, code: str, state: str, client: StripeClient
) -> DestinationAccount:
    retailer_id = parse_connect_state(state)
    account_id = await client.exchange_oauth_code(code)
    account = await client.retrieve_account(account_id)
    return await link_destination_account(db, retailer_id, account)


async def refresh_destination(
    db: AsyncSession,
    destination: DestinationAccount,
    client: Optional[StripeClient],
) -> DestinationAccount:
    """Pull fresh eligibility flags; keep the stored ones if Stripe is unreachable."""
    if client is None:
        return destination
    try:
        account = await client.retrieve_account(destination.external_account_id)
    except ExternalServiceError as exc:
        logger.warning(
            "Could not refresh Stripe account %s: %s",
            destination.external_account_id,
            exc.message,
        )
        return destination
    apply_account_flags(destination, account)
    await db.commit()
    return destination
