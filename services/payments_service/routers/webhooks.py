"""Stripe webhook ingress."""

from fastapi import APIRouter, Depends, Request
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.schemas import WebhookAck
from services.payments_service.services.settlement import handle_event
from services.payments_service.stripe_client import verify_webhook
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Stripe webhook endpoint (no auth; verified by the Stripe-Signature header).
    Rejected signatures never reach the settlement state machine.
    """
    settings = get_settings()
    raw = await request.body()
    event = verify_webhook(
        raw,
        request.headers.get("stripe-signature"),
        settings.STRIPE_WEBHOOK_SECRET,
        settings.WEBHOOK_TOLERANCE_SECONDS,
    )
    outcome = await handle_event(db, event)
    return WebhookAck(received=True, outcome=outcome)
