"""Unit tests for the payments reconciliation sweeps."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from services.payments_service.models import Payout, PayoutStatus
from services.payments_service.stripe_client import CheckoutSession, Transfer
from services.payments_service.tasks import (
    reconcile_stuck_payouts,
    reconcile_unsettled_sessions,
    retry_missing_checkout_sessions,
)
from services.store_service.models import OrderGroup, OrderStatus
from sqlalchemy import select
from tests.factories import (
    DestinationAccountFactory,
    OrderGroupFactory,
    PayoutFactory,
    RetailerFactory,
)

PAID_AT = datetime(2026, 2, 1, 9, 30, tzinfo=timezone.utc)


def _minutes_ago(minutes):
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)


async def _retailer(db, *, connected=True):
    retailer = RetailerFactory.create()
    db.add(retailer)
    await db.commit()
    if connected:
        db.add(DestinationAccountFactory.create(retailer_id=retailer.id))
        await db.commit()
    return retailer


async def _reload_order(db, order_id):
    result = await db.execute(
        select(OrderGroup)
        .where(OrderGroup.id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _open_session(fake_stripe, session_id, order):
    fake_stripe.sessions[session_id] = CheckoutSession(
        id=session_id,
        url=f"https://checkout.stripe.test/{session_id}",
        status="open",
        payment_status="unpaid",
        payment_intent=None,
        amount_total=10000,
        metadata={"order_group_id": str(order.id)},
    )


# ---------------------------------------------------------------------------
# Unsettled sessions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paid_session_with_lost_webhook_is_settled(db_session, fake_stripe):
    retailer = await _retailer(db_session)
    order = OrderGroupFactory.create(
        retailer_id=retailer.id,
        external_session_ref="cs_lost",
        created_at=_minutes_ago(60),
    )
    db_session.add(order)
    await db_session.commit()
    _open_session(fake_stripe, "cs_lost", order)
    fake_stripe.mark_paid("cs_lost", "pi_lost", created=int(PAID_AT.timestamp()))

    settled = await reconcile_unsettled_sessions(db_session, fake_stripe)

    refreshed = await _reload_order(db_session, order.id)
    assert settled == 1
    assert refreshed.status == OrderStatus.PROCESSING
    assert refreshed.external_payment_ref == "pi_lost"
    assert refreshed.retailer_net == Decimal("90.00")
    assert refreshed.settled_at.replace(tzinfo=timezone.utc) == PAID_AT


@pytest.mark.asyncio
@pytest.mark.unit
async def test_recent_and_unpaid_sessions_left_alone(db_session, fake_stripe):
    retailer = await _retailer(db_session)
    recent = OrderGroupFactory.create(
        retailer_id=retailer.id, external_session_ref="cs_recent"
    )
    unpaid = OrderGroupFactory.create(
        retailer_id=retailer.id,
        external_session_ref="cs_unpaid",
        created_at=_minutes_ago(60),
    )
    db_session.add_all([recent, unpaid])
    await db_session.commit()
    _open_session(fake_stripe, "cs_recent", recent)
    _open_session(fake_stripe, "cs_unpaid", unpaid)
    fake_stripe.mark_paid("cs_recent", "pi_recent", created=int(PAID_AT.timestamp()))

    settled = await reconcile_unsettled_sessions(db_session, fake_stripe)

    assert settled == 0
    lookups = fake_stripe.calls_to("retrieve_checkout_session")
    assert [call["session_id"] for call in lookups] == ["cs_unpaid"]
    assert (await _reload_order(db_session, unpaid.id)).status == OrderStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stripe_outage_skips_without_raising(db_session, fake_stripe):
    retailer = await _retailer(db_session)
    db_session.add(
        OrderGroupFactory.create(
            retailer_id=retailer.id,
            external_session_ref="cs_down",
            created_at=_minutes_ago(60),
        )
    )
    await db_session.commit()
    fake_stripe.fail = "service unavailable"

    assert await reconcile_unsettled_sessions(db_session, fake_stripe) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sweeps_idle_without_client(db_session):
    assert await reconcile_unsettled_sessions(db_session, None) == 0
    assert await retry_missing_checkout_sessions(db_session, None) == 0
    assert await reconcile_stuck_payouts(db_session, None) == 0


# ---------------------------------------------------------------------------
# Missing sessions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_session_opened_once_retailer_can_charge(db_session, fake_stripe):
    connected = await _retailer(db_session)
    unconnected = await _retailer(db_session, connected=False)
    ready = OrderGroupFactory.create(retailer_id=connected.id)
    waiting = OrderGroupFactory.create(retailer_id=unconnected.id)
    db_session.add_all([ready, waiting])
    await db_session.commit()

    opened = await retry_missing_checkout_sessions(db_session, fake_stripe)

    assert opened == 1
    assert (await _reload_order(db_session, ready.id)).external_session_ref == "cs_test_1"
    assert (await _reload_order(db_session, waiting.id)).external_session_ref is None


# ---------------------------------------------------------------------------
# Stuck payouts
# ---------------------------------------------------------------------------


async def _stuck_payout(db, retailer):
    payout = PayoutFactory.create(
        retailer_id=retailer.id,
        status=PayoutStatus.PROCESSING,
        updated_at=_minutes_ago(60),
    )
    db.add(payout)
    await db.commit()
    return payout


async def _reload_payout(db, payout_id):
    result = await db.execute(
        select(Payout)
        .where(Payout.id == payout_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stuck_payout_with_landed_transfer_completes(db_session, fake_stripe):
    retailer = await _retailer(db_session)
    payout = await _stuck_payout(db_session, retailer)
    fake_stripe.transfers.append(
        Transfer(
            id="tr_landed",
            amount=1000,
            currency="GBP",
            destination="acct_r1",
            transfer_group=payout.transfer_group,
        )
    )

    resolved = await reconcile_stuck_payouts(db_session, fake_stripe)

    refreshed = await _reload_payout(db_session, payout.id)
    assert resolved == 1
    assert refreshed.status == PayoutStatus.COMPLETED
    assert refreshed.transfer_ref == "tr_landed"
    assert fake_stripe.calls_to("create_transfer") == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_stuck_payout_without_transfer_fails(db_session, fake_stripe):
    retailer = await _retailer(db_session)
    payout = await _stuck_payout(db_session, retailer)

    await reconcile_stuck_payouts(db_session, fake_stripe)

    refreshed = await _reload_payout(db_session, payout.id)
    assert refreshed.status == PayoutStatus.FAILED
    assert refreshed.failure_reason == "No transfer found for payout"
    assert fake_stripe.calls_to("create_transfer") == []
