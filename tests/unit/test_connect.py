"""Unit tests for Stripe Connect onboarding helpers."""

import uuid
from datetime import timedelta

import pytest
from libs.auth.tokens import create_token
from libs.common.errors import ValidationError
from services.payments_service.services.connect import (
    build_connect_state,
    complete_oauth,
    parse_connect_state,
    refresh_destination,
)
from services.payments_service.stripe_client import ConnectedAccount
from tests.factories import DestinationAccountFactory


@pytest.mark.unit
def test_state_round_trips_retailer_id():
    retailer_id = uuid.uuid4()

    state = build_connect_state(retailer_id, "retailer-user")

    assert parse_connect_state(state) == retailer_id


@pytest.mark.unit
def test_expired_state_rejected():
    state = create_token(
        {"purpose": "stripe_connect", "retailer_id": str(uuid.uuid4())},
        timedelta(seconds=-1),
    )
    with pytest.raises(ValidationError, match="expired"):
        parse_connect_state(state)


@pytest.mark.unit
def test_state_for_another_purpose_rejected():
    bearer = create_token({"sub": "someone"}, timedelta(minutes=5))
    with pytest.raises(ValidationError):
        parse_connect_state(bearer)


@pytest.mark.unit
def test_garbage_state_rejected():
    with pytest.raises(ValidationError):
        parse_connect_state("not-a-token")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_complete_oauth_links_then_relinks(db_session, fake_stripe):
    retailer_id = uuid.uuid4()
    fake_stripe.accounts["acct_first"] = ConnectedAccount(
        id="acct_first",
        charges_enabled=False,
        payouts_enabled=False,
        details_submitted=True,
    )

    linked = await complete_oauth(
        db_session,
        code="first",
        state=build_connect_state(retailer_id, "retailer-user"),
        client=fake_stripe,
    )
    assert linked.external_account_id == "acct_first"
    assert linked.charges_enabled is False
    assert linked.onboarding_completed is False

    relinked = await complete_oauth(
        db_session,
        code="second",
        state=build_connect_state(retailer_id, "retailer-user"),
        client=fake_stripe,
    )
    assert relinked.id == linked.id
    assert relinked.external_account_id == "acct_second"
    assert relinked.onboarding_completed is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refresh_keeps_stored_flags_when_stripe_is_down(db_session, fake_stripe):
    destination = DestinationAccountFactory.create(charges_enabled=True)
    db_session.add(destination)
    await db_session.commit()
    fake_stripe.fail = "timeout"

    refreshed = await refresh_destination(db_session, destination, fake_stripe)

    assert refreshed.charges_enabled is True
