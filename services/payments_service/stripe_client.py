"""
Stripe API client for Connect checkout, transfers and destination accounts.

Provides async methods for:
- Creating and retrieving hosted checkout sessions (destination charges)
- Retrieving payment intents
- Creating and looking up transfers to connected accounts
- Retrieving connected accounts and completing the OAuth link
- Verifying webhook signatures
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import urlencode

import httpx
from libs.common.config import get_settings
from libs.common.errors import ExternalServiceError, SignatureInvalid, ValidationError
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CheckoutSession:
    """Hosted checkout session."""

    id: str
    url: Optional[str]
    status: Optional[str]  # open, complete, expired
    payment_status: Optional[str]  # paid, unpaid, no_payment_required
    payment_intent: Optional[str]
    amount_total: Optional[int]  # in pence
    metadata: dict


@dataclass
class PaymentIntent:
    id: str
    status: str  # succeeded, processing, requires_payment_method, ...
    amount_received: int  # in pence
    created: int  # unix seconds
    metadata: dict


@dataclass
class Transfer:
    """Result of a transfer to a connected account."""

    id: str
    amount: int  # in pence
    currency: str
    destination: str
    transfer_group: Optional[str]
    reversed: bool = False


@dataclass
class ConnectedAccount:
    id: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool


class StripeError(ExternalServiceError):
    """Stripe rejected the request, or could not be reached."""

    code = "stripe_error"


def _encode_form(params: dict, prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested params into Stripe's bracketed form encoding."""
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(_encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(_encode_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripeClient:
    """Async client for the Stripe REST API."""

    def __init__(
        self,
        secret_key: str = None,
        api_base: str = None,
        connect_base: str = None,
        client_id: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        if not self.secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")
        self.connect_base = (connect_base or settings.STRIPE_CONNECT_BASE).rstrip("/")
        self.client_id = client_id or settings.STRIPE_CLIENT_ID
        self.timeout = timeout or settings.STRIPE_TIMEOUT_SECONDS
        self._transport = transport
        self._headers = {"Authorization": f"Bearer {self.secret_key}"}

    async def _request(
        self,
        method: str,
        url: str,
        params: dict = None,
        form: dict = None,
        idempotency_key: str = None,
    ) -> dict:
        """Make an async request to Stripe."""
        headers = dict(self._headers)
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=_encode_form(params) if params else None,
                    data=dict(_encode_form(form)) if form else None,
                )
        except httpx.HTTPError as exc:
            logger.error("Stripe request %s %s failed: %s", method, url, exc)
            raise StripeError(f"Stripe unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            error = data.get("error") or {}
            logger.error(
                "Stripe API error: %d - %s",
                response.status_code,
                error.get("message"),
                extra={"extra_fields": {"stripe_error": error.get("type")}},
            )
            raise StripeError(
                error.get("message") or "Unknown Stripe error",
                status_code=response.status_code,
                response_data=data,
            )

        return data

    # =========================================================================
    # Checkout
    # =========================================================================

    async def create_checkout_session(
        self,
        *,
        amount: int,
        currency: str,
        application_fee_amount: int,
        destination: str,
        product_name: str,
        customer_email: Optional[str],
        success_url: str,
        cancel_url: str,
        metadata: dict,
        idempotency_key: str,
    ) -> CheckoutSession:
        """
        Create a hosted checkout session charging ``amount`` (pence) with the
        platform fee taken as an application fee and the rest routed to
        ``destination``.
        """
        form = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {"name": product_name},
                        "unit_amount": amount,
                    },
                    "quantity": 1,
                }
            ],
            "payment_intent_data": {
                "application_fee_amount": application_fee_amount,
                "transfer_data": {"destination": destination},
                "metadata": metadata,
            },
            "customer_email": customer_email,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        data = await self._request(
            "POST",
            f"{self.api_base}/v1/checkout/sessions",
            form=form,
            idempotency_key=idempotency_key,
        )
        return self._to_session(data)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        data = await self._request(
            "GET", f"{self.api_base}/v1/checkout/sessions/{session_id}"
        )
        return self._to_session(data)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        data = await self._request(
            "GET", f"{self.api_base}/v1/payment_intents/{payment_intent_id}"
        )
        return PaymentIntent(
            id=data["id"],
            status=data.get("status", ""),
            amount_received=data.get("amount_received") or 0,
            created=data.get("created") or 0,
            metadata=data.get("metadata") or {},
        )

    @staticmethod
    def _to_session(data: dict) -> CheckoutSession:
        payment_intent = data.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        return CheckoutSession(
            id=data["id"],
            url=data.get("url"),
            status=data.get("status"),
            payment_status=data.get("payment_status"),
            payment_intent=payment_intent,
            amount_total=data.get("amount_total"),
            metadata=data.get("metadata") or {},
        )

    # =========================================================================
    # Transfers
    # =========================================================================

    async def create_transfer(
        self,
        *,
        amount: int,
        currency: str,
        destination: str,
        transfer_group: str,
        metadata: dict,
        idempotency_key: str,
    ) -> Transfer:
        """
        Transfer ``amount`` (pence) from the platform balance to a connected
        account. The transfer group lets a later lookup find it again.
        """
        data = await self._request(
            "POST",
            f"{self.api_base}/v1/transfers",
            form={
                "amount": amount,
                "currency": currency.lower(),
                "destination": destination,
                "transfer_group": transfer_group,
                "metadata": metadata,
            },
            idempotency_key=idempotency_key,
        )
        return self._to_transfer(data)

    async def list_transfers(self, transfer_group: str) -> List[Transfer]:
        data = await self._request(
            "GET",
            f"{self.api_base}/v1/transfers",
            params={"transfer_group": transfer_group, "limit": 10},
        )
        return [self._to_transfer(item) for item in data.get("data", [])]

    @staticmethod
    def _to_transfer(data: dict) -> Transfer:
        return Transfer(
            id=data["id"],
            amount=data.get("amount") or 0,
            currency=(data.get("currency") or "").upper(),
            destination=data.get("destination") or "",
            transfer_group=data.get("transfer_group"),
            reversed=bool(data.get("reversed")),
        )

    # =========================================================================
    # Connected accounts
    # =========================================================================

    async def retrieve_account(self, account_id: str) -> ConnectedAccount:
        data = await self._request("GET", f"{self.api_base}/v1/accounts/{account_id}")
        return account_from_payload(data)

    def oauth_authorize_url(self, state: str, redirect_uri: str) -> str:
        if not self.client_id:
            raise StripeError("STRIPE_CLIENT_ID is not configured")
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.client_id,
                "scope": "read_write",
                "state": state,
                "redirect_uri": redirect_uri,
            }
        )
        return f"{self.connect_base}/oauth/authorize?{query}"

    async def exchange_oauth_code(self, code: str) -> str:
        """Complete the OAuth link; returns the connected account id."""
        data = await self._request(
            "POST",
            f"{self.connect_base}/oauth/token",
            form={"grant_type": "authorization_code", "code": code},
        )
        account_id = data.get("stripe_user_id")
        if not account_id:
            raise StripeError("OAuth response did not include an account id")
        return account_id


def account_from_payload(data: dict) -> ConnectedAccount:
    return ConnectedAccount(
        id=data["id"],
        charges_enabled=bool(data.get("charges_enabled")),
        payouts_enabled=bool(data.get("payouts_enabled")),
        details_submitted=bool(data.get("details_submitted")),
    )


# =============================================================================
# Webhook signatures
# =============================================================================


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def verify_webhook(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance: int,
    now: Optional[int] = None,
) -> dict[str, Any]:
    """
    Verify a ``Stripe-Signature`` header (``t=...,v1=...``) and return the
    decoded event. Raises ``SignatureInvalid`` on any mismatch.
    """
    if not secret:
        raise SignatureInvalid("Webhook secret is not configured")
    if not signature_header:
        raise SignatureInvalid("Missing signature header")

    timestamp: Optional[int] = None
    candidates: list[str] = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise SignatureInvalid("Malformed signature timestamp")
        elif key == "v1":
            candidates.append(value)

    if timestamp is None or not candidates:
        raise SignatureInvalid("Malformed signature header")

    current = int(time.time()) if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        raise SignatureInvalid("Signature timestamp outside tolerance")

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, c) for c in candidates):
        raise SignatureInvalid("Signature mismatch")

    try:
        return json.loads(payload.decode("utf-8") or "{}")
    except ValueError:
        raise ValidationError("Payload is not valid JSON")


# Singleton-ish accessor; returns None when Stripe is not configured.
def get_stripe_client() -> Optional[StripeClient]:
    """Get a StripeClient instance, or None without a secret key."""
    if not get_settings().STRIPE_SECRET_KEY:
        return None
    return StripeClient()
