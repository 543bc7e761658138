"""Marketplace error taxonomy.

Every domain failure raised by the service layer is a ``MarketplaceError``
subclass carrying the HTTP status it maps to and a stable machine-readable
``code``. ``libs.common.error_handler`` renders them for FastAPI apps.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional


class MarketplaceError(Exception):
    """Base class for expected, domain-level failures."""

    status_code: int = 400
    code: str = "marketplace_error"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.details)
        return body


class ValidationError(MarketplaceError):
    """Bad input. Nothing was changed."""

    status_code = 400
    code = "validation_error"


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"


class PermissionDenied(MarketplaceError):
    status_code = 403
    code = "permission_denied"


class Conflict(MarketplaceError):
    """Stock, balance or serialization contention. Safe to retry."""

    status_code = 409
    code = "conflict"


@dataclass(frozen=True)
class Shortage:
    product_id: str
    product_name: str
    available: int
    requested: int


class OutOfStock(MarketplaceError):
    """A cart line asks for more than is in stock. Checkout aborts wholesale."""

    status_code = 409
    code = "out_of_stock"

    def __init__(self, shortages: list[Shortage]):
        self.shortages = shortages
        names = ", ".join(s.product_name for s in shortages)
        super().__init__(
            f"Insufficient stock for: {names}",
            shortages=[asdict(s) for s in shortages],
        )

    @property
    def product_id(self) -> str:
        return self.shortages[0].product_id

    @property
    def available(self) -> int:
        return self.shortages[0].available

    @property
    def requested(self) -> int:
        return self.shortages[0].requested


class PromotionInvalid(MarketplaceError):
    """A discount code or points redemption cannot be applied.

    Checkout degrades this into a warning; it never blocks an order.
    """

    status_code = 400
    code = "promotion_invalid"


class ExternalServiceError(MarketplaceError):
    """The payment processor failed or timed out."""

    status_code = 502
    code = "external_service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.upstream_status = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class InsufficientBalance(MarketplaceError):
    """Payout request exceeds the retailer's available balance."""

    status_code = 400
    code = "insufficient_balance"

    def __init__(self, available: Decimal, requested: Decimal, currency: str):
        self.available = available
        self.requested = requested
        super().__init__(
            "Requested amount exceeds available balance",
            available=str(available),
            requested_in_base=str(requested),
            currency=currency,
        )


class SignatureInvalid(MarketplaceError):
    """Webhook payload failed signature verification."""

    status_code = 400
    code = "signature_invalid"
