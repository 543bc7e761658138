"""Currency and money utilities for the marketplace.

Internal storage unit: pounds as ``Decimal`` with two places (Numeric(12, 2)).
Processor unit: pence (integer minor units, 100 pence = £1).
Payout balances are normalized to the base currency (GBP) through a
fixed-point rate table read from settings.

Conversion chain
----------------
Pounds × 100 → Pence
Pence  ÷ 100 → Pounds
USD/EUR × rate → GBP
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Sequence

from libs.common.config import get_settings
from libs.common.errors import ValidationError

# ─── constants ───────────────────────────────────────────────────────────────

PENCE_PER_POUND: int = 100
PENNY = Decimal("0.01")
ZERO = Decimal("0.00")

ALLOWED_PAYOUT_CURRENCIES: tuple[str, ...] = ("GBP", "USD", "EUR")


# ─── rounding ────────────────────────────────────────────────────────────────


def to_money(value) -> Decimal:
    """Coerce to a two-place Decimal (round half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(PENNY, rounding=ROUND_HALF_UP)


def pounds_to_pence(amount: Decimal) -> int:
    """Convert pounds to pence. £1 = 100 pence."""
    return int((to_money(amount) * PENCE_PER_POUND).to_integral_value(ROUND_HALF_UP))


def pence_to_pounds(pence: int) -> Decimal:
    """Convert pence to pounds. 100 pence = £1."""
    return to_money(Decimal(pence) / PENCE_PER_POUND)


# ─── exchange ────────────────────────────────────────────────────────────────


def rate_table() -> dict[str, Decimal]:
    """Fixed-point rates from each allowed currency into the base currency."""
    settings = get_settings()
    return {
        settings.BASE_CURRENCY: Decimal("1"),
        "USD": settings.FX_USD_TO_BASE,
        "EUR": settings.FX_EUR_TO_BASE,
    }


def normalize_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if code not in ALLOWED_PAYOUT_CURRENCIES:
        raise ValidationError(
            f"Unsupported currency {currency!r}",
            allowed=list(ALLOWED_PAYOUT_CURRENCIES),
        )
    return code


def to_base(amount: Decimal, currency: str) -> Decimal:
    """Convert an amount in an allowed currency into the base currency."""
    code = normalize_currency(currency)
    return to_money(Decimal(amount) * rate_table()[code])


# ─── allocation ──────────────────────────────────────────────────────────────


def split_evenly(amount: Decimal, parts: int) -> list[Decimal]:
    """Split ``amount`` into ``parts`` shares that sum exactly to it.

    Leftover pennies go to the earliest shares.
    """
    if parts <= 0:
        return []
    pence = pounds_to_pence(amount)
    share, remainder = divmod(pence, parts)
    return [pence_to_pounds(share + (1 if i < remainder else 0)) for i in range(parts)]


def split_proportionally(amount: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """Split ``amount`` in proportion to ``weights``; shares sum exactly to it.

    Each share is rounded down to the penny and the leftover pennies go to
    the earliest shares with a positive weight. All-zero weights fall back
    to an even split.
    """
    if not weights:
        return []
    total_weight = sum((Decimal(w) for w in weights), Decimal("0"))
    if total_weight <= 0:
        return split_evenly(amount, len(weights))

    pence = pounds_to_pence(amount)
    shares = [
        int((Decimal(pence) * Decimal(w) / total_weight).to_integral_value(ROUND_DOWN))
        for w in weights
    ]
    leftover = pence - sum(shares)
    for i, w in enumerate(weights):
        if leftover <= 0:
            break
        if w > 0:
            shares[i] += 1
            leftover -= 1
    return [pence_to_pounds(s) for s in shares]
