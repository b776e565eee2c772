# Overview: Integer-cent arithmetic helpers for prices, discounts and VAT.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

# Rates are basis points: 2000 = 20.00%
BPS_SCALE = 10_000
MAX_RATE_BPS = 10_000

# 99,999,999.99 in minor units
MAX_AMOUNT_CENTS = 9_999_999_999


def percent_of(amount_cents: int, rate_bps: int) -> int:
    """Return rate_bps of amount_cents, rounded half-up to a whole cent."""
    if not amount_cents or not rate_bps:
        return 0
    value = Decimal(amount_cents) * Decimal(rate_bps) / Decimal(BPS_SCALE)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
