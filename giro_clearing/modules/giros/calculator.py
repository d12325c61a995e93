"""
Balance and status derivation for giros

The status of a giro is a pure function of its face value and the full set
of its clearing records:

1. total_cleared = sum of clearing_amount over records with status 'cleared'
2. remaining = max(0, amount - total_cleared)
3. status, highest priority first:
   - any 'bounced' record      -> bounced
   - total_cleared >= amount   -> cleared
   - total_cleared > 0         -> partial
   - otherwise                 -> pending

Nothing here touches the database, so the derivation can be re-run at any
time as a repair step.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from giro_clearing.modules.giros.models import ClearingStatus, GiroStatus

ZERO = Decimal("0")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class GiroBalance:
    total_cleared: Decimal
    remaining: Decimal
    status: GiroStatus


def quantize_amount(value) -> Decimal:
    """Round a monetary value to cents"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_whole_cents(value: Decimal) -> bool:
    """True when the value has no digits below the cent"""
    return value == value.quantize(CENT, rounding=ROUND_HALF_UP)


def _clearing_status(record) -> ClearingStatus:
    value = record.clearing_status
    return value if isinstance(value, ClearingStatus) else ClearingStatus(value)


def calculate_total_cleared(records: Iterable) -> Decimal:
    return quantize_amount(sum(
        (Decimal(r.clearing_amount) for r in records if _clearing_status(r) == ClearingStatus.CLEARED),
        ZERO
    ))


def calculate_remaining(amount, records: Iterable) -> Decimal:
    # Clamped: only reachable with inconsistent pre-existing data
    return max(ZERO, quantize_amount(amount) - calculate_total_cleared(records))


def derive_status(amount, records: Iterable) -> GiroStatus:
    records = list(records)
    if any(_clearing_status(r) == ClearingStatus.BOUNCED for r in records):
        return GiroStatus.BOUNCED

    total_cleared = calculate_total_cleared(records)
    if total_cleared >= quantize_amount(amount):
        return GiroStatus.CLEARED
    if total_cleared > ZERO:
        return GiroStatus.PARTIAL
    return GiroStatus.PENDING


def calculate_balance(amount, records: Iterable) -> GiroBalance:
    """
    Derive total cleared, remaining balance and status in one pass

    Args:
        amount: Face value of the giro
        records: All clearing records of the giro (any order)

    Returns:
        GiroBalance for the given history
    """
    records = list(records)
    return GiroBalance(
        total_cleared=calculate_total_cleared(records),
        remaining=calculate_remaining(amount, records),
        status=derive_status(amount, records),
    )
