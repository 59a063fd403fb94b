"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and helpers for money columns.
    Centralizes storage precision and rounding so that every model, service
    and selector uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats anywhere in the ledger.  All monetary amounts use
    Decimal with explicit precision.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places of storage precision
Money = Annotated[Decimal, Numeric(38, 9)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(1000)]

MONEY_STORAGE_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def decimal_places(value: Decimal) -> int:
    """
    Number of significant decimal places in ``value``.

    Trailing zeros do not count: Decimal("10.50") has 1 significant place,
    Decimal("10.00") has 0.
    """
    exponent = value.normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        # NaN / Infinity
        raise ValueError(f"Not a finite decimal: {value}")
    return max(0, -exponent)


def round_money(
    value: Decimal,
    places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only sanctioned rounding function for ledger amounts.  It is
    used for presentation (reports, scripts); posted amounts are never
    rounded, they are rejected when they carry too many places.
    """
    return value.quantize(Decimal(1).scaleb(-places), rounding=rounding)
