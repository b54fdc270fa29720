"""
Module: dairy_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for ledger columns.
    Centralizes precision so that every model and service uses identical
    definitions for money, milk quantities and per-liter rates.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  All amounts, quantities and rates
      are Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for monetary
      values in settlement arithmetic.

Failure modes:
    - InvalidOperation from to_decimal() on non-numeric input.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Milk quantity in liters
Quantity = Annotated[Decimal, Numeric(18, 3)]

# Currency per liter
Rate = Annotated[Decimal, Numeric(18, 4)]

# Short identifier strings (farmer codes, payment references)
ShortCode = Annotated[str, String(50)]

# Free text notes
LongText = Annotated[str, String(1000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: object) -> Decimal:
    """
    Coerce a caller-supplied number into Decimal without going through float.

    Strings and ints convert exactly; floats are converted through their
    shortest repr so that ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        InvalidOperation: If value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation(f"Boolean is not a number: {value!r}")
    if isinstance(value, str):
        return Decimal(value.strip())
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    raise InvalidOperation(f"Cannot convert {type(value).__name__} to Decimal")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for settlement arithmetic.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
