"""
Module: dairy_kernel.db.types
Responsibility: Annotated column type aliases and rounding helpers for money
    and quantities, so that every model and engine uses identical precision.
Architecture position: Kernel > DB.  May be imported by models/, engines,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for amounts.  Money is Decimal with 2 places, rounded
      half-up by round_money(), the only sanctioned rounding function.
    - Quantities (litres, kilograms, units) carry 3 decimal places.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

Money = Annotated[Decimal, Numeric(14, 2)]

Quantity = Annotated[Decimal, Numeric(12, 3)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(2000)]

MONEY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 3
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: object) -> Decimal:
    """Coerce int/str/Decimal to Decimal without passing through float.

    None becomes zero so nullable debit/credit columns read cleanly.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value half-up to ``decimal_places``."""
    quantizer = Decimal(10) ** -decimal_places
    return to_decimal(value).quantize(quantizer, rounding=rounding)


def round_quantity(value: Decimal) -> Decimal:
    """Round a quantity to 3 decimal places."""
    return round_money(value, QUANTITY_DECIMAL_PLACES)
