"""
Input validation for values entered by operators.

Pure functions; each returns the normalised value or raises a typed
``ValidationError`` subclass before anything is written.
"""

import re
from decimal import Decimal, InvalidOperation

from dairy_kernel.db.types import round_money
from dairy_kernel.exceptions import InvalidAmountError, InvalidPhoneError, InvalidPinError

_NON_DIGITS = re.compile(r"\D")
_PIN = re.compile(r"^\d{6}$")


def validate_phone(phone: str) -> str:
    """Strip everything but digits; exactly 10 must remain."""
    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) != 10:
        raise InvalidPhoneError(phone)
    return digits


def validate_pin(pin: str) -> str:
    if not _PIN.match(pin or ""):
        raise InvalidPinError()
    return pin


def validate_amount(amount: object, field: str = "amount") -> Decimal:
    """Parse ``amount`` as a finite positive Decimal rounded to 2 places."""
    if isinstance(amount, bool):
        raise InvalidAmountError(amount, field)
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(amount, field) from None
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(amount, field)
    rounded = round_money(value)
    if rounded <= 0:
        raise InvalidAmountError(amount, field)
    return rounded
