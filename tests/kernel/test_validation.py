"""
Tests for dairy_kernel.domain.validation.
"""

from decimal import Decimal

import pytest

from dairy_kernel.domain.validation import validate_amount, validate_phone, validate_pin
from dairy_kernel.exceptions import (
    InvalidAmountError,
    InvalidPhoneError,
    InvalidPinError,
    ValidationError,
)


class TestPhone:
    def test_formatting_is_stripped(self):
        assert validate_phone("98450-12345") == "9845012345"
        assert validate_phone("(984) 501-2345") == "9845012345"

    @pytest.mark.parametrize("phone", ["12345", "98450123456", "", None])
    def test_must_be_ten_digits(self, phone):
        with pytest.raises(InvalidPhoneError):
            validate_phone(phone)


class TestPin:
    def test_six_digits(self):
        assert validate_pin("560001") == "560001"

    @pytest.mark.parametrize("pin", ["56000", "5600011", "56000a", ""])
    def test_rejected(self, pin):
        with pytest.raises(InvalidPinError):
            validate_pin(pin)


class TestAmount:
    def test_rounds_to_paise(self):
        assert validate_amount("199.999") == Decimal("200.00")
        assert validate_amount(5) == Decimal("5.00")

    @pytest.mark.parametrize("amount", [0, -1, "0.001", "abc", "NaN", "Infinity", True, None])
    def test_rejected(self, amount):
        with pytest.raises(InvalidAmountError):
            validate_amount(amount)

    def test_error_carries_field_and_code(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(-5, field="payment")
        assert exc_info.value.field == "payment"
        assert exc_info.value.code == "INVALID_AMOUNT"
