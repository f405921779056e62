"""Tests for fixed-point unit conversion."""

from decimal import Decimal

import pytest

from venuebridge.errors import ValidationError
from venuebridge.units import from_smallest_unit, to_decimal, to_smallest_unit


class TestToSmallestUnit:

    def test_ada_to_lovelace(self):
        assert to_smallest_unit(Decimal("10"), "ADA") == 10_000_000

    def test_sol_to_lamports(self):
        assert to_smallest_unit(Decimal("49.5"), "SOL") == 49_500_000_000

    def test_accepts_strings_and_lowercase_symbols(self):
        assert to_smallest_unit("0.5", "sol") == 500_000_000

    @pytest.mark.parametrize(
        "amount,expected",
        [
            # Not exactly representable as binary floats
            ("0.29", 290_000_000),
            ("1.1", 1_100_000_000),
            ("4.35", 4_350_000_000),
            ("0.57", 570_000_000),
        ],
    )
    def test_exact_where_float_math_truncates(self, amount, expected):
        assert to_smallest_unit(amount, "SOL") == expected

    def test_extra_precision_rounds_down(self):
        assert to_smallest_unit("1.0000000019", "SOL") == 1_000_000_001
        assert to_smallest_unit("0.0000009", "ADA") == 0

    def test_large_amount(self):
        assert to_smallest_unit("123456789.123456789", "SOL") == 123_456_789_123_456_789

    def test_rejects_float(self):
        with pytest.raises(ValidationError):
            to_smallest_unit(0.5, "SOL")

    def test_rejects_unknown_token(self):
        with pytest.raises(ValidationError):
            to_smallest_unit("1", "BTC")


class TestFromSmallestUnit:

    def test_lamports_to_sol(self):
        assert from_smallest_unit(500_000_000, "SOL") == Decimal("0.5")

    def test_lovelace_to_ada(self):
        assert from_smallest_unit(1, "ADA") == Decimal("0.000001")

    def test_rejects_non_integer(self):
        with pytest.raises(ValidationError):
            from_smallest_unit(Decimal("1.5"), "SOL")
        with pytest.raises(ValidationError):
            from_smallest_unit(True, "SOL")


class TestToDecimal:

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value)

    def test_int(self):
        assert to_decimal(3) == Decimal(3)
