"""
Unit tests for Currency, Money and the currency registry.

Verifies:
- Currency validation and normalisation
- Minor-unit conversion and half-up rounding
- Excess-precision detection
- Currency mismatch and float prohibition
"""

from decimal import Decimal

import pytest

from erp_kernel.domain.currency import CurrencyRegistry
from erp_kernel.domain.values import Currency, Money
from erp_kernel.exceptions import CurrencyMismatchError


class TestCurrencyRegistry:
    """Tests for registered trading currencies."""

    def test_home_currency_registered(self):
        assert CurrencyRegistry.is_valid("MYR")
        assert CurrencyRegistry.get_decimal_places("MYR") == 2

    def test_zero_and_three_decimal_currencies(self):
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.get_decimal_places("KWD") == 3

    def test_lowercase_codes_normalized(self):
        assert CurrencyRegistry.validate(" myr ") == "MYR"

    def test_validate_rejects_unknown_code(self):
        with pytest.raises(ValueError, match="Unsupported"):
            CurrencyRegistry.validate("XYZ")

    def test_validate_rejects_wrong_length(self):
        with pytest.raises(ValueError, match="3 characters"):
            CurrencyRegistry.validate("MYRR")

    def test_validate_rejects_empty(self):
        with pytest.raises(ValueError):
            CurrencyRegistry.validate("")

    def test_minor_unit(self):
        assert CurrencyRegistry.get_info("MYR").minor_unit == Decimal("0.01")


class TestCurrency:
    def test_normalizes_code(self):
        assert Currency("sgd").code == "SGD"

    def test_rejects_unknown_code(self):
        with pytest.raises(ValueError):
            Currency("ABC")

    def test_quantum(self):
        assert Currency("MYR").quantum == Decimal("0.01")
        assert Currency("JPY").quantum == Decimal("1")


class TestMoney:
    """Tests for the Money value object."""

    def test_of_accepts_strings(self):
        money = Money.of("100.50", "MYR")
        assert money.amount == Decimal("100.50")
        assert money.currency == Currency("MYR")

    def test_float_rejected(self):
        with pytest.raises(ValueError, match="float"):
            Money(100.5, Currency("MYR"))

    def test_to_minor_units_rounds_half_up(self):
        assert Money.of("10.005", "MYR").to_minor_units() == 1001
        assert Money.of("10.004", "MYR").to_minor_units() == 1000

    def test_from_minor_units(self):
        assert Money.from_minor_units(23850, "MYR").amount == Decimal("238.50")
        assert Money.from_minor_units(330, "JPY").amount == Decimal("330")

    def test_excess_precision(self):
        assert Money.of("1.005", "MYR").has_excess_precision
        assert not Money.of("1.50", "MYR").has_excess_precision
        assert Money.of("1.5", "JPY").has_excess_precision

    def test_round(self):
        assert Money.of("2.345", "MYR").round().amount == Decimal("2.35")

    def test_addition_and_subtraction(self):
        total = Money.of("100.00", "MYR") + Money.of("50.25", "MYR")
        assert total == Money.of("150.25", "MYR")
        assert (total - Money.of("0.25", "MYR")).amount == Decimal("150.00")

    def test_mixed_currency_arithmetic_raises(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            Money.of("1.00", "MYR") + Money.of("1.00", "SGD")
        assert exc_info.value.code == "CURRENCY_MISMATCH"

    def test_mixed_currency_comparison_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1.00", "MYR") < Money.of("2.00", "USD")

    def test_predicates(self):
        assert Money.zero("MYR").is_zero
        assert Money.of("0.01", "MYR").is_positive
        assert (-Money.of("0.01", "MYR")).is_negative

    def test_multiplication(self):
        assert (Money.of("12.50", "MYR") * 4).amount == Decimal("50.00")
        assert (3 * Money.of("1.10", "MYR")).amount == Decimal("3.30")
