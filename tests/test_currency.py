"""
Test suite for currency module

Tests Money class and proper Decimal handling.
All monetary calculations must use Decimal precision.
"""

import pytest
from decimal import Decimal

from loan_engine.currency import Money, Currency, to_decimal


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        """Test Money object creation and rounding to minor unit"""
        money = Money(Decimal('100.50'), Currency.INR)
        assert money.amount == Decimal('100.50')
        assert money.currency == Currency.INR

        money_rounded = Money(Decimal('100.555'), Currency.INR)
        assert money_rounded.amount == Decimal('100.56')

        money_jpy = Money(Decimal('100.7'), Currency.JPY)
        assert money_jpy.amount == Decimal('101')

    def test_minor_unit(self):
        assert Currency.INR.minor_unit == Decimal('0.01')
        assert Currency.JPY.minor_unit == Decimal('1')

    def test_money_arithmetic(self):
        """Test Money arithmetic operations"""
        money1 = Money(Decimal('100.50'), Currency.INR)
        money2 = Money(Decimal('50.25'), Currency.INR)

        assert (money1 + money2).amount == Decimal('150.75')
        assert (money1 - money2).amount == Decimal('50.25')
        assert (money1 * Decimal('2')).amount == Decimal('201.00')
        assert (money1 / Decimal('2')).amount == Decimal('50.25')
        assert (-money1).amount == Decimal('-100.50')
        assert abs(Money(Decimal('-3.10'), Currency.INR)).amount == Decimal('3.10')

    def test_currency_mismatch(self):
        """Mixing currencies is an error"""
        with pytest.raises(ValueError, match="Cannot add"):
            Money(Decimal('1'), Currency.INR) + Money(Decimal('1'), Currency.USD)

        with pytest.raises(ValueError, match="Cannot compare"):
            Money(Decimal('1'), Currency.INR) < Money(Decimal('1'), Currency.USD)

    def test_comparisons(self):
        small = Money(Decimal('10.00'), Currency.INR)
        large = Money(Decimal('10.01'), Currency.INR)

        assert small < large
        assert large > small
        assert small <= Money(Decimal('10'), Currency.INR)
        assert min(small, large) is small
        assert small != Decimal('10.00')

    def test_predicates(self):
        assert Money.zero(Currency.INR).is_zero()
        assert Money(Decimal('0.01'), Currency.INR).is_positive()
        assert Money(Decimal('-0.01'), Currency.INR).is_negative()

    def test_ratio_to(self):
        part = Money(Decimal('946.19'), Currency.INR)
        whole = Money(Decimal('1066.19'), Currency.INR)

        ratio = part.ratio_to(whole)
        assert (whole * ratio).amount == Decimal('946.19')
        assert part.ratio_to(Money.zero(Currency.INR)) == Decimal('0')

    def test_to_string(self):
        assert Money(Decimal('12000'), Currency.INR).to_string() == "INR 12,000.00"
        assert Money(Decimal('1500'), Currency.JPY).to_string() == "JPY 1,500"


class TestToDecimal:
    """Test conversion of user input to Decimal"""

    def test_string_and_int(self):
        assert to_decimal("1066.19") == Decimal("1066.19")
        assert to_decimal(12) == Decimal("12")
        assert to_decimal(" 0.50 ") == Decimal("0.50")

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            to_decimal("abc")
        with pytest.raises(ValueError):
            to_decimal("NaN")
        with pytest.raises(ValueError):
            to_decimal("Infinity")
