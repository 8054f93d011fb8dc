"""Tests for the Money value object."""

from decimal import Decimal

import pytest
from pydantic import ValidationError
from storefront.shared.money import CurrencyMismatch, Money, minor_unit_exponent, to_percentage


class TestMoneyConstruction:
    def test_default_currency(self):
        money = Money(amount=500)
        assert money.currency == "USD"

    def test_zero(self):
        money = Money.zero("EUR")
        assert money.amount == 0
        assert money.currency == "EUR"
        assert money.is_zero()

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=-1)

    def test_float_amount_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=9.99)

    def test_unknown_currency_rejected(self):
        with pytest.raises(ValidationError):
            Money(amount=100, currency="XYZ")

    def test_immutable(self):
        money = Money(amount=100)
        with pytest.raises(ValidationError):
            money.amount = 200


class TestDisplayBoundary:
    def test_from_display(self):
        assert Money.from_display("55.00").amount == 5500

    def test_from_display_rounds_half_up(self):
        assert Money.from_display("0.125").amount == 13
        assert Money.from_display("0.124").amount == 12

    def test_from_display_zero_decimal_currency(self):
        money = Money.from_display("1500", currency="JPY")
        assert money.amount == 1500
        assert money.to_display() == "1500"

    def test_from_display_rejects_garbage(self):
        with pytest.raises(ValueError):
            Money.from_display("twelve")

    def test_to_display(self):
        assert Money(amount=5940).to_display() == "59.40"
        assert Money(amount=5).to_display() == "0.05"

    def test_str(self):
        assert str(Money(amount=999)) == "9.99 USD"

    def test_minor_unit_exponent(self):
        assert minor_unit_exponent("USD") == 2
        assert minor_unit_exponent("KRW") == 0


class TestArithmetic:
    def test_add(self):
        assert Money(amount=150).add(Money(amount=250)).amount == 400

    def test_add_currency_mismatch(self):
        with pytest.raises(CurrencyMismatch) as exc:
            Money(amount=100).add(Money(amount=100, currency="EUR"))
        assert "currency" in exc.value.messages

    def test_add_non_money(self):
        with pytest.raises(TypeError):
            Money(amount=100).add(100)

    def test_subtract(self):
        assert Money(amount=500).subtract(Money(amount=200)).amount == 300

    def test_subtract_floors_at_zero(self):
        assert Money(amount=200).subtract(Money(amount=500)).amount == 0

    def test_multiply(self):
        assert Money(amount=1250).multiply(3).amount == 3750

    def test_multiply_rejects_negative(self):
        with pytest.raises(ValueError):
            Money(amount=100).multiply(-1)

    def test_multiply_rejects_float(self):
        with pytest.raises(TypeError):
            Money(amount=100).multiply(1.5)

    def test_apply_percentage(self):
        assert Money(amount=5500).apply_percentage(10).amount == 550

    def test_apply_percentage_rounds_half_up(self):
        # 8% of 0.31 = 0.0248 → 0.02; 8% of 0.19 = 0.0152 → 0.02
        assert Money(amount=31).apply_percentage(8).amount == 2
        assert Money(amount=19).apply_percentage(8).amount == 2
        # 10% of 0.05 = 0.005 → 0.01
        assert Money(amount=5).apply_percentage(10).amount == 1

    def test_apply_fractional_percentage(self):
        assert Money(amount=1000).apply_percentage(Decimal("7.25")).amount == 73

    def test_apply_percentage_rejects_float(self):
        with pytest.raises(TypeError):
            Money(amount=1000).apply_percentage(8.0)


class TestComparison:
    def test_compare(self):
        assert Money(amount=100).compare(Money(amount=200)) == -1
        assert Money(amount=200).compare(Money(amount=200)) == 0
        assert Money(amount=300).compare(Money(amount=200)) == 1

    def test_ordering_operators(self):
        assert Money(amount=100) < Money(amount=200)
        assert Money(amount=200) >= Money(amount=200)
        assert Money(amount=300) > Money(amount=200)

    def test_compare_currency_mismatch(self):
        with pytest.raises(CurrencyMismatch):
            Money(amount=100) < Money(amount=100, currency="GBP")

    def test_equality_is_by_value(self):
        assert Money(amount=100) == Money(amount=100, currency="USD")
        assert Money(amount=100) != Money(amount=100, currency="EUR")


class TestPercentage:
    def test_accepts_int_decimal_and_str(self):
        assert to_percentage(8) == Decimal(8)
        assert to_percentage(Decimal("7.5")) == Decimal("7.5")
        assert to_percentage("12.5") == Decimal("12.5")

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            to_percentage(101)
        with pytest.raises(ValueError):
            to_percentage(-1)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_percentage(True)
