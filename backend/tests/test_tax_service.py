"""
Tax computation and money parsing.

All amounts are integer cents; rounding is half-up to the cent and applied
exactly once, so subtotal + tax always equals total.
"""

from decimal import Decimal

import pytest

from femenine.money import from_cents, parse_rate, to_cents
from femenine.services.tax_service import cart_subtotal_cents, compute_tax
from femenine.validation import ValidationError


class TestComputeTax:

    def test_tax_included_example(self):
        # 150 + 120 at 19% tax included
        result = compute_tax(27000, True, Decimal("0.19"))
        assert result.total_cents == 27000
        assert result.subtotal_cents == 22689
        assert result.tax_cents == 4311

    def test_tax_excluded(self):
        result = compute_tax(10000, False, Decimal("0.19"))
        assert result.subtotal_cents == 10000
        assert result.tax_cents == 1900
        assert result.total_cents == 11900

    def test_zero_rate(self):
        for included in (True, False):
            result = compute_tax(12345, included, Decimal("0"))
            assert result.subtotal_cents == 12345
            assert result.tax_cents == 0
            assert result.total_cents == 12345

    def test_rounds_half_up(self):
        # 1 cent * 0.5 = 0.5 cent -> 1 cent
        result = compute_tax(1, False, Decimal("0.5"))
        assert result.tax_cents == 1
        assert result.total_cents == 2

    @pytest.mark.parametrize("amount", [1, 99, 100, 999, 12345, 27000, 1999999])
    @pytest.mark.parametrize("rate", ["0.19", "0.07", "0.333", "1"])
    def test_parts_add_up(self, amount, rate):
        included = compute_tax(amount, True, Decimal(rate))
        assert included.subtotal_cents + included.tax_cents == amount

        excluded = compute_tax(amount, False, Decimal(rate))
        assert excluded.total_cents - excluded.tax_cents == amount

    def test_to_dict_uses_currency_units(self):
        data = compute_tax(27000, True, Decimal("0.19")).to_dict()
        assert data == {
            "subtotal": 226.89,
            "taxAmount": 43.11,
            "total": 270.0,
            "taxRate": 0.19,
            "taxIncluded": True,
        }

    def test_rejects_negative_amount(self):
        with pytest.raises(ValidationError):
            compute_tax(-1, False, Decimal("0.19"))

    def test_rejects_rate_out_of_range(self):
        with pytest.raises(ValidationError):
            compute_tax(100, False, Decimal("1.5"))


class TestCartSubtotal:

    def test_discount_is_per_unit(self):
        # (150.00 - 10.00) * 2 + 120.00 * 1
        lines = [(15000, 2, 1000), (12000, 1, 0)]
        assert cart_subtotal_cents(lines) == 40000

    def test_empty(self):
        assert cart_subtotal_cents([]) == 0


class TestMoney:

    @pytest.mark.parametrize("value,expected", [
        (150, 15000),
        ("149.99", 14999),
        (0.1, 10),
        ("0.005", 1),
        (" 20 ", 2000),
    ])
    def test_to_cents(self, value, expected):
        assert to_cents(value) == expected

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity", -1, "1e30"])
    def test_to_cents_rejects(self, value):
        with pytest.raises(ValidationError):
            to_cents(value)

    def test_from_cents(self):
        assert from_cents(14999) == 149.99
        assert from_cents(None) is None

    def test_parse_rate(self):
        assert parse_rate("0.19") == Decimal("0.1900")
        assert parse_rate(0.19) == Decimal("0.1900")
        with pytest.raises(ValidationError):
            parse_rate("-0.1")
        with pytest.raises(ValidationError):
            parse_rate("19")
