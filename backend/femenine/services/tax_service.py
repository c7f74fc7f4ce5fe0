# Overview: Authoritative subtotal/tax/total computation in integer cents.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..money import from_cents, round_cents
from ..validation import ValidationError


@dataclass(frozen=True)
class TaxBreakdown:
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    tax_rate: Decimal
    tax_included: bool

    def to_dict(self) -> dict:
        return {
            "subtotal": from_cents(self.subtotal_cents),
            "taxAmount": from_cents(self.tax_cents),
            "total": from_cents(self.total_cents),
            "taxRate": float(self.tax_rate),
            "taxIncluded": self.tax_included,
        }


def compute_tax(amount_cents: int, tax_included: bool, tax_rate: Decimal) -> TaxBreakdown:
    """
    Split a cart amount into subtotal, tax and total.

    tax_included=True: amount is the tax-inclusive total;
        subtotal = round(total / (1 + rate)), tax = total - subtotal.
    tax_included=False: amount is the pre-tax subtotal;
        tax = round(subtotal * rate), total = subtotal + tax.

    Rounding is applied once (half up, to the cent) so subtotal + tax == total.
    """
    if amount_cents < 0:
        raise ValidationError("amount cannot be negative")
    rate = Decimal(tax_rate)
    if rate < 0 or rate > 1:
        raise ValidationError("taxRate must be between 0 and 1")

    if tax_included:
        total = amount_cents
        subtotal = round_cents(Decimal(total) / (Decimal(1) + rate))
        tax = total - subtotal
    else:
        subtotal = amount_cents
        tax = round_cents(Decimal(subtotal) * rate)
        total = subtotal + tax

    return TaxBreakdown(
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=total,
        tax_rate=rate,
        tax_included=bool(tax_included),
    )


def cart_subtotal_cents(lines: Iterable) -> int:
    """
    Sum of (price - discount) * quantity over cart lines.

    Lines are (price_cents, quantity, discount_cents) tuples; discount is per unit.
    """
    return sum((price - discount) * quantity for price, quantity, discount in lines)
