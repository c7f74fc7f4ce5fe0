# Overview: Fixed-point money helpers. Amounts are stored as integer cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .validation import ValidationError

CENT = Decimal("0.01")

# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


def to_decimal(value, field: str) -> Decimal:
    """
    Parse a JSON number or numeric string into a Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def round_cents(amount: Decimal) -> int:
    """Round a Decimal number of cents to an integer, half away from zero."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(value, field: str = "amount", *, allow_negative: bool = False) -> int:
    """Currency units (e.g. 149.99) -> integer cents (14999)."""
    try:
        amount = to_decimal(value, field).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range")
    cents = int(amount * 100)
    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def from_cents(cents: int | None) -> float | None:
    """Integer cents -> currency units for JSON output."""
    if cents is None:
        return None
    return float(Decimal(cents) / 100)


def parse_rate(value, field: str = "taxRate") -> Decimal:
    """Parse a fractional rate such as 0.19. Must lie within [0, 1]."""
    rate = to_decimal(value, field)
    if rate < 0 or rate > 1:
        raise ValidationError(f"{field} must be between 0 and 1")
    return rate.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
