# Overview: SKU generation (FEM-YYYY-MM-NNNNNN).

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Product
from femenine.time_utils import utcnow

SKU_PREFIX = "FEM"
SEQUENCE_DIGITS = 6


def month_prefix(now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"{SKU_PREFIX}-{now.year:04d}-{now.month:02d}-"


def generate_sku(now: datetime | None = None, reserved: set[str] | None = None) -> str:
    """
    Next free SKU for the current month.

    Takes the highest existing SKU with this month's prefix and adds one.
    `reserved` holds SKUs handed out earlier in the same unit of work that
    are not flushed yet (batch create/import).
    """
    prefix = month_prefix(now)
    last_sku = (
        db.session.query(Product.sku)
        .filter(Product.sku.like(f"{prefix}%"))
        .order_by(Product.sku.desc())
        .limit(1)
        .scalar()
    )

    next_number = 1
    if last_sku:
        tail = last_sku[len(prefix):]
        if tail.isdigit():
            next_number = int(tail) + 1

    sku = f"{prefix}{next_number:0{SEQUENCE_DIGITS}d}"
    while reserved and sku in reserved:
        next_number += 1
        sku = f"{prefix}{next_number:0{SEQUENCE_DIGITS}d}"
    return sku
