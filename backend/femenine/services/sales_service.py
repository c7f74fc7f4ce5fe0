"""
Sales Service - sale registration and sales history

A sale is registered in one transaction: the referenced products are
locked, stock is decremented with a guarded UPDATE per product, and the
Sale, its SaleItems and the OUT stock movements are written before a single
commit. Any failure rolls everything back, so a Sale row exists if and only
if its stock decrements were applied.

Prices come from the Product record. A price sent by the client is only
checked against it (PRICE_TOLERANCE); it is never stored.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..models import ActivityAction, Product, Sale, SaleItem, StockMovement, User
from ..money import from_cents, parse_rate, to_cents
from ..validation import MAX_QUANTITY, ConflictError, NotFoundError, ValidationError, parse_bool, parse_int
from femenine.time_utils import day_bounds, utcnow
from . import activity_service
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .tax_service import TaxBreakdown, cart_subtotal_cents, compute_tax

TOP_N = 5


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(SaleError):
    """Raised when a cart asks for more units than a product has in stock."""


@dataclass
class CartLine:
    product_id: int
    quantity: int
    discount_cents: int
    submitted_price_cents: int | None
    price_cents: int | None = None


def _parse_cart(payload: dict) -> list[CartLine]:
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Sale must contain at least one item")

    lines = []
    for index, item in enumerate(items):
        label = f"items[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{label} must be an object")
        product_id = parse_int(item.get("productId"), f"{label}.productId", minimum=1)
        quantity = parse_int(item.get("quantity", 1), f"{label}.quantity", minimum=1, maximum=MAX_QUANTITY)
        discount = item.get("discount")
        price = item.get("price")
        lines.append(CartLine(
            product_id=product_id,
            quantity=quantity,
            discount_cents=to_cents(discount, f"{label}.discount") if discount not in (None, "") else 0,
            submitted_price_cents=to_cents(price, f"{label}.price") if price not in (None, "") else None,
        ))
    return lines


def _parse_tax(payload: dict):
    config = current_app.config
    tax_included = parse_bool(payload.get("taxIncluded"), "taxIncluded", default=config["DEFAULT_TAX_INCLUDED"])
    raw_rate = payload.get("taxRate")
    tax_rate = parse_rate(config["DEFAULT_TAX_RATE"] if raw_rate in (None, "") else raw_rate)
    return tax_included, tax_rate


def _price_cart(lines: list[CartLine], products: dict[int, Product]) -> None:
    """
    Fill in authoritative prices from the catalog.

    Raises NotFoundError for unknown products, SaleError for products that
    cannot be sold and ConflictError when a submitted price disagrees with
    the catalog by more than PRICE_TOLERANCE.
    """
    tolerance = to_cents(current_app.config["PRICE_TOLERANCE"], "PRICE_TOLERANCE")

    missing = sorted({line.product_id for line in lines if line.product_id not in products})
    if missing:
        raise NotFoundError(f"Product(s) not found: {', '.join(str(pid) for pid in missing)}")

    for line in lines:
        product = products[line.product_id]
        if not product.is_active:
            raise SaleError(
                f"Product {product.sku} is inactive",
                details={"productId": product.id},
            )
        if product.sale_price_cents is None:
            raise SaleError(
                f"Product {product.sku} has no sale price",
                details={"productId": product.id},
            )
        if (
            line.submitted_price_cents is not None
            and abs(line.submitted_price_cents - product.sale_price_cents) > tolerance
        ):
            raise ConflictError(
                f"Price for {product.sku} changed: submitted {from_cents(line.submitted_price_cents)}, "
                f"current {from_cents(product.sale_price_cents)}"
            )
        if line.discount_cents > product.sale_price_cents:
            raise SaleError(
                f"Discount for {product.sku} exceeds its price",
                details={"productId": product.id},
            )
        line.price_cents = product.sale_price_cents


def _totals(lines: list[CartLine], tax_included: bool, tax_rate) -> TaxBreakdown:
    amount = cart_subtotal_cents(
        (line.price_cents, line.quantity, line.discount_cents) for line in lines
    )
    return compute_tax(amount, tax_included, tax_rate)


def _quantities_by_product(lines: list[CartLine]) -> dict[int, int]:
    totals: dict[int, int] = defaultdict(int)
    for line in lines:
        totals[line.product_id] += line.quantity
    return dict(totals)


def quote_sale(payload: dict) -> dict:
    """Price a cart without persisting anything."""
    lines = _parse_cart(payload)
    tax_included, tax_rate = _parse_tax(payload)

    ids = {line.product_id for line in lines}
    products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()}
    _price_cart(lines, products)
    breakdown = _totals(lines, tax_included, tax_rate)

    return {
        **breakdown.to_dict(),
        "items": [
            {
                "productId": line.product_id,
                "quantity": line.quantity,
                "price": from_cents(line.price_cents),
                "discount": from_cents(line.discount_cents),
                "lineTotal": from_cents((line.price_cents - line.discount_cents) * line.quantity),
                "available": products[line.product_id].stock_cached,
            }
            for line in lines
        ],
    }


def _decrement_stock(product: Product, quantity: int) -> bool:
    """Guarded decrement. False when the product has fewer than `quantity` units."""
    result = db.session.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock_cached >= quantity)
        .values(
            stock_cached=Product.stock_cached - quantity,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def register_sale(payload: dict, user_id: int | None) -> Sale:
    """
    Register a sale from a cart.

    Body: {items: [{productId, quantity, price?, discount?}], taxIncluded?, taxRate?}
    """
    lines = _parse_cart(payload)
    tax_included, tax_rate = _parse_tax(payload)
    ids = sorted({line.product_id for line in lines})

    def _op():
        begin_immediate()
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)
            ).all()
        }
        _price_cart(lines, products)

        shortfalls = []
        for product_id, quantity in sorted(_quantities_by_product(lines).items()):
            product = products[product_id]
            available = product.stock_cached
            if not _decrement_stock(product, quantity):
                shortfalls.append({
                    "productId": product_id,
                    "sku": product.sku,
                    "requested": quantity,
                    "available": available,
                })
        if shortfalls:
            raise InsufficientStockError("Insufficient stock", details={"items": shortfalls})

        breakdown = _totals(lines, tax_included, tax_rate)
        sale = Sale(
            user_id=user_id,
            subtotal_cents=breakdown.subtotal_cents,
            tax_cents=breakdown.tax_cents,
            total_cents=breakdown.total_cents,
            tax_rate=breakdown.tax_rate,
            tax_included=breakdown.tax_included,
            created_at=utcnow(),
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            item = SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price_cents=line.price_cents,
                discount_cents=line.discount_cents,
            )
            db.session.add(item)
            db.session.flush()
            db.session.add(StockMovement(
                product_id=line.product_id,
                type=StockMovement.TYPE_OUT,
                quantity=line.quantity,
                sale_item_id=item.id,
                user_id=user_id,
                note=f"Sale #{sale.id}",
            ))

        db.session.commit()
        return sale

    sale = run_with_retry(_op)

    activity_service.log_activity(
        ActivityAction.CREATE_SALE,
        user_id=user_id,
        details=f"Sale #{sale.id}: {sale.items_count} item(s), total {from_cents(sale.total_cents):.2f}",
    )
    return sale


def _scoped_query(viewer: User, can_view_all: bool, user_id: int | None = None,
                  start: datetime | None = None, end: datetime | None = None):
    query = db.session.query(Sale)
    if not can_view_all:
        query = query.filter(Sale.user_id == viewer.id)
    elif user_id is not None:
        query = query.filter(Sale.user_id == user_id)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)
    return query


def list_sales(viewer: User, can_view_all: bool, *, user_id: int | None = None,
               start: datetime | None = None, end: datetime | None = None) -> list[Sale]:
    """Sales newest first. Callers without VIEW_ALL_SALES only see their own."""
    return (
        _scoped_query(viewer, can_view_all, user_id, start, end)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )


def get_sale(sale_id: int, viewer: User, can_view_all: bool) -> Sale:
    sale = db.session.get(Sale, sale_id)
    # Other users' sales are reported as missing, not forbidden
    if sale is None or (not can_view_all and sale.user_id != viewer.id):
        raise NotFoundError("Sale not found")
    return sale


def sales_stats() -> dict:
    now = utcnow()
    today_start, _ = day_bounds(now.date())
    month_start = datetime(now.year, now.month, 1)

    total_sales = db.session.query(func.count(Sale.id)).scalar() or 0
    today_sales = db.session.query(func.count(Sale.id)).filter(Sale.created_at >= today_start).scalar() or 0
    month_sales = db.session.query(func.count(Sale.id)).filter(Sale.created_at >= month_start).scalar() or 0

    rows = (
        db.session.query(
            Sale.user_id,
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
        )
        .filter(Sale.user_id.isnot(None))
        .group_by(Sale.user_id)
        .order_by(func.count(Sale.id).desc(), Sale.user_id.asc())
        .all()
    )
    by_user = []
    for uid, count, amount in rows:
        user = db.session.get(User, uid)
        by_user.append({
            "userId": uid,
            "userName": user.name if user else "Unknown user",
            "userEmail": user.email if user else "",
            "salesCount": count,
            "totalAmount": from_cents(int(amount)),
        })

    return {
        "totalSales": total_sales,
        "todaySales": today_sales,
        "monthSales": month_sales,
        "salesByUser": by_user,
    }


def _ranked(counter: dict[str, int]) -> list[dict]:
    ordered = sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))
    return [{"name": name, "quantity": qty} for name, qty in ordered[:TOP_N]]


def sales_summary(viewer: User, can_view_all: bool, *, start: datetime | None = None,
                  end: datetime | None = None) -> list[dict]:
    """Per-day rollup (newest day first) of the sales visible to the viewer."""
    sales = list_sales(viewer, can_view_all, start=start, end=end)

    days: dict[str, dict] = {}
    for sale in sales:
        key = sale.created_at.date().isoformat()
        entry = days.get(key)
        if entry is None:
            entry = days[key] = {
                "date": key,
                "salesCount": 0,
                "totalCents": 0,
                "products": defaultdict(int),
                "categories": defaultdict(int),
                "users": defaultdict(lambda: {"count": 0, "amount": 0}),
            }
        entry["salesCount"] += 1
        entry["totalCents"] += sale.total_cents

        user_name = sale.user.name if sale.user else "Unknown user"
        entry["users"][user_name]["count"] += 1
        entry["users"][user_name]["amount"] += sale.total_cents

        for item in sale.items:
            product = item.product
            if product is None:
                continue
            entry["products"][product.name] += item.quantity
            category = product.category.name if product.category else "Uncategorized"
            entry["categories"][category] += item.quantity

    summary = []
    for entry in days.values():
        users = sorted(entry["users"].items(), key=lambda kv: (-kv[1]["amount"], kv[0]))
        summary.append({
            "date": entry["date"],
            "salesCount": entry["salesCount"],
            "totalAmount": from_cents(entry["totalCents"]),
            "topProducts": _ranked(entry["products"]),
            "topCategories": _ranked(entry["categories"]),
            "salesByUser": [
                {"name": name, "count": data["count"], "amount": from_cents(data["amount"])}
                for name, data in users
            ],
        })
    summary.sort(key=lambda e: e["date"], reverse=True)
    return summary
