# Overview: CSV / XLSX exports of products, sales, users and the audit trail.

"""
Data export

Each dataset is a list of flat row dicts with a fixed column order.
Writers turn those rows into file bytes; routes only add the HTTP headers.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from ..extensions import db
from ..models import ActivityLog, Product, Sale, User
from ..money import from_cents
from ..validation import NotFoundError, ValidationError
from femenine.time_utils import to_utc_z, utcnow
from . import products_service

FORMATS = {
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

# Datasets that need a permission on top of EXPORT_DATA
EXTRA_PERMISSIONS = {
    "users": "VIEW_USERS",
    "activity_logs": "VIEW_LOGS",
}

PRODUCT_COLUMNS = [
    "id", "sku", "barcode", "name", "description", "brand", "category", "supplier",
    "size", "color", "baseCode", "salePrice", "costPrice", "stock", "stockMin", "isActive",
]


def _product_row(p: Product) -> dict:
    return {
        "id": p.id,
        "sku": p.sku,
        "barcode": p.barcode,
        "name": p.name,
        "description": p.description,
        "brand": p.brand.name if p.brand else None,
        "category": p.category.name if p.category else None,
        "supplier": p.supplier.name if p.supplier else None,
        "size": p.size,
        "color": p.color,
        "baseCode": p.base_code,
        "salePrice": from_cents(p.sale_price_cents),
        "costPrice": from_cents(p.cost_price_cents),
        "stock": p.stock_cached,
        "stockMin": p.stock_min,
        "isActive": p.is_active,
    }


def _products(**_) -> tuple[list[str], list[dict]]:
    products = products_service.list_products(include_inactive=True)
    return PRODUCT_COLUMNS, [_product_row(p) for p in products]


def _low_stock(**_) -> tuple[list[str], list[dict]]:
    return PRODUCT_COLUMNS, [_product_row(p) for p in products_service.list_low_stock()]


def _sales(start: datetime | None = None, end: datetime | None = None, **_) -> tuple[list[str], list[dict]]:
    """One row per sale item, with the sale totals repeated."""
    columns = [
        "folio", "date", "seller", "sku", "product", "quantity", "price", "discount",
        "lineTotal", "subtotal", "taxAmount", "total", "taxRate", "taxIncluded",
    ]
    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)

    rows = []
    for sale in query.order_by(Sale.created_at.asc(), Sale.id.asc()).all():
        for item in sale.items:
            rows.append({
                "folio": sale.id,
                "date": to_utc_z(sale.created_at),
                "seller": sale.user.name if sale.user else None,
                "sku": item.product.sku if item.product else None,
                "product": item.product.name if item.product else None,
                "quantity": item.quantity,
                "price": from_cents(item.price_cents),
                "discount": from_cents(item.discount_cents),
                "lineTotal": from_cents(item.line_total_cents),
                "subtotal": from_cents(sale.subtotal_cents),
                "taxAmount": from_cents(sale.tax_cents),
                "total": from_cents(sale.total_cents),
                "taxRate": float(sale.tax_rate),
                "taxIncluded": sale.tax_included,
            })
    return columns, rows


def _users(**_) -> tuple[list[str], list[dict]]:
    columns = ["id", "email", "name", "role", "isActive", "createdAt", "lastLogin"]
    users = db.session.query(User).order_by(User.id.asc()).all()
    return columns, [{k: u.to_dict().get(k) for k in columns} for u in users]


def _activity_logs(start: datetime | None = None, end: datetime | None = None, **_) -> tuple[list[str], list[dict]]:
    columns = ["id", "timestamp", "action", "user", "productId", "productSku", "details"]
    query = db.session.query(ActivityLog)
    if start is not None:
        query = query.filter(ActivityLog.timestamp >= start)
    if end is not None:
        query = query.filter(ActivityLog.timestamp <= end)
    rows = [
        {
            "id": log.id,
            "timestamp": to_utc_z(log.timestamp),
            "action": log.action.value,
            "user": log.user.email if log.user else None,
            "productId": log.product_id,
            "productSku": log.product_sku,
            "details": log.details,
        }
        for log in query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc()).all()
    ]
    return columns, rows


DATASETS = {
    "products": _products,
    "low_stock": _low_stock,
    "sales": _sales,
    "users": _users,
    "activity_logs": _activity_logs,
}


def _cell(value):
    if isinstance(value, bool):
        return "yes" if value else "no"
    return "" if value is None else value


def write_csv(columns: list[str], rows: list[dict]) -> bytes:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns)
    writer.writeheader()
    for row in rows:
        writer.writerow({k: _cell(row.get(k)) for k in columns})
    # BOM so spreadsheet apps detect UTF-8
    return buf.getvalue().encode("utf-8-sig")


def write_xlsx(columns: list[str], rows: list[dict], title: str = "export") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append(columns)
    for row in rows:
        ws.append([_cell(row.get(k)) for k in columns])

    for i, header in enumerate(columns, 1):
        ws.column_dimensions[get_column_letter(i)].width = max(10, min(40, len(header) + 2))

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def build_export(dataset: str, fmt: str, **filters) -> tuple[bytes, str, str]:
    """
    Render a dataset. Returns (payload, mimetype, filename).

    Raises NotFoundError for an unknown dataset and ValidationError for an
    unknown format.
    """
    builder = DATASETS.get(dataset)
    if builder is None:
        raise NotFoundError(f"Unknown dataset {dataset!r}")
    fmt = (fmt or "csv").lower()
    if fmt not in FORMATS:
        raise ValidationError(f"Unsupported format {fmt!r} (expected csv or xlsx)")

    columns, rows = builder(**filters)
    if fmt == "csv":
        payload = write_csv(columns, rows)
    else:
        payload = write_xlsx(columns, rows, title=dataset)

    filename = f"{dataset}_{utcnow():%Y%m%d}.{fmt}"
    return payload, FORMATS[fmt], filename
