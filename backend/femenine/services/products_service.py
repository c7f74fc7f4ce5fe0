# backend/femenine/services/products_service.py
"""
Products Service

Product CRUD, lifecycle (delete vs deactivate, reactivate), restock and
bulk import. Every mutation commits first and records its ActivityLog entry
afterwards.
"""
from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import (
    ActivityAction,
    Brand,
    Category,
    Product,
    PurchaseItem,
    SaleItem,
    StockMovement,
    Supplier,
)
from ..money import to_cents
from ..validation import (
    MAX_QUANTITY,
    ConflictError,
    NotFoundError,
    ValidationError,
    clean_str,
    parse_bool,
    parse_int,
)
from . import activity_service, catalog_service
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .sku_service import generate_sku

# JSON key -> (column, max_length) for plain text fields
TEXT_FIELDS = {
    "name": ("name", 255),
    "description": ("description", 2000),
    "size": ("size", 32),
    "color": ("color", 64),
    "baseCode": ("base_code", 64),
    "barcode": ("barcode", 64),
}

PRICE_FIELDS = {
    "salePrice": "sale_price_cents",
    "costPrice": "cost_price_cents",
}

REFERENCE_FIELDS = {
    "brandId": ("brand_id", Brand),
    "categoryId": ("category_id", Category),
    "supplierId": ("supplier_id", Supplier),
}

MAX_IMPORT_ERRORS = 20
MAX_LABEL_COPIES = 500


def parse_product_payload(payload: dict, *, partial: bool = False) -> dict:
    """
    Validate a product JSON object and map it onto column values.

    partial=False (create): name is required, missing fields get defaults.
    partial=True (update): only keys present in the payload are returned.
    """
    values: dict = {}

    for key, (column, max_length) in TEXT_FIELDS.items():
        if key in payload or (key == "name" and not partial):
            values[column] = clean_str(
                payload.get(key), key, max_length=max_length, required=(key == "name")
            )

    if "sku" in payload:
        sku = clean_str(payload.get("sku"), "sku", max_length=64, required=partial)
        if sku is not None:
            values["sku"] = sku.upper()

    for key, column in PRICE_FIELDS.items():
        if key in payload:
            raw = payload.get(key)
            values[column] = None if raw is None or raw == "" else to_cents(raw, key)

    stock_key = "stockCached" if "stockCached" in payload else "stock"
    if stock_key in payload:
        values["stock_cached"] = parse_int(payload.get(stock_key), stock_key, minimum=0, maximum=MAX_QUANTITY)
    elif not partial:
        values["stock_cached"] = 0

    if "stockMin" in payload:
        values["stock_min"] = parse_int(payload.get("stockMin"), "stockMin", minimum=0, maximum=MAX_QUANTITY)
    elif not partial:
        values["stock_min"] = 0

    if "isActive" in payload:
        values["is_active"] = parse_bool(payload.get("isActive"), "isActive", default=True)

    for key, (column, model) in REFERENCE_FIELDS.items():
        if key in payload:
            ref_id = parse_int(payload.get(key), key, minimum=1, required=False)
            catalog_service.ensure_exists(model, ref_id)
            values[column] = ref_id

    return values


def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def list_products(include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def list_low_stock() -> list[Product]:
    """Active products at or below their minimum stock, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_cached <= Product.stock_min)
        .order_by(Product.stock_cached.asc(), Product.name.asc())
        .all()
    )


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def get_product_by_sku(sku: str) -> Product:
    product = db.session.query(Product).filter(Product.sku == sku.strip().upper()).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_products(payloads: list[dict], user_id: int | None = None) -> list[Product]:
    """
    Create one or more products in a single transaction.

    Every payload is validated before anything is written; one bad payload
    rejects the whole batch.
    """
    if not payloads:
        raise ValidationError("At least one product is required")

    parsed = []
    reserved: set[str] = set()
    for index, payload in enumerate(payloads):
        if not isinstance(payload, dict):
            raise ValidationError(f"Product #{index + 1} must be an object")
        try:
            values = parse_product_payload(payload)
        except ValidationError as e:
            if len(payloads) == 1:
                raise
            raise ValidationError(f"Product #{index + 1}: {e}")

        sku = values.get("sku")
        if sku:
            if sku in reserved or _sku_taken(sku):
                raise ConflictError(f"SKU {sku} already exists")
        else:
            sku = generate_sku(reserved=reserved)
            values["sku"] = sku
        reserved.add(sku)
        parsed.append(values)

    products = [Product(**values) for values in parsed]
    db.session.add_all(products)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU already exists")

    for product in products:
        activity_service.log_activity(
            ActivityAction.CREATE_PRODUCT,
            user_id=user_id,
            product_id=product.id,
            product_sku=product.sku,
            details=f"Created product {product.name}",
        )
    return products


def update_product(product_id: int, payload: dict, user_id: int | None = None) -> Product:
    """Partial update. Unknown keys are ignored."""
    product = get_product(product_id)
    values = parse_product_payload(payload, partial=True)

    if "sku" in values and values["sku"] != product.sku and _sku_taken(values["sku"], exclude_id=product.id):
        raise ConflictError(f"SKU {values['sku']} already exists")

    changed = sorted(
        key for key, value in values.items() if getattr(product, key) != value
    )
    for key, value in values.items():
        setattr(product, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU already exists")
    except StaleDataError:
        db.session.rollback()
        raise ConflictError("Product was modified by another request, reload and try again")

    activity_service.log_activity(
        ActivityAction.UPDATE_PRODUCT,
        user_id=user_id,
        product_id=product.id,
        product_sku=product.sku,
        details=f"Updated fields: {', '.join(changed)}" if changed else "No changes",
    )
    return product


def get_deletability(product_id: int) -> dict:
    """
    A product can be physically deleted only when nothing references it:
    no stock movements, no sale items and no purchase items.
    """
    product = get_product(product_id)
    movements = db.session.query(StockMovement.id).filter(StockMovement.product_id == product.id).count()
    sales = db.session.query(SaleItem.id).filter(SaleItem.product_id == product.id).count()
    purchases = db.session.query(PurchaseItem.id).filter(PurchaseItem.product_id == product.id).count()
    has_history = bool(movements or sales or purchases)
    return {
        "canBeDeleted": not has_history,
        "hasHistory": has_history,
        "details": {
            "movements": movements,
            "sales": sales,
            "purchases": purchases,
        },
    }


def delete_product(product_id: int, user_id: int | None = None) -> dict:
    """
    Delete the product if it has no history, otherwise deactivate it.

    Returns {"type": "deleted" | "deactivated", "product": {...}}.
    """
    product = get_product(product_id)
    deletability = get_deletability(product.id)
    sku, name = product.sku, product.name

    if deletability["canBeDeleted"]:
        snapshot = product.to_dict()
        db.session.delete(product)
        db.session.commit()
        result = {"type": "deleted", "product": snapshot}
        details = f"Deleted product {name}"
    else:
        product.is_active = False
        db.session.commit()
        result = {"type": "deactivated", "product": product.to_dict()}
        details = f"Deactivated product {name} (has history)"

    activity_service.log_activity(
        ActivityAction.DELETE_PRODUCT,
        user_id=user_id,
        product_id=product_id,
        product_sku=sku,
        details=details,
    )
    return result


def reactivate_product(product_id: int, user_id: int | None = None) -> Product:
    product = get_product(product_id)
    if product.is_active:
        raise ConflictError("Product is already active")

    product.is_active = True
    db.session.commit()

    activity_service.log_activity(
        ActivityAction.UPDATE_PRODUCT,
        user_id=user_id,
        product_id=product.id,
        product_sku=product.sku,
        details=f"Reactivated product {product.name}",
    )
    return product


def restock_product(product_id: int, quantity, user_id: int | None = None, note: str | None = None) -> dict:
    """
    Add incoming stock: atomic increment plus an IN movement, one transaction.
    """
    quantity = parse_int(quantity, "quantity", minimum=1, maximum=MAX_QUANTITY)
    note = clean_str(note, "note", max_length=255)

    def _op():
        begin_immediate()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        previous = product.stock_cached

        db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(
                stock_cached=Product.stock_cached + quantity,
                version_id=Product.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        db.session.add(StockMovement(
            product_id=product.id,
            type=StockMovement.TYPE_IN,
            quantity=quantity,
            user_id=user_id,
            note=note or "Restock",
        ))
        db.session.commit()
        db.session.refresh(product)
        return product, previous

    product, previous = run_with_retry(_op)

    activity_service.log_activity(
        ActivityAction.UPDATE_PRODUCT,
        user_id=user_id,
        product_id=product.id,
        product_sku=product.sku,
        details=f"Restocked {quantity} unit(s): {previous} -> {product.stock_cached}",
    )
    return {
        "product": product.to_dict(),
        "previousStock": previous,
        "newStock": product.stock_cached,
        "quantity": quantity,
    }


def record_view(product: Product, user_id: int | None) -> None:
    activity_service.log_activity(
        ActivityAction.VIEW_PRODUCT,
        user_id=user_id,
        product_id=product.id,
        product_sku=product.sku,
        details=f"Viewed product {product.name}",
    )


def print_label(product_id: int, copies=None, user_id: int | None = None) -> dict:
    """
    Record a barcode label print request.

    The actual printing happens on the client/printer side; the server only
    checks the product and keeps the audit entry.
    """
    product = get_product(product_id)
    copies = parse_int(copies, "copies", minimum=1, maximum=MAX_LABEL_COPIES, required=False) or 1

    activity_service.log_activity(
        ActivityAction.PRINT_BARCODE,
        user_id=user_id,
        product_id=product.id,
        product_sku=product.sku,
        details=f"Printed {copies} label(s) for {product.name}",
    )
    return {"product": product.to_dict(), "copies": copies}


def _import_row(row: dict, reserved: set[str]) -> Product | None:
    """
    Build a Product from one import row.

    Returns None when the SKU already exists (duplicate). Raises
    ValidationError on bad data. Catalog entries named in the row are
    created on demand.
    """
    name = clean_str(row.get("name"), "name", max_length=255)
    if not name:
        raise ValidationError("Product name is required")

    sku = clean_str(row.get("sku"), "sku", max_length=64)
    if sku:
        sku = sku.upper()
        if sku in reserved or _sku_taken(sku):
            return None

    sale_price = row.get("salePrice")
    cost_price = row.get("costPrice")
    values = {
        "name": name,
        "description": clean_str(row.get("description"), "description", max_length=2000),
        "size": clean_str(row.get("size"), "size", max_length=32),
        "color": clean_str(row.get("color"), "color", max_length=64),
        "base_code": clean_str(row.get("baseCode"), "baseCode", max_length=64),
        "sale_price_cents": to_cents(sale_price, "salePrice") if sale_price not in (None, "") else None,
        "cost_price_cents": to_cents(cost_price, "costPrice") if cost_price not in (None, "") else None,
        "stock_cached": parse_int(row.get("stock"), "stock", minimum=0, maximum=MAX_QUANTITY, required=False) or 0,
        "stock_min": parse_int(row.get("stockMin"), "stockMin", minimum=0, maximum=MAX_QUANTITY, required=False) or 0,
    }

    values["category_id"] = catalog_service.find_or_create(Category, row.get("category"))
    values["brand_id"] = catalog_service.find_or_create(Brand, row.get("brand"))
    values["supplier_id"] = catalog_service.find_or_create(Supplier, row.get("supplier"))

    values["sku"] = sku or generate_sku(reserved=reserved)
    reserved.add(values["sku"])
    return Product(**values)


def import_products(rows: list, user_id: int | None = None) -> dict:
    """
    Import spreadsheet rows (already parsed by the client).

    Rows are reported by spreadsheet row number (the header is row 1).
    Bad rows are skipped and reported; good rows are committed together.
    """
    if not isinstance(rows, list) or not rows:
        raise ValidationError("products must be a non-empty list")

    success_count = 0
    error_count = 0
    duplicate_count = 0
    errors: list[str] = []
    created: list[Product] = []
    reserved: set[str] = set()

    for index, row in enumerate(rows):
        row_number = index + 2
        if not isinstance(row, dict):
            error_count += 1
            errors.append(f"Row {row_number}: invalid row")
            continue
        try:
            product = _import_row(row, reserved)
        except ValidationError as e:
            error_count += 1
            errors.append(f"Row {row_number}: {e}")
            continue
        if product is None:
            duplicate_count += 1
            continue
        db.session.add(product)
        created.append(product)
        success_count += 1

    db.session.commit()

    for product in created:
        activity_service.log_activity(
            ActivityAction.CREATE_PRODUCT,
            user_id=user_id,
            product_id=product.id,
            product_sku=product.sku,
            details=f"Imported product {product.name}",
        )

    message = f"Imported {success_count} product(s)"
    if duplicate_count:
        message += f", {duplicate_count} duplicate(s) skipped"
    if error_count:
        message += f", {error_count} error(s)"

    return {
        "success": error_count == 0,
        "message": message,
        "successCount": success_count,
        "errorCount": error_count,
        "duplicateCount": duplicate_count,
        "errors": errors[:MAX_IMPORT_ERRORS],
    }
