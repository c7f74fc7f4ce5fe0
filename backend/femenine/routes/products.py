# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/femenine/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS (low-stock: VIEW_INVENTORY,
  deletability: EDIT_PRODUCTS or DELETE_PRODUCTS)
- Create/import require CREATE_PRODUCTS, edits EDIT_PRODUCTS,
  delete DELETE_PRODUCTS, restock MANAGE_INVENTORY, label printing PRINT_LABELS
"""
import csv
import io

from flask import Blueprint, request, g, current_app

from ..services import products_service
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    parse_bool,
    require_json_object,
)
from ..decorators import require_auth, require_permission, require_any_permission

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

XLSX_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List products, newest first.

    Query params:
    - includeInactive: 'true' | 'false' (default false)
    """
    try:
        include_inactive = parse_bool(request.args.get("includeInactive"), "includeInactive")
    except ValidationError as e:
        return {"error": str(e)}, 400

    products = products_service.list_products(include_inactive=include_inactive)
    return {"products": [p.to_dict() for p in products], "count": len(products)}, 200


@products_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock():
    products = products_service.list_low_stock()
    return {"products": [p.to_dict() for p in products], "count": len(products)}, 200


@products_bp.get("/sku/<string:sku>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_by_sku(sku: str):
    """Barcode-scanner lookup."""
    try:
        product = products_service.get_product_by_sku(sku)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"product": product.to_dict()}, 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    products_service.record_view(product, g.current_user.id)
    return {"product": product.to_dict()}, 200


@products_bp.get("/<int:product_id>/deletability")
@require_auth
@require_any_permission("EDIT_PRODUCTS", "DELETE_PRODUCTS")
def deletability(product_id: int):
    """Whether DELETE will remove the product or only deactivate it."""
    try:
        return products_service.get_deletability(product_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_permission("CREATE_PRODUCTS")
def create_product_route():
    """
    Create one product (JSON object) or a batch (JSON list).

    Batches are all-or-nothing.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        return {"error": "Invalid JSON payload"}, 400
    payloads = payload if isinstance(payload, list) else [payload]

    try:
        created = products_service.create_products(payloads, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create products")
        return {"error": "Internal server error"}, 500

    message = "Product created" if len(created) == 1 else f"{len(created)} products created"
    return {"message": message, "products": [p.to_dict() for p in created]}, 201


def _rows_from_upload(file) -> list[dict]:
    filename = file.filename or ""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext == "csv":
        stream = io.StringIO(file.stream.read().decode("utf-8-sig"))
        return [dict(row) for row in csv.DictReader(stream)]
    if ext in XLSX_EXTENSIONS:
        from openpyxl import load_workbook
        wb = load_workbook(io.BytesIO(file.stream.read()), data_only=True, read_only=True)
        data = list(wb.active.values)
        if not data:
            return []
        headers = [str(h).strip() if h is not None else "" for h in data[0]]
        return [
            {headers[i]: row[i] for i in range(min(len(headers), len(row)))}
            for row in data[1:]
            if any(cell not in (None, "") for cell in row)
        ]
    raise ValidationError("Unsupported file format (expected .csv or .xlsx)")


@products_bp.post("/import")
@require_auth
@require_permission("CREATE_PRODUCTS")
def import_products_route():
    """
    Bulk import.

    Either JSON {products: [...]} or a multipart upload with a `file` field
    (.csv or .xlsx, header row using the same keys).
    """
    try:
        if "file" in request.files:
            try:
                rows = _rows_from_upload(request.files["file"])
            except ValidationError:
                raise
            except Exception:
                current_app.logger.warning("Failed to parse import upload", exc_info=True)
                return {"error": "Failed to parse upload"}, 400
        else:
            data = require_json_object(request.get_json(silent=True))
            rows = data.get("products")

        result = products_service.import_products(rows, user_id=g.current_user.id)
        return result, 200

    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Product import failed")
        return {"error": "Internal server error"}, 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("EDIT_PRODUCTS")
def update_product_route(product_id: int):
    try:
        payload = require_json_object(request.get_json(silent=True))
        product = products_service.update_product(product_id, payload, user_id=g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return {"message": "Product updated", "product": product.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product_route(product_id: int):
    """
    Delete a product without history; deactivate one with history.

    Response `type` is 'deleted' or 'deactivated'.
    """
    try:
        result = products_service.delete_product(product_id, user_id=g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    if result["type"] == "deleted":
        message = "Product deleted"
    else:
        message = "Product deactivated because it has sales, purchase or stock history"
    return {"message": message, **result}, 200


@products_bp.patch("/<int:product_id>/reactivate")
@require_auth
@require_permission("EDIT_PRODUCTS")
def reactivate_product_route(product_id: int):
    try:
        product = products_service.reactivate_product(product_id, user_id=g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to reactivate product")
        return {"error": "Internal server error"}, 500

    return {"message": "Product reactivated", "product": product.to_dict()}, 200


@products_bp.post("/<int:product_id>/restock")
@require_auth
@require_permission("MANAGE_INVENTORY")
def restock_product_route(product_id: int):
    """Body: {quantity: int > 0, note?}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        result = products_service.restock_product(
            product_id,
            data.get("quantity"),
            user_id=g.current_user.id,
            note=data.get("note"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return {"error": "Internal server error"}, 500

    return {"message": "Stock updated", **result}, 200


@products_bp.post("/<int:product_id>/print")
@require_auth
@require_permission("PRINT_LABELS")
def print_label_route(product_id: int):
    """Body: {copies?: int}. Records the print in the activity log."""
    try:
        data = require_json_object(request.get_json(silent=True))
        result = products_service.print_label(product_id, data.get("copies"), user_id=g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to register label print")
        return {"error": "Internal server error"}, 500

    return {"message": "Print registered", **result}, 200
