# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/femenine/routes/sales.py
"""Sales API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.sales_service import SaleError, InsufficientStockError
from ..validation import ValidationError, NotFoundError, ConflictError, parse_int, require_json_object
from ..decorators import require_auth, require_permission, has_permission
from femenine.time_utils import parse_iso_datetime, parse_end_of_range


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _date_range():
    try:
        start = parse_iso_datetime(request.args.get("startDate"))
        end = parse_end_of_range(request.args.get("endDate"))
    except ValueError:
        raise ValidationError("startDate/endDate must be ISO-8601 dates")
    return start, end


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALES")
def create_sale_route():
    """
    Register a sale.

    Body: {items: [{productId, quantity, price?, discount?}], taxIncluded?, taxRate?}
    Returns 201 {folio, sale}. Stock is decremented in the same transaction;
    409 with details.items when any product is short.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        sale = sales_service.register_sale(data, user_id=g.current_user.id)
        return jsonify({"folio": sale.id, "sale": sale.to_dict()}), 201

    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/quote")
@require_auth
@require_permission("CREATE_SALES")
def quote_sale_route():
    """Price a cart (server-side totals) without registering it."""
    try:
        data = require_json_object(request.get_json(silent=True))
        return jsonify(sales_service.quote_sale(data)), 200

    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to quote sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Sales history, newest first.

    Query params: userId, startDate, endDate. Without VIEW_ALL_SALES only the
    caller's own sales are returned.
    """
    try:
        start, end = _date_range()
        user_id = parse_int(request.args.get("userId"), "userId", minimum=1, required=False)
        sales = sales_service.list_sales(
            g.current_user,
            has_permission("VIEW_ALL_SALES"),
            user_id=user_id,
            start=start,
            end=end,
        )
        return jsonify([s.to_dict() for s in sales]), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/stats")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_stats_route():
    try:
        return jsonify(sales_service.sales_stats()), 200
    except Exception:
        current_app.logger.exception("Failed to compute sales stats")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/summary")
@require_auth
@require_permission("VIEW_SALES")
def sales_summary_route():
    try:
        start, end = _date_range()
        summary = sales_service.sales_summary(
            g.current_user,
            has_permission("VIEW_ALL_SALES"),
            start=start,
            end=end,
        )
        return jsonify(summary), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute sales summary")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.current_user, has_permission("VIEW_ALL_SALES"))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"sale": sale.to_dict()}), 200
