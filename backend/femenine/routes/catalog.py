# Overview: Flask API routes for brands, categories and suppliers.

"""
Catalog routes: /api/catalog/{brands,categories,suppliers}

Reads require VIEW_PRODUCTS, writes MANAGE_CATALOG.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, NotFoundError, ConflictError, require_json_object
from ..decorators import require_auth, require_permission

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")

KIND_PATTERN = "<any(brands, categories, suppliers):kind>"


@catalog_bp.get(f"/{KIND_PATTERN}")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_entries(kind: str):
    entries = catalog_service.list_entries(kind)
    return jsonify([e.to_dict() for e in entries]), 200


@catalog_bp.get(f"/{KIND_PATTERN}/<int:entry_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_entry(kind: str, entry_id: int):
    try:
        return jsonify(catalog_service.get_entry(kind, entry_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@catalog_bp.post(f"/{KIND_PATTERN}")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_entry(kind: str):
    try:
        data = require_json_object(request.get_json(silent=True))
        entry = catalog_service.create_entry(kind, data)
        return jsonify(entry.to_dict()), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create %s entry", kind)
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put(f"/{KIND_PATTERN}/<int:entry_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_entry(kind: str, entry_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
        entry = catalog_service.update_entry(kind, entry_id, data)
        return jsonify(entry.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update %s entry", kind)
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete(f"/{KIND_PATTERN}/<int:entry_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_entry(kind: str, entry_id: int):
    try:
        catalog_service.delete_entry(kind, entry_id)
        return "", 204
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete %s entry", kind)
        return jsonify({"error": "Internal server error"}), 500
