# Overview: Flask API routes for system configuration (SystemConfig).

from flask import Blueprint, request, jsonify, current_app

from ..services import config_service
from ..validation import ValidationError, NotFoundError, require_json_object
from ..decorators import require_auth, require_permission

config_bp = Blueprint("config", __name__, url_prefix="/api/config")


@config_bp.get("")
@require_auth
@require_permission("VIEW_SETTINGS")
def get_configs():
    """All settings as a flat {key: value} object."""
    return jsonify(config_service.get_all()), 200


@config_bp.post("")
@require_auth
@require_permission("MANAGE_SETTINGS")
def save_configs():
    """Bulk upsert {key: value, ...}. Empty values are skipped."""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Expected an object of key/value pairs"}), 400
        entries = config_service.set_many(data)
        return jsonify({"updated": len(entries), "configs": [e.to_dict() for e in entries]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to save configuration")
        return jsonify({"error": "Internal server error"}), 500


@config_bp.get("/<string:key>")
@require_auth
@require_permission("VIEW_SETTINGS")
def get_config(key: str):
    try:
        entry = config_service.get_entry(key)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"key": entry.key, "value": entry.value}), 200


@config_bp.put("/<string:key>")
@require_auth
@require_permission("MANAGE_SETTINGS")
def put_config(key: str):
    """Body: {value, description?}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        entry = config_service.set_value(key, data.get("value"), data.get("description"))
        return jsonify(entry.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update configuration %s", key)
        return jsonify({"error": "Internal server error"}), 500
