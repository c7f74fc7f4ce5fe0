# Overview: Flask API routes for the activity audit trail.

from datetime import date

from flask import Blueprint, request, jsonify, g

from ..services import activity_service
from ..validation import ValidationError, parse_int
from ..decorators import require_auth, require_permission, has_permission

logs_bp = Blueprint("logs", __name__, url_prefix="/api/logs")


@logs_bp.get("")
@require_auth
@require_permission("VIEW_LOGS")
def list_logs_route():
    """
    Query params: page, limit (max 100), action, userId, date (YYYY-MM-DD).
    """
    try:
        page = parse_int(request.args.get("page"), "page", minimum=1, required=False) or 1
        limit = parse_int(request.args.get("limit"), "limit", minimum=1, required=False) or 50
        user_id = parse_int(request.args.get("userId"), "userId", minimum=1, required=False)
        raw_date = request.args.get("date")
        try:
            day = date.fromisoformat(raw_date) if raw_date else None
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")

        result = activity_service.list_logs(
            page=page,
            limit=limit,
            action=request.args.get("action"),
            user_id=user_id,
            day=day,
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@logs_bp.get("/stats")
@require_auth
@require_permission("VIEW_LOGS")
def log_stats_route():
    return jsonify(activity_service.get_stats()), 200


@logs_bp.get("/user/<int:user_id>")
@require_auth
def user_logs_route(user_id: int):
    """Last 50 entries of one user. Users may always read their own."""
    if user_id != g.current_user.id and not has_permission("VIEW_LOGS"):
        return jsonify({"error": "Permission denied", "required_permission": "VIEW_LOGS"}), 403
    logs = activity_service.user_logs(user_id)
    return jsonify({"logs": [log.to_dict() for log in logs]}), 200


@logs_bp.get("/sessions")
@require_auth
@require_permission("VIEW_LOGS")
def active_sessions_route():
    return jsonify({"sessions": activity_service.active_sessions()}), 200
