# Overview: Flask API routes for CSV/XLSX downloads.

from flask import Blueprint, Response, request, jsonify, current_app

from ..services import export_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission, has_permission
from femenine.time_utils import parse_iso_datetime, parse_end_of_range

exports_bp = Blueprint("exports", __name__, url_prefix="/api/exports")


@exports_bp.get("/<string:dataset>")
@require_auth
@require_permission("EXPORT_DATA")
def export_dataset(dataset: str):
    """
    Download a dataset as an attachment.

    Query params: format=csv|xlsx (default csv); startDate/endDate for
    sales and activity_logs.
    """
    extra = export_service.EXTRA_PERMISSIONS.get(dataset)
    if extra and not has_permission(extra):
        return jsonify({"error": "Permission denied", "required_permission": extra}), 403

    try:
        try:
            start = parse_iso_datetime(request.args.get("startDate"))
            end = parse_end_of_range(request.args.get("endDate"))
        except ValueError:
            raise ValidationError("startDate/endDate must be ISO-8601 dates")

        payload, mimetype, filename = export_service.build_export(
            dataset,
            request.args.get("format", "csv"),
            start=start,
            end=end,
        )
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Export of %s failed", dataset)
        return jsonify({"error": "Internal server error"}), 500

    return Response(
        payload,
        content_type=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
