# Overview: Audit trail writer and queries.

"""
Activity log (audit trail)

log_activity is fire-and-forget: it is called after the primary action has
committed, writes its own row, and never raises. A failed audit write is
rolled back and reported at WARNING so the request that triggered it still
succeeds.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityAction, ActivityLog, User
from ..validation import ValidationError
from femenine.time_utils import day_bounds, to_utc_z, utcnow

MAX_PAGE_SIZE = 100


def log_activity(
    action,
    user_id: int | None = None,
    product_id: int | None = None,
    product_sku: str | None = None,
    details: str | None = None,
) -> ActivityLog | None:
    """Append one audit entry. Returns the entry, or None if it could not be written."""
    try:
        entry = ActivityLog(
            action=ActivityAction(action),
            user_id=user_id,
            product_id=product_id,
            product_sku=product_sku,
            details=details,
            timestamp=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except (SQLAlchemyError, ValueError):
        db.session.rollback()
        current_app.logger.warning(
            "Failed to record activity %s for user_id=%s", action, user_id, exc_info=True
        )
        return None


def list_logs(
    *,
    page: int = 1,
    limit: int = 50,
    action: str | None = None,
    user_id: int | None = None,
    day: date | None = None,
) -> dict:
    """Paginated audit log, newest first."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.session.query(ActivityLog)
    if action:
        try:
            query = query.filter(ActivityLog.action == ActivityAction(action.strip().upper()))
        except ValueError:
            raise ValidationError(f"Unknown action {action!r}")
    if user_id is not None:
        query = query.filter(ActivityLog.user_id == user_id)
    if day is not None:
        start, end = day_bounds(day)
        query = query.filter(ActivityLog.timestamp >= start, ActivityLog.timestamp < end)

    total = query.count()
    logs = (
        query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "logs": [log.to_dict() for log in logs],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


def get_stats() -> dict:
    start, end = day_bounds(utcnow().date())

    total_logs = db.session.query(func.count(ActivityLog.id)).scalar() or 0
    today_logs = (
        db.session.query(func.count(ActivityLog.id))
        .filter(ActivityLog.timestamp >= start, ActivityLog.timestamp < end)
        .scalar()
        or 0
    )
    unique_users = (
        db.session.query(func.count(func.distinct(ActivityLog.user_id)))
        .filter(ActivityLog.user_id.isnot(None))
        .scalar()
        or 0
    )

    top = (
        db.session.query(ActivityLog.user_id, func.count(ActivityLog.id).label("n"))
        .filter(ActivityLog.user_id.isnot(None))
        .group_by(ActivityLog.user_id)
        .order_by(func.count(ActivityLog.id).desc(), ActivityLog.user_id.asc())
        .first()
    )
    most_active = None
    if top:
        user = db.session.get(User, top.user_id)
        if user:
            most_active = {**user.to_summary(), "count": top.n}

    return {
        "totalLogs": total_logs,
        "todayLogs": today_logs,
        "uniqueUsers": unique_users,
        "mostActiveUser": most_active,
    }


def user_logs(user_id: int, limit: int = 50) -> list[ActivityLog]:
    return (
        db.session.query(ActivityLog)
        .filter(ActivityLog.user_id == user_id)
        .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )


def active_sessions() -> list[dict]:
    """
    Users whose most recent LOGIN has no later LOGOUT.

    Derived from the audit trail, so it reflects what users did rather than
    which tokens are still valid.
    """
    last_login = (
        db.session.query(ActivityLog.user_id, func.max(ActivityLog.timestamp).label("at"))
        .filter(ActivityLog.action == ActivityAction.LOGIN, ActivityLog.user_id.isnot(None))
        .group_by(ActivityLog.user_id)
        .all()
    )
    last_logout = dict(
        db.session.query(ActivityLog.user_id, func.max(ActivityLog.timestamp))
        .filter(ActivityLog.action == ActivityAction.LOGOUT, ActivityLog.user_id.isnot(None))
        .group_by(ActivityLog.user_id)
        .all()
    )

    result = []
    for user_id, login_at in last_login:
        logout_at = last_logout.get(user_id)
        if logout_at is not None and logout_at >= login_at:
            continue
        user = db.session.get(User, user_id)
        if user is None:
            continue
        result.append({"user": user.to_summary(), "loginAt": login_at})
    result.sort(key=lambda item: item["loginAt"], reverse=True)
    for item in result:
        item["loginAt"] = to_utc_z(item["loginAt"])
    return result
