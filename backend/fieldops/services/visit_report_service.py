# Overview: Service-layer operations for visit reporting; encapsulates read-only aggregate queries.

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from sqlalchemy import case, func

from fieldops.extensions import db
from fieldops.models import User, VisitLog
from fieldops.services.calendar_service import business_today, month_to_date_range
from fieldops.validation import ValidationError, require_date


def monthly_visit_count(user_id: int, now: datetime | None = None) -> int:
    """Completed visits for user_id from the 1st of the business month through today."""
    start, end = month_to_date_range(business_today(now))
    return db.session.query(func.count(VisitLog.id)).filter(
        VisitLog.user_id == user_id,
        VisitLog.is_completed.is_(True),
        VisitLog.visit_date >= start,
        VisitLog.visit_date <= end,
    ).scalar() or 0


def monthly_visit_counts(user_ids: Iterable[int], now: datetime | None = None) -> dict[int, int]:
    """Same as monthly_visit_count for many users; users with no visits are 0."""
    user_ids = list(user_ids)
    if not user_ids:
        return {}
    start, end = month_to_date_range(business_today(now))
    rows = db.session.query(VisitLog.user_id, func.count(VisitLog.id)).filter(
        VisitLog.user_id.in_(user_ids),
        VisitLog.is_completed.is_(True),
        VisitLog.visit_date >= start,
        VisitLog.visit_date <= end,
    ).group_by(VisitLog.user_id).all()

    counts = {uid: 0 for uid in user_ids}
    for uid, count in rows:
        counts[uid] = int(count)
    return counts


def visits_report(start, end) -> list[dict]:
    """
    Per-user visit log totals between start and end (inclusive).

    total_visits counts every logged visit (including toggled-off ones),
    completed_visits only completed ones.
    """
    start_d: date = require_date(start, "start_date")
    end_d: date = require_date(end, "end_date")
    if start_d > end_d:
        raise ValidationError("start_date must be on or before end_date")

    completed = func.sum(case((VisitLog.is_completed.is_(True), 1), else_=0))
    rows = (
        db.session.query(
            VisitLog.user_id,
            User.full_name,
            User.username,
            User.role,
            func.count(VisitLog.id).label("total_visits"),
            completed.label("completed_visits"),
        )
        .join(User, User.id == VisitLog.user_id)
        .filter(VisitLog.visit_date >= start_d, VisitLog.visit_date <= end_d)
        .group_by(VisitLog.user_id, User.full_name, User.username, User.role)
        .order_by(User.full_name, User.username)
        .all()
    )

    return [
        {
            "user_id": user_id,
            "employee_name": full_name,
            "username": username,
            "role": role,
            "total_visits": int(total or 0),
            "completed_visits": int(done or 0),
        }
        for user_id, full_name, username, role, total, done in rows
    ]
