# Overview: Service-layer reconciliation of route schedules against visit evidence.

"""
Reconciliation Engine

Projects schedule templates onto the calendar window and merges in visit
log evidence, answering "which visits are due, and which are done".

WHY RECOMPUTE: Templates and evidence change independently and out of order
(a snapshot may arrive before or after a manual toggle). The projection is
derived on every read and never stored, so it cannot go stale.

PERFORMANCE: Evidence for every (template, date) pair is loaded with ONE
query (schedule ids x window date range) and indexed in memory. Never issue
a per-pair lookup here; this runs on every schedule read.

ORDERING: visit_date ascending (today first), then store name, then user
name, then schedule id, for stable client rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from ..extensions import db
from ..models import VisitLog
from .calendar_service import WindowDay
from . import schedule_service
from fieldops.time_utils import to_utc_z


@dataclass
class ProjectedVisit:
    route_schedule_id: int
    user_id: int
    store_id: int
    day_of_week: int
    visit_date: date
    is_completed: bool = False
    completed_at: datetime | None = None
    visit_log_id: int | None = None
    completed_by_snapshot_id: int | None = None
    schedule: dict = field(default_factory=dict)

    def sort_key(self):
        return (
            self.visit_date,
            self.schedule.get("store_name") or "",
            self.schedule.get("user_name") or self.schedule.get("username") or "",
            self.route_schedule_id,
        )

    def to_dict(self) -> dict:
        return {
            **self.schedule,
            "id": self.route_schedule_id,
            "route_schedule_id": self.route_schedule_id,
            "user_id": self.user_id,
            "store_id": self.store_id,
            "day_of_week": self.day_of_week,
            "visit_date": self.visit_date.isoformat(),
            "is_completed": self.is_completed,
            "completed_at": to_utc_z(self.completed_at),
            "visit_log_id": self.visit_log_id,
            "completed_by_snapshot_id": self.completed_by_snapshot_id,
        }


def load_evidence(schedule_ids, window: list[WindowDay]) -> dict[tuple[int, date], VisitLog]:
    """All visit logs for the given schedules inside the window, keyed by (schedule_id, date)."""
    if not schedule_ids or not window:
        return {}
    start = window[0].date
    end = window[-1].date
    logs = db.session.query(VisitLog).filter(
        VisitLog.route_schedule_id.in_(list(schedule_ids)),
        VisitLog.visit_date >= start,
        VisitLog.visit_date <= end,
    ).all()
    return {(log.route_schedule_id, log.visit_date): log for log in logs}


def reconcile(templates, window: list[WindowDay]) -> list[ProjectedVisit]:
    """
    Pure merge step: templates x window x evidence.

    `templates` is the (RouteSchedule, display) list from
    schedule_service.query_templates. Produces exactly one row per template
    and matching window day inside the template's effective bounds.
    """
    by_day: dict[int, list] = {}
    for schedule, display in templates:
        by_day.setdefault(schedule.day_of_week, []).append((schedule, display))

    pairs = []
    for day in window:
        for schedule, display in by_day.get(day.day_of_week, []):
            if schedule.is_effective_on(day.date):
                pairs.append((schedule, display, day))

    evidence = load_evidence({schedule.id for schedule, _, _ in pairs}, window)

    projected = []
    for schedule, display, day in pairs:
        visit = ProjectedVisit(
            route_schedule_id=schedule.id,
            user_id=schedule.user_id,
            store_id=schedule.store_id,
            day_of_week=schedule.day_of_week,
            visit_date=day.date,
            schedule={
                **display,
                "is_recurring": schedule.is_recurring,
                "created_by": schedule.created_by,
            },
        )
        log = evidence.get((schedule.id, day.date))
        if log is not None:
            visit.is_completed = bool(log.is_completed)
            visit.completed_at = log.completed_at
            visit.visit_log_id = log.id
            visit.completed_by_snapshot_id = log.completed_by_snapshot_id
        projected.append(visit)

    projected.sort(key=ProjectedVisit.sort_key)
    return projected


def project_visits(window: list[WindowDay], *, user_id: int | None = None, user_ids=None) -> list[ProjectedVisit]:
    """Projection for one user, a set of users, or everyone (both None)."""
    if user_ids is not None and not user_ids:
        return []
    templates = schedule_service.query_templates(user_id=user_id, user_ids=user_ids)
    return reconcile(templates, window)


def projection_summary(visits: list[ProjectedVisit]) -> dict:
    completed = sum(1 for v in visits if v.is_completed)
    return {"total": len(visits), "completed": completed, "pending": len(visits) - completed}
