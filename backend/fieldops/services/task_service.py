# Overview: Service-layer operations for route tasks; encapsulates business logic and database work.

"""
Route Task Generation

WHY: Each projected visit in the window becomes a Task assigned to the field
user, linked through route_tasks to its (schedule, date) occurrence. The
propagator then keeps the task status in step with visit evidence.

IDEMPOTENT: route_tasks is unique on (route_schedule_id, scheduled_date).
Existing occurrences are skipped; a concurrent generator loses on the
constraint and the retry skips the winner's rows.

Visits already proven when the task is generated are created completed,
carrying the evidence's snapshot link.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import RouteTask, Task
from ..models.tasks import TASK_COMPLETED, TASK_PENDING, VALID_TASK_STATUSES
from ..validation import ValidationError
from .calendar_service import WindowDay
from .concurrency import UPSERT_RETRYABLE_ERRORS, run_with_retry
from . import reconciliation_service
from fieldops.time_utils import utcnow


def _task_title(visit) -> str:
    store = visit.schedule.get("store_name") or f"store #{visit.store_id}"
    return f"Visit {store}"


def generate_route_tasks(window: list[WindowDay], created_by: int, user_id: int | None = None) -> dict:
    """
    Create Task + RouteTask for every projected visit that has none yet.

    Returns {"created": n, "existing": m, "route_tasks": [...]} where
    route_tasks lists only the newly created links.
    """
    def _op() -> dict:
        visits = reconciliation_service.project_visits(window, user_id=user_id)
        if not visits:
            return {"created": 0, "existing": 0, "route_tasks": []}

        existing = {
            (row[0], row[1])
            for row in db.session.query(RouteTask.route_schedule_id, RouteTask.scheduled_date).filter(
                RouteTask.route_schedule_id.in_({v.route_schedule_id for v in visits}),
                RouteTask.scheduled_date >= window[0].date,
                RouteTask.scheduled_date <= window[-1].date,
            ).all()
        }

        now = utcnow()
        created = []
        for visit in visits:
            if (visit.route_schedule_id, visit.visit_date) in existing:
                continue
            task = Task(
                title=_task_title(visit),
                description=f"Scheduled route visit on {visit.visit_date.isoformat()}",
                assigned_to=visit.user_id,
                assigned_by=created_by,
                priority="medium",
                status=TASK_COMPLETED if visit.is_completed else TASK_PENDING,
                due_date=visit.visit_date,
                completed_at=(visit.completed_at or now) if visit.is_completed else None,
            )
            db.session.add(task)
            db.session.flush()

            route_task = RouteTask(
                route_schedule_id=visit.route_schedule_id,
                task_id=task.id,
                scheduled_date=visit.visit_date,
                store_id=visit.store_id,
                user_id=visit.user_id,
                is_completed=visit.is_completed,
                completed_by_snapshot_id=visit.completed_by_snapshot_id if visit.is_completed else None,
            )
            db.session.add(route_task)
            created.append(route_task)

        db.session.flush()
        payload = [rt.to_dict() for rt in created]
        db.session.commit()
        return {"created": len(payload), "existing": len(visits) - len(payload), "route_tasks": payload}

    result = run_with_retry(_op, retry_on=UPSERT_RETRYABLE_ERRORS)
    if result["created"]:
        current_app.logger.info(
            "Generated %s route task(s) for %s..%s (user=%s, by=%s)",
            result["created"], window[0].iso, window[-1].iso, user_id, created_by,
        )
    return result


def list_tasks_for_user(user_id: int, status: str | None = None) -> list[dict]:
    """Tasks assigned to user_id, each with its route occurrence (or None)."""
    if status is not None and status not in VALID_TASK_STATUSES:
        raise ValidationError(f"Invalid status: {status}")

    q = (
        db.session.query(Task, RouteTask)
        .outerjoin(RouteTask, RouteTask.task_id == Task.id)
        .filter(Task.assigned_to == user_id)
    )
    if status is not None:
        q = q.filter(Task.status == status)

    rows = q.order_by(Task.due_date.asc(), Task.id.asc()).all()
    return [
        {**task.to_dict(), "route_task": route_task.to_dict() if route_task else None}
        for task, route_task in rows
    ]
