# Overview: Service-layer operations for route schedule templates; encapsulates business logic and database work.

"""
Schedule Template Store

WHY: Route schedules are the ground truth for which visits SHOULD happen.
A template says "user visits store every <weekday>"; the reconciliation
engine projects templates onto dates, this module only owns the templates.

INVARIANTS:
- (user_id, store_id, day_of_week) is unique. Creating an existing slot is a
  silent skip, not an error (managers re-submit whole store lists).
- Deleting a template removes its route tasks, their parent tasks and its
  visit logs in ONE transaction, so no visit log can outlive its template.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from ..extensions import db
from ..models import RouteSchedule, RouteTask, Store, Task, User, VisitLog
from ..models.auth import (
    ROLE_ADMIN,
    ROLE_GENERAL_MANAGER,
    ROLE_MERCHANDISER,
    ROLE_SALES_MANAGER,
    ROLE_SALES_SUPERVISOR,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_date,
    require_day_of_week,
    require_id_list,
    require_int,
)
from .calendar_service import business_today
from .concurrency import UPSERT_RETRYABLE_ERRORS, run_with_retry


def get_schedule(schedule_id: int) -> RouteSchedule:
    schedule = db.session.get(RouteSchedule, schedule_id)
    if not schedule:
        raise NotFoundError("Route schedule not found")
    return schedule


def _require_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _require_stores(store_ids: list[int]) -> None:
    found = {
        row[0]
        for row in db.session.query(Store.id).filter(Store.id.in_(store_ids)).all()
    }
    missing = [sid for sid in store_ids if sid not in found]
    if missing:
        raise NotFoundError(f"Store(s) not found: {', '.join(str(s) for s in missing)}")


def add_schedule(*, user_id, store_ids, day_of_week, created_by: int) -> dict:
    """
    Assign user to each store on day_of_week.

    Returns {"ids": [...], "count": n, "skipped": k}. Slots that already exist
    are skipped. A concurrent insert of the same slot loses on the unique
    constraint; the retry then sees the winner's row and skips it.
    """
    user_id = require_int(user_id, "user_id")
    store_ids = require_id_list(store_ids, "store_ids")
    day_of_week = require_day_of_week(day_of_week)

    _require_user(user_id)
    _require_stores(store_ids)

    def _op() -> dict:
        existing = {
            row[0]
            for row in db.session.query(RouteSchedule.store_id).filter(
                RouteSchedule.user_id == user_id,
                RouteSchedule.day_of_week == day_of_week,
                RouteSchedule.store_id.in_(store_ids),
            ).all()
        }

        created = []
        for store_id in store_ids:
            if store_id in existing:
                continue
            schedule = RouteSchedule(
                user_id=user_id,
                store_id=store_id,
                day_of_week=day_of_week,
                is_recurring=True,
                created_by=created_by,
            )
            db.session.add(schedule)
            created.append(schedule)

        db.session.flush()
        ids = [s.id for s in created]
        db.session.commit()
        return {"ids": ids, "count": len(ids), "skipped": len(store_ids) - len(ids)}

    return run_with_retry(_op, retry_on=UPSERT_RETRYABLE_ERRORS)


def update_schedule(schedule_id: int, data: dict) -> RouteSchedule:
    """
    Patch store, day, recurrence flag or effective date bounds.

    Raises ConflictError when the new (user, store, day) slot is taken,
    including when a concurrent write takes it first.

    Moving the slot (store or weekday) drops the old slot's pending route
    tasks and incomplete visit logs from business today onwards, so nothing
    stays open for a visit that is no longer scheduled. Completed rows are
    history and are kept. Route task generation recreates the new slot's tasks.
    """
    schedule = get_schedule(schedule_id)

    store_id = schedule.store_id
    if "store_id" in data:
        store_id = require_int(data["store_id"], "store_id")
        _require_stores([store_id])
    day_of_week = schedule.day_of_week
    if "day_of_week" in data:
        day_of_week = require_day_of_week(data["day_of_week"])
    effective_from = schedule.effective_from
    if "effective_from" in data:
        effective_from = optional_date(data["effective_from"], "effective_from")
    effective_until = schedule.effective_until
    if "effective_until" in data:
        effective_until = optional_date(data["effective_until"], "effective_until")

    if effective_from is not None and effective_until is not None and effective_from > effective_until:
        raise ValidationError("effective_from must be on or before effective_until")

    clash = db.session.query(RouteSchedule.id).filter(
        RouteSchedule.id != schedule.id,
        RouteSchedule.user_id == schedule.user_id,
        RouteSchedule.store_id == store_id,
        RouteSchedule.day_of_week == day_of_week,
    ).first()
    if clash:
        raise ConflictError("User already has this store scheduled on that day")

    dropped = {"tasks": 0, "visit_logs": 0}
    if store_id != schedule.store_id or day_of_week != schedule.day_of_week:
        dropped = _drop_open_occurrences(schedule.id, business_today())

    schedule.store_id = store_id
    schedule.day_of_week = day_of_week
    schedule.effective_from = effective_from
    schedule.effective_until = effective_until
    if "is_recurring" in data:
        schedule.is_recurring = bool(data["is_recurring"])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("User already has this store scheduled on that day")

    if dropped["tasks"] or dropped["visit_logs"]:
        current_app.logger.info(
            "Route schedule %s moved: dropped %s open task(s) and %s visit log(s)",
            schedule_id, dropped["tasks"], dropped["visit_logs"],
        )
    return schedule


def _drop_open_occurrences(schedule_id: int, from_date) -> dict:
    """Delete pending route tasks (with their tasks) and incomplete visit logs dated from_date or later."""
    task_ids = [
        row[0]
        for row in db.session.query(RouteTask.task_id).filter(
            RouteTask.route_schedule_id == schedule_id,
            RouteTask.scheduled_date >= from_date,
            RouteTask.is_completed.is_(False),
        ).all()
    ]
    if task_ids:
        db.session.query(RouteTask).filter(RouteTask.task_id.in_(task_ids)).delete(synchronize_session=False)
        db.session.query(Task).filter(Task.id.in_(task_ids)).delete(synchronize_session=False)
    deleted_logs = db.session.query(VisitLog).filter(
        VisitLog.route_schedule_id == schedule_id,
        VisitLog.visit_date >= from_date,
        VisitLog.is_completed.is_(False),
    ).delete(synchronize_session=False)
    return {"tasks": len(task_ids), "visit_logs": deleted_logs}


def delete_schedule(schedule_id: int) -> dict:
    """
    Delete a template and everything generated from it.

    Returns {"deleted_tasks": n, "deleted_visit_logs": m}.
    """
    schedule = get_schedule(schedule_id)

    task_ids = [
        row[0]
        for row in db.session.query(RouteTask.task_id).filter_by(route_schedule_id=schedule.id).all()
    ]

    db.session.query(RouteTask).filter_by(route_schedule_id=schedule.id).delete()
    if task_ids:
        db.session.query(Task).filter(Task.id.in_(task_ids)).delete()
    deleted_logs = db.session.query(VisitLog).filter_by(route_schedule_id=schedule.id).delete()
    db.session.delete(schedule)
    db.session.commit()

    return {"deleted_tasks": len(task_ids), "deleted_visit_logs": deleted_logs}


# =============================================================================
# READ PATHS
# =============================================================================


def query_templates(*, user_id: int | None = None, user_ids=None, day_of_week: int | None = None):
    """
    Templates joined with user / store / creator display data.

    Returns a list of (RouteSchedule, display_dict) tuples.
    """
    creator = aliased(User)
    q = (
        db.session.query(RouteSchedule, User, Store, creator)
        .join(User, User.id == RouteSchedule.user_id)
        .join(Store, Store.id == RouteSchedule.store_id)
        .outerjoin(creator, creator.id == RouteSchedule.created_by)
    )
    if user_id is not None:
        q = q.filter(RouteSchedule.user_id == user_id)
    if user_ids is not None:
        q = q.filter(RouteSchedule.user_id.in_(list(user_ids)))
    if day_of_week is not None:
        q = q.filter(RouteSchedule.day_of_week == day_of_week)

    rows = q.order_by(RouteSchedule.user_id, RouteSchedule.day_of_week, Store.name).all()

    result = []
    for schedule, user, store, created_by in rows:
        display = {
            "user_name": user.full_name,
            "username": user.username,
            "user_role": user.role,
            "store_name": store.name,
            "store_code": store.code,
            "created_by_name": created_by.full_name if created_by else None,
        }
        result.append((schedule, display))
    return result


def _to_rows(templates) -> list[dict]:
    return [{**schedule.to_dict(), **display} for schedule, display in templates]


def list_for_user(user_id: int) -> list[dict]:
    rows = _to_rows(query_templates(user_id=user_id))
    rows.sort(key=lambda r: (r["day_of_week"], r["store_name"]))
    return rows


def list_all() -> list[dict]:
    return _to_rows(query_templates())


def list_by_day(day_of_week, user_id: int | None = None) -> list[dict]:
    dow = require_day_of_week(day_of_week)
    rows = _to_rows(query_templates(user_id=user_id, day_of_week=dow))
    rows.sort(key=lambda r: r["store_name"])
    return rows


def team_user_ids(manager: User) -> list[int] | None:
    """
    Users whose routes `manager` may oversee. None means everyone.

    - admin / general_manager: everyone
    - sales_manager: supervisors and merchandisers
    - sales_supervisor: direct reports
    - anyone else: themselves
    """
    if manager.role in (ROLE_ADMIN, ROLE_GENERAL_MANAGER):
        return None
    if manager.role == ROLE_SALES_MANAGER:
        q = db.session.query(User.id).filter(User.role.in_((ROLE_SALES_SUPERVISOR, ROLE_MERCHANDISER)))
        return [row[0] for row in q.all()]
    if manager.role == ROLE_SALES_SUPERVISOR:
        q = db.session.query(User.id).filter(User.manager_id == manager.id)
        return [row[0] for row in q.all()]
    return [manager.id]


def list_team(manager: User) -> list[dict]:
    user_ids = team_user_ids(manager)
    if user_ids is not None and not user_ids:
        return []
    rows = _to_rows(query_templates(user_ids=user_ids))
    rows.sort(key=lambda r: (r["user_name"] or r["username"], r["day_of_week"], r["store_name"]))
    return rows
