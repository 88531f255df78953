# Overview: Service-layer operations for visit completion evidence; encapsulates business logic and database work.

"""
Completion Evidence Store

WHY: A scheduled visit can be proven two ways:
1. Manual toggle from the mobile/desktop client.
2. A stock snapshot submitted for the scheduled store on that date.

Both land in visit_logs, one row per (route_schedule_id, visit_date).

RULES:
- Toggle flips the row (creating it completed if missing).
- Snapshot evidence REPLACES the row with a completed one (delete-then-insert),
  so a snapshot overrides an earlier manual un-toggle for that day.
- A snapshot at a store the user has no schedule for that weekday is a no-op
  success, not an error.
- Every write is keyed on the unique (schedule, date) constraint and retried
  on IntegrityError, so duplicate or concurrent delivery never yields two rows.

Task completion is NOT written here. After commit this module emits
signals (see fieldops/signals.py) that the propagator handles.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import RouteSchedule, StockSnapshot, VisitLog
from ..signals import send_best_effort, visit_completed, visit_evidence_removed, visit_reopened
from ..validation import NotFoundError, require_date, require_int
from .calendar_service import day_of_week_for
from .concurrency import UPSERT_RETRYABLE_ERRORS, lock_for_update, run_with_retry
from . import schedule_service
from fieldops.time_utils import utcnow


def toggle_visit(schedule_id, visit_date, *, actor_id: int | None = None) -> dict:
    """
    Flip completion for one scheduled visit.

    Returns {"is_completed": bool, "visit_log": {...}, "propagated": bool}.
    Raises NotFoundError if the schedule does not exist (including when it is
    deleted while the toggle is in flight).
    """
    schedule_id = require_int(schedule_id, "route_schedule_id")
    visit_date = require_date(visit_date, "visit_date")

    schedule = schedule_service.get_schedule(schedule_id)
    store_id = schedule.store_id
    user_id = schedule.user_id

    def _op() -> dict:
        if db.session.get(RouteSchedule, schedule_id) is None:
            raise NotFoundError("Route schedule not found")

        log = lock_for_update(
            db.session.query(VisitLog).filter_by(route_schedule_id=schedule_id, visit_date=visit_date)
        ).first()
        now = utcnow()

        if log is None:
            log = VisitLog(
                route_schedule_id=schedule_id,
                store_id=store_id,
                user_id=user_id,
                visit_date=visit_date,
                is_completed=True,
                completed_at=now,
            )
            db.session.add(log)
        else:
            log.is_completed = not log.is_completed
            log.completed_at = now if log.is_completed else None
            if not log.is_completed:
                log.completed_by_snapshot_id = None

        db.session.flush()
        payload = log.to_dict()
        db.session.commit()
        return payload

    payload = run_with_retry(_op, retry_on=UPSERT_RETRYABLE_ERRORS)

    current_app.logger.info(
        "Visit toggled: schedule=%s date=%s completed=%s actor=%s",
        schedule_id, visit_date.isoformat(), payload["is_completed"], actor_id,
    )

    signal = visit_completed if payload["is_completed"] else visit_reopened
    extra = {"snapshot_id": None} if payload["is_completed"] else {}
    propagated = send_best_effort(
        signal,
        schedule_id,
        visit_date=visit_date,
        user_id=user_id,
        store_id=store_id,
        **extra,
    )

    return {"is_completed": payload["is_completed"], "visit_log": payload, "propagated": propagated}


def find_schedule_for_visit(store_id: int, user_id: int, visit_date: date) -> RouteSchedule | None:
    """Template covering (user, store, weekday of visit_date), if effective on that date."""
    schedule = db.session.query(RouteSchedule).filter_by(
        user_id=user_id,
        store_id=store_id,
        day_of_week=day_of_week_for(visit_date),
    ).first()
    if schedule is None or not schedule.is_effective_on(visit_date):
        return None
    return schedule


def record_visit_from_snapshot(store_id, user_id, visit_date, *, snapshot_id: int | None = None) -> dict:
    """
    Mark the scheduled visit complete because a stock snapshot proves it.

    Returns {"is_completed", "no_schedule", "route_schedule_id", "visit_log",
    "propagated"}. no_schedule=True means nothing was written.
    """
    store_id = require_int(store_id, "store_id")
    user_id = require_int(user_id, "user_id")
    visit_date = require_date(visit_date, "date")

    schedule = find_schedule_for_visit(store_id, user_id, visit_date)
    if schedule is None:
        current_app.logger.debug(
            "No route schedule for user=%s store=%s date=%s; snapshot is not visit evidence",
            user_id, store_id, visit_date.isoformat(),
        )
        return {
            "is_completed": False,
            "no_schedule": True,
            "route_schedule_id": None,
            "visit_log": None,
            "propagated": False,
        }

    schedule_id = schedule.id

    def _op() -> dict | None:
        if db.session.get(RouteSchedule, schedule_id) is None:
            return None

        db.session.query(VisitLog).filter_by(
            route_schedule_id=schedule_id,
            visit_date=visit_date,
        ).delete()

        log = VisitLog(
            route_schedule_id=schedule_id,
            store_id=store_id,
            user_id=user_id,
            visit_date=visit_date,
            is_completed=True,
            completed_at=utcnow(),
            completed_by_snapshot_id=snapshot_id,
        )
        db.session.add(log)
        db.session.flush()
        payload = log.to_dict()
        db.session.commit()
        return payload

    payload = run_with_retry(_op, retry_on=UPSERT_RETRYABLE_ERRORS)
    if payload is None:
        return {
            "is_completed": False,
            "no_schedule": True,
            "route_schedule_id": None,
            "visit_log": None,
            "propagated": False,
        }

    current_app.logger.info(
        "Visit marked complete from snapshot: schedule=%s user=%s store=%s date=%s snapshot=%s",
        schedule_id, user_id, store_id, visit_date.isoformat(), snapshot_id,
    )

    propagated = send_best_effort(
        visit_completed,
        schedule_id,
        visit_date=visit_date,
        user_id=user_id,
        store_id=store_id,
        snapshot_id=snapshot_id,
    )

    return {
        "is_completed": True,
        "no_schedule": False,
        "route_schedule_id": schedule_id,
        "visit_log": payload,
        "propagated": propagated,
    }


def find_replacement_snapshot_id(snapshot_id: int, *, store_id: int, user_id: int | None, visit_date: date) -> int | None:
    """
    Another snapshot proving the same visit: same store and day, submitted by
    the visit's own user. Looked up per visit, never from the withdrawn
    snapshot's user_id, which a later upsert by someone else may have taken over.
    """
    if user_id is None:
        return None
    row = db.session.query(StockSnapshot.id).filter(
        StockSnapshot.id != snapshot_id,
        StockSnapshot.store_id == store_id,
        StockSnapshot.user_id == user_id,
        StockSnapshot.date == visit_date,
    ).order_by(StockSnapshot.id.desc()).first()
    return row[0] if row else None


def revoke_snapshot_evidence(snapshot: StockSnapshot) -> dict:
    """
    Withdraw `snapshot` as visit evidence before it is deleted.

    Each visit log it completed is re-pointed at a surviving snapshot from
    that log's user, store and day, or reverted to incomplete when none
    survives. Subscribers undo task completion in the same transaction;
    nothing is committed here, the caller commits together with the
    snapshot delete.
    """
    logs = db.session.query(VisitLog).filter_by(completed_by_snapshot_id=snapshot.id).all()
    relinked = 0
    reverted = 0
    replacement_ids = set()
    for log in logs:
        replacement_id = find_replacement_snapshot_id(
            snapshot.id, store_id=log.store_id, user_id=log.user_id, visit_date=log.visit_date
        )
        if replacement_id is not None:
            log.completed_by_snapshot_id = replacement_id
            replacement_ids.add(replacement_id)
            relinked += 1
        else:
            log.is_completed = False
            log.completed_at = None
            log.completed_by_snapshot_id = None
            reverted += 1
    db.session.flush()

    visit_evidence_removed.send(
        snapshot.id,
        store_id=snapshot.store_id,
        user_id=snapshot.user_id,
        visit_date=snapshot.date,
    )

    return {
        "visit_logs_relinked": relinked,
        "visit_logs_reverted": reverted,
        "replacement_snapshot_ids": sorted(replacement_ids),
    }
