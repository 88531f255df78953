# Overview: Task-completion propagation; subscribes to visit evidence signals and updates route tasks.

"""
Task-Completion Propagator

WHY: Route visits generate tasks (see task_service.generate_route_tasks).
When a visit is proven, its task must read "completed"; when the proof is
withdrawn, the task must stop claiming completion. Tasks and route tasks are
owned by the task subsystem, so the ONLY writes the route scheduler makes to
them go through the handlers in this module, wired to fieldops.signals.

INVARIANT: completion is never orphaned-true. Every route task completed from
a snapshot carries completed_by_snapshot_id; deleting that snapshot re-links
the route task to another snapshot proving the same visit or reverts it.

Handlers only flush. The sender owns the transaction:
- completion events are committed best-effort after the evidence commit
- evidence removal is committed together with the snapshot delete
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import RouteTask
from ..models.tasks import TASK_CANCELLED, TASK_COMPLETED, TASK_PENDING
from ..signals import visit_completed, visit_evidence_removed, visit_reopened
from .visit_service import find_replacement_snapshot_id
from fieldops.time_utils import utcnow


def _complete(route_task: RouteTask, snapshot_id: int | None, now) -> None:
    route_task.is_completed = True
    route_task.completed_by_snapshot_id = snapshot_id
    task = route_task.task
    if task is not None and task.status not in (TASK_COMPLETED, TASK_CANCELLED):
        task.status = TASK_COMPLETED
        task.completed_at = now


def _revert(route_task: RouteTask) -> None:
    route_task.is_completed = False
    route_task.completed_by_snapshot_id = None
    task = route_task.task
    if task is not None and task.status == TASK_COMPLETED:
        task.status = TASK_PENDING
        task.completed_at = None


def complete_route_tasks(schedule_id: int, visit_date, user_id: int, snapshot_id: int | None = None) -> int:
    """
    Mark route tasks for (schedule, date, user) complete. Returns count.

    With snapshot evidence, route tasks already completed by a manual toggle
    are linked to the snapshot as well: the snapshot replaced the toggled
    visit log, so withdrawing it must be able to revert the route task too.
    """
    route_tasks = db.session.query(RouteTask).filter_by(
        route_schedule_id=schedule_id,
        scheduled_date=visit_date,
        user_id=user_id,
    ).all()

    now = utcnow()
    count = 0
    for route_task in route_tasks:
        if not route_task.is_completed:
            _complete(route_task, snapshot_id, now)
        elif snapshot_id is not None and route_task.completed_by_snapshot_id is None:
            route_task.completed_by_snapshot_id = snapshot_id
        else:
            continue
        count += 1
    db.session.flush()
    return count


def reopen_route_tasks(schedule_id: int, visit_date) -> int:
    """
    Revert route tasks completed by a manual toggle for (schedule, date).

    Route tasks proven by a snapshot stay complete: snapshot evidence
    outranks a manual un-toggle.
    """
    route_tasks = db.session.query(RouteTask).filter_by(
        route_schedule_id=schedule_id,
        scheduled_date=visit_date,
        is_completed=True,
        completed_by_snapshot_id=None,
    ).all()
    for route_task in route_tasks:
        _revert(route_task)
    db.session.flush()
    return len(route_tasks)


def revert_snapshot_completion(snapshot_id: int) -> dict:
    """
    Undo completions that `snapshot_id` caused.

    Each route task stays complete and is re-linked when another snapshot
    from its own user, store and day survives; otherwise it is reverted.
    """
    route_tasks = db.session.query(RouteTask).filter_by(completed_by_snapshot_id=snapshot_id).all()
    relinked = 0
    reverted = 0
    for route_task in route_tasks:
        replacement_snapshot_id = find_replacement_snapshot_id(
            snapshot_id,
            store_id=route_task.store_id,
            user_id=route_task.user_id,
            visit_date=route_task.scheduled_date,
        )
        if replacement_snapshot_id is not None:
            route_task.completed_by_snapshot_id = replacement_snapshot_id
            relinked += 1
        else:
            _revert(route_task)
            reverted += 1
    db.session.flush()
    return {"relinked": relinked, "reverted": reverted}


# =============================================================================
# SIGNAL RECEIVERS
# =============================================================================


def on_visit_completed(sender, *, visit_date, user_id, snapshot_id=None, **kwargs):
    count = complete_route_tasks(sender, visit_date, user_id, snapshot_id)
    if count:
        current_app.logger.info(
            "Completed %s route task(s) for schedule=%s date=%s snapshot=%s",
            count, sender, visit_date, snapshot_id,
        )
    return count


def on_visit_reopened(sender, *, visit_date, **kwargs):
    count = reopen_route_tasks(sender, visit_date)
    if count:
        current_app.logger.info("Reopened %s route task(s) for schedule=%s date=%s", count, sender, visit_date)
    return count


def on_visit_evidence_removed(sender, **kwargs):
    result = revert_snapshot_completion(sender)
    if result["relinked"] or result["reverted"]:
        current_app.logger.info(
            "Snapshot %s withdrawn: %s route task(s) re-linked, %s reverted",
            sender, result["relinked"], result["reverted"],
        )
    return result


def register_handlers() -> None:
    """Subscribe the propagator. Safe to call once per app; blinker ignores repeats."""
    visit_completed.connect(on_visit_completed, weak=False)
    visit_reopened.connect(on_visit_reopened, weak=False)
    visit_evidence_removed.connect(on_visit_evidence_removed, weak=False)
