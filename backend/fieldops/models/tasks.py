from __future__ import annotations

from ..extensions import db
from fieldops.time_utils import to_utc_z, to_iso_date

TASK_PENDING = "pending"
TASK_IN_PROGRESS = "in_progress"
TASK_COMPLETED = "completed"
TASK_CANCELLED = "cancelled"
TASK_OVERDUE = "overdue"
VALID_TASK_STATUSES = {TASK_PENDING, TASK_IN_PROGRESS, TASK_COMPLETED, TASK_CANCELLED, TASK_OVERDUE}


class Task(db.Model):
    """
    Assigned work item.

    Route visits generate one Task per scheduled (store, date); the route
    scheduler flips its status when visit evidence arrives or is withdrawn.
    Optimistic locking via version_id guards concurrent edits.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled', 'overdue')",
            name="ck_tasks_status",
        ),
        db.CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'urgent')",
            name="ck_tasks_priority",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    priority = db.Column(db.String(20), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default=TASK_PENDING, index=True)

    due_date = db.Column(db.Date, nullable=True, index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Task id={self.id} status={self.status} assigned_to={self.assigned_to}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "assigned_to": self.assigned_to,
            "assigned_by": self.assigned_by,
            "priority": self.priority,
            "status": self.status,
            "due_date": to_iso_date(self.due_date),
            "completed_at": to_utc_z(self.completed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RouteTask(db.Model):
    """
    Link between a route schedule occurrence and the Task that tracks it.

    completed_by_snapshot_id records which stock snapshot proved the visit,
    so deleting that snapshot can undo the completion.
    """
    __tablename__ = "route_tasks"
    __table_args__ = (
        db.UniqueConstraint("route_schedule_id", "scheduled_date", name="uq_route_tasks_schedule_date"),
        db.Index("ix_route_tasks_user_date", "user_id", "scheduled_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    route_schedule_id = db.Column(
        db.Integer,
        db.ForeignKey("route_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_date = db.Column(db.Date, nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_by_snapshot_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_snapshot.id"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    task = db.relationship("Task")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "route_schedule_id": self.route_schedule_id,
            "task_id": self.task_id,
            "scheduled_date": to_iso_date(self.scheduled_date),
            "store_id": self.store_id,
            "user_id": self.user_id,
            "is_completed": self.is_completed,
            "completed_by_snapshot_id": self.completed_by_snapshot_id,
            "created_at": to_utc_z(self.created_at),
        }
