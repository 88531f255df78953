from __future__ import annotations

from ..extensions import db
from fieldops.time_utils import to_utc_z, to_iso_date


class RouteSchedule(db.Model):
    """
    Recurring weekly visit assignment: user visits store on day_of_week.

    day_of_week uses 0=Sunday .. 6=Saturday.
    A (user, store, day) slot exists at most once. Deleting a schedule removes
    its visit logs and route tasks (and their tasks) in the same transaction.
    """
    __tablename__ = "route_schedules"
    __table_args__ = (
        db.UniqueConstraint("user_id", "store_id", "day_of_week", name="uq_route_schedules_user_store_day"),
        db.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_route_schedules_day_of_week"),
        db.Index("ix_route_schedules_day", "day_of_week"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    day_of_week = db.Column(db.Integer, nullable=False)

    is_recurring = db.Column(db.Boolean, nullable=False, default=True)
    effective_from = db.Column(db.Date, nullable=True)
    effective_until = db.Column(db.Date, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id])
    store = db.relationship("Store")
    creator = db.relationship("User", foreign_keys=[created_by])

    def is_effective_on(self, day) -> bool:
        if self.effective_from is not None and day < self.effective_from:
            return False
        if self.effective_until is not None and day > self.effective_until:
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"<RouteSchedule id={self.id} user_id={self.user_id} "
            f"store_id={self.store_id} day_of_week={self.day_of_week}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "store_id": self.store_id,
            "day_of_week": self.day_of_week,
            "is_recurring": self.is_recurring,
            "effective_from": to_iso_date(self.effective_from),
            "effective_until": to_iso_date(self.effective_until),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class VisitLog(db.Model):
    """
    Durable record of whether a scheduled visit happened on a given date.

    At most one row per (route_schedule_id, visit_date); writers resolve
    races on that constraint instead of in-process locks.
    completed_by_snapshot_id is set when a stock snapshot (rather than a
    manual toggle) proved the visit.
    """
    __tablename__ = "visit_logs"
    __table_args__ = (
        db.UniqueConstraint("route_schedule_id", "visit_date", name="uq_visit_logs_schedule_date"),
        db.Index("ix_visit_logs_user_date", "user_id", "visit_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    route_schedule_id = db.Column(
        db.Integer,
        db.ForeignKey("route_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    visit_date = db.Column(db.Date, nullable=False)

    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by_snapshot_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_snapshot.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<VisitLog id={self.id} route_schedule_id={self.route_schedule_id} "
            f"visit_date={self.visit_date} is_completed={self.is_completed}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "route_schedule_id": self.route_schedule_id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "visit_date": to_iso_date(self.visit_date),
            "is_completed": self.is_completed,
            "completed_at": to_utc_z(self.completed_at),
            "completed_by_snapshot_id": self.completed_by_snapshot_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
