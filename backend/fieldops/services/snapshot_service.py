# Overview: Service-layer operations for stock snapshots; encapsulates business logic and database work.

"""
Stock Snapshot Service

Snapshots are shelf counts taken during store visits. One row per
(store, product, date); re-submitting overwrites qty/price/expiry/note.

VISIT EVIDENCE: a snapshot submitted by a user at a store on a date marks
that user's scheduled visit complete (visit_service.record_visit_from_snapshot).
Deleting a snapshot first withdraws it as evidence, in the same transaction
as the delete.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app

from ..extensions import db
from ..models import Product, StockSnapshot, Store, User
from ..validation import NotFoundError, ValidationError, optional_date, require_date, require_int
from .concurrency import UPSERT_RETRYABLE_ERRORS, run_with_retry
from . import visit_service


def _decimal(value, field: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number")
    if result < 0:
        raise ValidationError(f"{field} cannot be negative")
    return result


def add_snapshot(data: dict, user_id: int) -> dict:
    """
    Upsert a stock count and record it as visit evidence.

    Returns {"snapshot": {...}, "created": bool, "visit": {...}}.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    store_id = require_int(data.get("store_id"), "store_id")
    product_id = require_int(data.get("product_id"), "product_id")
    snapshot_date = require_date(data.get("date"), "date")
    qty = _decimal(data.get("qty"), "qty")
    price = _decimal(data.get("price"), "price")
    expiry_date = optional_date(data.get("expiry_date"), "expiry_date")
    note = data.get("note")

    if not db.session.get(Store, store_id):
        raise NotFoundError("Store not found")
    if not db.session.get(Product, product_id):
        raise NotFoundError("Product not found")

    def _op() -> tuple[dict, bool]:
        snapshot = db.session.query(StockSnapshot).filter_by(
            store_id=store_id,
            product_id=product_id,
            date=snapshot_date,
        ).first()
        created = snapshot is None
        if created:
            snapshot = StockSnapshot(store_id=store_id, product_id=product_id, date=snapshot_date)
            db.session.add(snapshot)

        snapshot.qty = qty
        snapshot.price = price
        snapshot.expiry_date = expiry_date
        snapshot.note = note
        snapshot.user_id = user_id

        db.session.flush()
        payload = snapshot.to_dict()
        db.session.commit()
        return payload, created

    payload, created = run_with_retry(_op, retry_on=UPSERT_RETRYABLE_ERRORS)

    current_app.logger.info(
        "Snapshot %s: id=%s store=%s product=%s date=%s user=%s",
        "created" if created else "updated",
        payload["id"], store_id, product_id, payload["date"], user_id,
    )

    visit = visit_service.record_visit_from_snapshot(
        store_id, user_id, snapshot_date, snapshot_id=payload["id"]
    )

    return {"snapshot": payload, "created": created, "visit": visit}


def list_snapshots(filters: dict | None = None) -> list[dict]:
    """Snapshots with product/store/user display names, newest date first."""
    filters = filters or {}
    q = (
        db.session.query(StockSnapshot, Product, Store, User)
        .join(Product, Product.id == StockSnapshot.product_id)
        .join(Store, Store.id == StockSnapshot.store_id)
        .outerjoin(User, User.id == StockSnapshot.user_id)
    )

    if filters.get("store_id"):
        q = q.filter(StockSnapshot.store_id == require_int(filters["store_id"], "store_id"))
    if filters.get("product_id"):
        q = q.filter(StockSnapshot.product_id == require_int(filters["product_id"], "product_id"))
    if filters.get("user_id"):
        q = q.filter(StockSnapshot.user_id == require_int(filters["user_id"], "user_id"))
    start = optional_date(filters.get("start_date"), "start_date")
    if start:
        q = q.filter(StockSnapshot.date >= start)
    end = optional_date(filters.get("end_date"), "end_date")
    if end:
        q = q.filter(StockSnapshot.date <= end)

    rows = q.order_by(StockSnapshot.date.desc(), StockSnapshot.id.desc()).all()
    return [
        {
            **snapshot.to_dict(),
            "product_name": product.name,
            "product_unit": product.unit,
            "store_name": store.name,
            "user_name": user.full_name if user else None,
            "user_username": user.username if user else None,
        }
        for snapshot, product, store, user in rows
    ]


def delete_snapshot(snapshot_id: int) -> dict:
    """
    Delete a snapshot after withdrawing it as visit evidence.

    Reversal and delete commit together; if reversal fails nothing is
    deleted and the error propagates.
    """
    snapshot = db.session.get(StockSnapshot, snapshot_id)
    if not snapshot:
        raise NotFoundError("Snapshot not found")

    try:
        reversal = visit_service.revoke_snapshot_evidence(snapshot)
        db.session.delete(snapshot)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Snapshot %s deleted: %s visit log(s) re-linked, %s reverted",
        snapshot_id, reversal["visit_logs_relinked"], reversal["visit_logs_reverted"],
    )
    return reversal
