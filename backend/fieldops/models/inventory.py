from __future__ import annotations

from ..extensions import db
from fieldops.time_utils import to_utc_z, to_iso_date


class StockSnapshot(db.Model):
    """
    Shelf stock count captured by a field user during a store visit.

    One row per (store, product, date): re-submitting a count for the same
    day overwrites it. For route scheduling a snapshot is evidence that
    user_id visited store_id on date.
    """
    __tablename__ = "stock_snapshot"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_id", "date", name="uq_stock_snapshot_store_product_date"),
        db.Index("ix_stock_snapshot_visit", "store_id", "user_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    qty = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    note = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store")
    product = db.relationship("Product")
    user = db.relationship("User")

    def __repr__(self) -> str:
        return f"<StockSnapshot id={self.id} store_id={self.store_id} product_id={self.product_id} date={self.date}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "date": to_iso_date(self.date),
            "qty": float(self.qty) if self.qty is not None else 0,
            "expiry_date": to_iso_date(self.expiry_date),
            "price": float(self.price) if self.price is not None else 0,
            "note": self.note,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
