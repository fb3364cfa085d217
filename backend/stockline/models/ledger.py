from __future__ import annotations

import enum

from ..extensions import db
from stockline.time_utils import to_utc_z, utcnow


class MovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"

    @property
    def sign(self) -> int:
        return 1 if self is MovementType.IN else -1


class Movement(db.Model):
    """
    Append-only record of one quantity change on one item.

    IN adds quantity, OUT subtracts it. Rows are never updated or deleted.
    correlation_token holds the originating order code for fulfillment
    movements; it is the join key back to orders.code.
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_movements_type"),
        db.Index("ix_movements_item_occurred", "item_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(8), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    correlation_token = db.Column(db.String(64), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    item = db.relationship("InventoryItem", backref=db.backref("movements", lazy="dynamic"))

    @property
    def quantity_delta(self) -> int:
        return MovementType(self.type).sign * self.quantity

    def __repr__(self) -> str:
        return f"<Movement id={self.id} type={self.type} item_id={self.item_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "quantity_delta": self.quantity_delta,
            "occurred_at": to_utc_z(self.occurred_at),
            "user_id": self.user_id,
            "client_id": self.client_id,
            "correlation_token": self.correlation_token,
            "note": self.note,
        }
