from __future__ import annotations

import enum

from ..extensions import db
from stockline.time_utils import to_utc_z, utcnow


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Order(db.Model):
    """
    Multi-line stock order fulfilled as one batch.

    LIFECYCLE (see services/order_lifecycle.py):
    1. PENDING: created with its full, fixed set of lines
    2. COMPLETED: every line applied as a Movement tagged with `code`
    3. CANCELLED: abandoned with a mandatory reason, never touched stock

    direction reuses MovementType values: IN receives into the warehouse,
    OUT ships out of it.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("direction IN ('IN', 'OUT')", name="ck_orders_direction"),
        db.CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'CANCELLED')", name="ck_orders_status"
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable code (e.g. "ORD-0042"); the scan payload and ledger join key
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)

    direction = db.Column(db.String(8), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=OrderStatus.PENDING.value, index=True)

    # QR payload: ORDER|<id>|<code>
    qr_code = db.Column(db.String(128), nullable=True)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    completed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    cancellation_reason = db.Column(db.Text, nullable=True)

    # Number of times fulfillment has been applied (>1 means reprocessed)
    fulfillment_count = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} code={self.code!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "direction": self.direction,
            "status": self.status,
            "qr_code": self.qr_code,
            "warehouse_id": self.warehouse_id,
            "client_id": self.client_id,
            "created_by_user_id": self.created_by_user_id,
            "completed_by_user_id": self.completed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "fulfillment_count": self.fulfillment_count,
            "version_id": self.version_id,
        }


class OrderLine(db.Model):
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "item_id", name="uq_order_lines_order_item"),
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "sku": self.item.sku if self.item else None,
            "name": self.item.name if self.item else None,
            "quantity": self.quantity,
        }


class OrderSequence(db.Model):
    """
    Per-prefix counter backing order code allocation.
    """
    __tablename__ = "order_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(16), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
