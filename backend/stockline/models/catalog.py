from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


class Warehouse(db.Model):
    """
    Physical storage location.

    capacity is advisory only; nothing in the ledger checks item quantities
    against it.
    """
    __tablename__ = "warehouses"
    __table_args__ = (
        db.CheckConstraint("capacity IS NULL OR capacity >= 0", name="ck_warehouses_capacity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    capacity = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "location": self.location,
            "capacity": self.capacity,
            "created_at": to_utc_z(self.created_at),
        }


class Client(db.Model):
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryItem(db.Model):
    """
    Current on-hand quantity for one SKU in one warehouse.

    QUANTITY OWNERSHIP:
    quantity is written ONLY by ledger_service while it appends a Movement.
    Catalog management may create and delete rows but never edits quantity.

    CONCURRENCY:
    version_id is an optimistic lock. A second writer holding a stale copy
    gets StaleDataError on flush, and the ledger retries with a fresh read.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonneg"),
        db.Index("ix_inventory_items_warehouse_name", "warehouse_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse = db.relationship("Warehouse", backref=db.backref("items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "warehouse_id": self.warehouse_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
