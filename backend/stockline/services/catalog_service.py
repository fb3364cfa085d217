# Overview: Catalog lookups and bootstrap creation for warehouses, clients, items and users.

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Client, InventoryItem, MovementType, User, USER_ROLE_OPERATOR, Warehouse
from ..validation import ValidationError
from . import ledger_service


logger = logging.getLogger(__name__)


def create_warehouse(*, name: str, code: str | None = None, location: str | None = None,
                     capacity: int | None = None) -> Warehouse:
    if not name or not name.strip():
        raise ValidationError("name is required", {"field": "name"})
    if capacity is not None and capacity < 0:
        raise ValidationError("capacity must be >= 0", {"field": "capacity"})

    warehouse = Warehouse(name=name.strip(), code=code, location=location, capacity=capacity)
    db.session.add(warehouse)
    db.session.commit()
    return warehouse


def create_client(*, name: str, code: str | None = None, email: str | None = None,
                  phone: str | None = None, address: str | None = None,
                  description: str | None = None) -> Client:
    if not name or not name.strip():
        raise ValidationError("name is required", {"field": "name"})

    client = Client(
        name=name.strip(), code=code, email=email, phone=phone,
        address=address, description=description,
    )
    db.session.add(client)
    db.session.commit()
    return client


def create_user(*, name: str, email: str, role: str = USER_ROLE_OPERATOR,
                position: str | None = None) -> User:
    user = User(name=name, email=email.strip().lower(), role=role, position=position)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"User {email} already exists", {"field": "email"})
    return user


def create_item(
    *,
    sku: str,
    name: str,
    warehouse_id: int,
    description: str | None = None,
    opening_quantity: int = 0,
    user_id: int | None = None,
) -> InventoryItem:
    """
    Register an item with zero stock, then book any opening quantity as an
    IN movement so the ledger history accounts for every unit on hand.
    """
    sku = (sku or "").strip()
    if not sku:
        raise ValidationError("sku is required", {"field": "sku"})
    if db.session.get(Warehouse, warehouse_id) is None:
        raise ValidationError(f"Warehouse {warehouse_id} not found", {"field": "warehouse_id"})
    if get_item_by_sku(sku) is not None:
        raise ValidationError(f"SKU {sku} already exists", {"field": "sku"})

    item = InventoryItem(sku=sku, name=name, description=description, warehouse_id=warehouse_id, quantity=0)
    db.session.add(item)
    db.session.commit()

    if opening_quantity:
        ledger_service.apply_movement(
            item_id=item.id,
            type=MovementType.IN,
            quantity=opening_quantity,
            user_id=user_id,
            note="Opening balance",
        )
        db.session.refresh(item)

    logger.info("Registered item %s (id=%s) with opening quantity %s", item.sku, item.id, opening_quantity)
    return item


def get_item_by_sku(sku: str) -> InventoryItem | None:
    return db.session.query(InventoryItem).filter_by(sku=sku.strip()).first()


def list_items(*, warehouse_id: int | None = None) -> list[InventoryItem]:
    q = db.session.query(InventoryItem)
    if warehouse_id is not None:
        q = q.filter_by(warehouse_id=warehouse_id)
    return q.order_by(InventoryItem.sku).all()


def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.name).all()


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def find_negative_items() -> list[InventoryItem]:
    """Items violating the non-negative quantity invariant (should always be empty)."""
    return db.session.query(InventoryItem).filter(InventoryItem.quantity < 0).all()
