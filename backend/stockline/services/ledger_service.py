# Overview: Service-layer operations for the stock ledger; the only writer of InventoryItem.quantity.

"""
Stockline Ledger Invariants (authoritative)

Ledger model:
- InventoryItem.quantity is the current on-hand figure for one item.
- Movement rows are the append-only history of every change to it.
- quantity is changed ONLY here, and only together with a new Movement,
  inside one database transaction. Both land or neither does.

Business invariants:
- quantity may never go negative. An OUT larger than on-hand is rejected
  with InsufficientStockError before anything is written.
- Movement.quantity is always > 0; the sign comes from Movement.type.

Concurrency:
- The stock check and the quantity write happen against the same row in
  the same transaction. begin_write() + lock_for_update() serialize
  writers; InventoryItem.version_id catches anything that slips through
  and run_with_retry() replays the whole operation on a fresh read.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..models import InventoryItem, Movement, MovementType
from ..validation import MovementRequest
from .concurrency import begin_write, lock_for_update, run_with_retry


logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger consistency errors."""
    code = "LEDGER_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ItemNotFoundError(LedgerError):
    code = "ITEM_NOT_FOUND"


class InsufficientStockError(LedgerError):
    """
    Raised when an OUT movement asks for more than is on hand.

    details carries item_id, available and required so the caller can
    tell the user exactly what is short.
    """
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: int, available: int, required: int, sku: str | None = None):
        super().__init__(
            f"Insufficient stock for item {item_id}. Available: {available}, required: {required}",
            {"item_id": item_id, "sku": sku, "available": available, "required": required},
        )
        self.item_id = item_id
        self.available = available
        self.required = required


def _load_item_locked(item_id: int) -> InventoryItem:
    item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found", {"item_id": item_id})
    return item


def _apply_movement_locked(req: MovementRequest) -> Movement:
    """
    Core apply logic without transaction control, retry or commit.

    Called by apply_movement() for ad-hoc moves and by order fulfillment
    once per order line, so a whole order shares one transaction.
    """
    item = _load_item_locked(req.item_id)

    if req.type is MovementType.OUT and req.quantity > item.quantity:
        logger.warning(
            "Rejected OUT movement: item_id=%s available=%s required=%s token=%s",
            item.id, item.quantity, req.quantity, req.correlation_token,
        )
        raise InsufficientStockError(item.id, item.quantity, req.quantity, sku=item.sku)

    movement = Movement(
        type=req.type.value,
        item_id=item.id,
        quantity=req.quantity,
        user_id=req.user_id,
        client_id=req.client_id,
        correlation_token=req.correlation_token,
        note=req.note,
    )
    db.session.add(movement)

    item.quantity = item.quantity + req.type.sign * req.quantity

    db.session.flush()
    return movement


def apply_movement(
    *,
    item_id: int,
    type: MovementType | str,
    quantity: int,
    user_id: int | None = None,
    client_id: int | None = None,
    correlation_token: str | None = None,
    note: str | None = None,
) -> Movement:
    """
    Apply one IN/OUT movement to one item and commit.

    Raises:
        ValidationError: quantity <= 0, bad type (nothing touched)
        ItemNotFoundError: item_id does not exist
        InsufficientStockError: OUT exceeds on-hand
        StorageError: the transaction could not be committed
    """
    req = MovementRequest(
        item_id=item_id,
        type=type,
        quantity=quantity,
        user_id=user_id,
        client_id=client_id,
        correlation_token=correlation_token,
        note=note,
    )

    def _op():
        begin_write()
        movement = _apply_movement_locked(req)
        db.session.commit()
        return movement

    movement = run_with_retry(_op)
    logger.info(
        "Applied %s movement id=%s item_id=%s quantity=%s token=%s",
        movement.type, movement.id, movement.item_id, movement.quantity, movement.correlation_token,
    )
    return movement


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found", {"item_id": item_id})
    return item


def list_movements(
    *,
    item_id: int | None = None,
    correlation_token: str | None = None,
    since: datetime | None = None,
    limit: int = 200,
) -> list[Movement]:
    """Newest first. `since` is inclusive."""
    q = db.session.query(Movement)
    if item_id is not None:
        q = q.filter(Movement.item_id == item_id)
    if correlation_token is not None:
        q = q.filter(Movement.correlation_token == correlation_token)
    if since is not None:
        q = q.filter(Movement.occurred_at >= since)

    return q.order_by(Movement.occurred_at.desc(), Movement.id.desc()).limit(limit).all()


def net_quantity_for_token(correlation_token: str) -> dict[int, int]:
    """
    Signed quantity applied per item by movements carrying a correlation token.

    Used to reconcile an order against what actually reached the ledger.
    """
    rows = (
        db.session.query(Movement.item_id, Movement.type, db.func.sum(Movement.quantity))
        .filter(Movement.correlation_token == correlation_token)
        .group_by(Movement.item_id, Movement.type)
        .all()
    )
    totals: dict[int, int] = {}
    for item_id, type_, qty in rows:
        totals[item_id] = totals.get(item_id, 0) + MovementType(type_).sign * int(qty or 0)
    return totals
