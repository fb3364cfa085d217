# backend/stockline/services/order_service.py
"""
Order aggregate store and fulfillment engine.

WHY: Orders batch several item/quantity lines that move stock in one
direction. Nothing touches the ledger until the order is fulfilled, and
fulfillment applies every line or none of them.

LIFECYCLE (transition table in order_lifecycle.py):
1. PENDING: order and all of its lines written in one transaction
2. COMPLETED: fulfill_order() applied one Movement per line, each tagged
   with the order code as correlation token
3. CANCELLED: cancel_order() with a mandatory reason; no stock effect

Reprocess (COMPLETED -> COMPLETED) is available to elevated callers only.
It re-applies every line again and is NOT idempotent.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Order, OrderLine, OrderStatus, InventoryItem, Warehouse, Client, Movement
from ..time_utils import utcnow
from ..validation import CreateOrderRequest, CancelOrderRequest, MovementRequest, ValidationError, coerce_movement_type
from . import order_lifecycle
from .concurrency import begin_write, lock_for_update, run_with_retry
from .ledger_service import _apply_movement_locked, net_quantity_for_token
from .sequence_service import next_order_code


logger = logging.getLogger(__name__)

QR_PREFIX = "ORDER"


class OrderError(Exception):
    """Raised when order operations fail."""
    code = "ORDER_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderNotFoundError(OrderError):
    code = "ORDER_NOT_FOUND"


class OrderTerminalError(OrderError):
    """The order is CANCELLED and can never change again."""
    code = "ORDER_TERMINAL"


class AlreadyProcessedError(OrderError):
    """The order is COMPLETED and the caller may not reprocess it."""
    code = "ALREADY_PROCESSED"


class NotPendingError(OrderError):
    code = "NOT_PENDING"


def build_qr_payload(order: Order) -> str:
    return f"{QR_PREFIX}|{order.id}|{order.code}"


def _load_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise OrderNotFoundError(f"Order {order_id} not found", {"order_id": order_id})
    return order


def _allocate_code(requested: str | None) -> str:
    if requested is not None:
        if db.session.query(Order.id).filter_by(code=requested).first():
            raise ValidationError(f"Order code {requested} already exists", {"field": "code", "code": requested})
        return requested

    # Skip numbers already taken by manually-coded orders
    for _ in range(100):
        code = next_order_code()
        if not db.session.query(Order.id).filter_by(code=code).first():
            return code
    raise ValidationError("Could not allocate a free order code", {"field": "code"})


def create_order(
    *,
    direction,
    lines,
    created_by_user_id: int,
    code: str | None = None,
    warehouse_id: int | None = None,
    client_id: int | None = None,
) -> Order:
    """
    Create a PENDING order with its full set of lines.

    Stock is NOT checked here, even for OUT orders: availability is only
    authoritative at fulfillment time.

    Args:
        direction: "IN" or "OUT"
        lines: iterable of {"item_id": int, "quantity": int} or OrderLineRequest
        created_by_user_id: User creating the order
        code: Optional explicit order code; allocated from the sequence if omitted
        warehouse_id: Optional source/target warehouse
        client_id: Optional client

    Raises:
        ValidationError: empty lines, bad quantity, unknown item/warehouse/client,
            duplicate code (nothing is persisted)
    """
    req = CreateOrderRequest(
        direction=direction,
        lines=tuple(lines or ()),
        created_by_user_id=created_by_user_id,
        code=code,
        warehouse_id=warehouse_id,
        client_id=client_id,
    )
    merged = req.merged_lines()

    def _op():
        begin_write()

        if req.warehouse_id is not None and db.session.get(Warehouse, req.warehouse_id) is None:
            raise ValidationError(f"Warehouse {req.warehouse_id} not found", {"field": "warehouse_id"})
        if req.client_id is not None and db.session.get(Client, req.client_id) is None:
            raise ValidationError(f"Client {req.client_id} not found", {"field": "client_id"})

        item_ids = [line.item_id for line in merged]
        found = {
            row.id for row in db.session.query(InventoryItem.id).filter(InventoryItem.id.in_(item_ids))
        }
        missing = [i for i in item_ids if i not in found]
        if missing:
            raise ValidationError(
                f"Unknown items: {', '.join(str(i) for i in missing)}",
                {"field": "lines", "missing_item_ids": missing},
            )

        order = Order(
            code=_allocate_code(req.code),
            direction=req.direction.value,
            status=OrderStatus.PENDING.value,
            warehouse_id=req.warehouse_id,
            client_id=req.client_id,
            created_by_user_id=req.created_by_user_id,
            created_at=utcnow(),
            lines=[OrderLine(item_id=line.item_id, quantity=line.quantity) for line in merged],
        )
        db.session.add(order)
        db.session.flush()  # Get ID for the QR payload

        order.qr_code = build_qr_payload(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info(
        "Created %s order %s (id=%s) with %d line(s)",
        order.direction, order.code, order.id, len(merged),
    )
    return order


def fulfill_order(order_id: int, completed_by_user_id: int, *, elevated: bool = False) -> Order:
    """
    Apply every line of an order as a Movement and mark it COMPLETED.

    All-or-nothing: lines are applied inside one transaction; the first
    failing line (e.g. insufficient stock) rolls back every movement
    already applied for this order and leaves the status untouched.

    Args:
        order_id: Order to fulfill
        completed_by_user_id: User scanning/confirming the order
        elevated: Caller holds the admin permission; required to reprocess
            an order that is already COMPLETED

    Raises:
        OrderNotFoundError, OrderTerminalError, AlreadyProcessedError,
        InsufficientStockError, ItemNotFoundError, StorageError
    """
    def _op():
        begin_write()
        order = _load_order_locked(order_id)
        status = OrderStatus(order.status)

        if status in order_lifecycle.TERMINAL_STATUSES:
            raise OrderTerminalError(
                f"Order {order.code} is {status.value} and cannot be fulfilled",
                {"order_id": order.id, "code": order.code, "status": status.value},
            )
        if status is OrderStatus.COMPLETED and not elevated:
            raise AlreadyProcessedError(
                f"Order {order.code} was already processed",
                {
                    "order_id": order.id,
                    "code": order.code,
                    "completed_at": order.completed_at.isoformat() if order.completed_at else None,
                },
            )
        order_lifecycle.require_transition(status, OrderStatus.COMPLETED, elevated=elevated)

        reprocess = order_lifecycle.is_reprocess(status, OrderStatus.COMPLETED)
        if reprocess:
            logger.warning(
                "REPROCESSING completed order %s (id=%s) by user %s: every line is applied again "
                "and stock effects are double-counted",
                order.code, order.id, completed_by_user_id,
            )

        for line in order.lines:
            _apply_movement_locked(MovementRequest(
                item_id=line.item_id,
                type=order.direction,
                quantity=line.quantity,
                user_id=completed_by_user_id,
                client_id=order.client_id,
                correlation_token=order.code,
                note=f"Reprocess of order {order.code}" if reprocess else f"Order {order.code}",
            ))

        order.status = OrderStatus.COMPLETED.value
        order.completed_at = utcnow()
        order.completed_by_user_id = completed_by_user_id
        order.fulfillment_count = (order.fulfillment_count or 0) + 1

        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info(
        "Fulfilled order %s (id=%s) by user %s, %d movement(s)",
        order.code, order.id, order.completed_by_user_id, len(order.lines),
    )
    return order


def cancel_order(order_id: int, reason: str, cancelled_by_user_id: int | None = None) -> Order:
    """
    Cancel a PENDING order.

    Raises:
        ReasonRequiredError: reason missing or blank (checked first)
        OrderNotFoundError: order does not exist
        NotPendingError: order is COMPLETED or already CANCELLED
    """
    req = CancelOrderRequest(order_id=order_id, reason=reason, cancelled_by_user_id=cancelled_by_user_id)

    def _op():
        begin_write()
        order = _load_order_locked(req.order_id)
        status = OrderStatus(order.status)

        if not order_lifecycle.can_transition(status, OrderStatus.CANCELLED):
            raise NotPendingError(
                f"Cannot cancel order {order.code} in {status.value} status. "
                f"Orders can only be cancelled while PENDING.",
                {"order_id": order.id, "code": order.code, "status": status.value},
            )

        order.status = OrderStatus.CANCELLED.value
        order.cancellation_reason = req.reason
        order.cancelled_at = utcnow()

        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Cancelled order %s (id=%s): %s", order.code, order.id, order.cancellation_reason)
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError(f"Order {order_id} not found", {"order_id": order_id})
    return order


def get_order_by_code(code: str) -> Order | None:
    return db.session.query(Order).filter_by(code=code).first()


def get_order_summary(order_id: int) -> dict:
    """
    Get order summary with lines.
    """
    order = get_order(order_id)
    return {
        **order.to_dict(),
        "lines": [line.to_dict() for line in order.lines],
    }


def list_orders(*, status: str | None = None, direction: str | None = None, limit: int = 100) -> list[Order]:
    query = db.session.query(Order)
    if status:
        try:
            query = query.filter_by(status=OrderStatus(status.strip().upper()).value)
        except ValueError:
            raise ValidationError(f"Invalid status filter: {status}", {"field": "status"})
    if direction:
        query = query.filter_by(direction=coerce_movement_type(direction, "direction").value)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def reconcile_order(order_id: int) -> dict:
    """
    Compare an order's lines with the movements that carry its code.

    For a COMPLETED order each line should have been applied
    fulfillment_count times; PENDING and CANCELLED orders should have no
    movements at all. Returns per-line expected/applied figures and an
    overall `consistent` flag.
    """
    order = get_order(order_id)
    applied = net_quantity_for_token(order.code)
    sign = 1 if order.direction == "IN" else -1
    times = order.fulfillment_count if order.status == OrderStatus.COMPLETED.value else 0

    lines = []
    consistent = True
    for line in order.lines:
        expected = sign * line.quantity * times
        actual = applied.pop(line.item_id, 0)
        ok = expected == actual
        consistent = consistent and ok
        lines.append({
            "item_id": line.item_id,
            "quantity": line.quantity,
            "expected_delta": expected,
            "applied_delta": actual,
            "ok": ok,
        })

    # Movements tagged with this code for items not on the order
    stray = [{"item_id": item_id, "applied_delta": delta} for item_id, delta in applied.items() if delta]
    if stray:
        consistent = False

    movement_count = db.session.query(Movement.id).filter(Movement.correlation_token == order.code).count()

    return {
        "order_id": order.id,
        "code": order.code,
        "status": order.status,
        "fulfillment_count": order.fulfillment_count,
        "movement_count": movement_count,
        "reprocessed": order.fulfillment_count > 1,
        "consistent": consistent,
        "lines": lines,
        "unexpected": stray,
    }
