# Overview: Resolves scanned tokens to an order or an item and dispatches to the engine.

"""
Scan Resolver

WHY: A single scanner input feeds two workflows. Deterministic resolution
prevents a mis-scan from fulfilling the wrong thing.

TOKEN SHAPES (checked in this order):
1. Order QR payload: ORDER|<order id>|<order code>
   Looked up by id; the code part must match when present. Falls back to
   a lookup by code if the id is stale or malformed.
2. Item SKU (case-insensitive, surrounding whitespace ignored)
3. Bare order code (e.g. ORD-0042), for hand-typed input

Resolution is read-only. Anything else raises UnknownTokenError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..extensions import db
from ..models import InventoryItem, Movement, Order, OrderStatus
from . import ledger_service, order_service
from .order_service import QR_PREFIX


SCAN_KIND_ORDER = "order"
SCAN_KIND_ITEM = "item"


class UnknownTokenError(Exception):
    code = "UNKNOWN_TOKEN"

    def __init__(self, token: str):
        super().__init__(f"Code not found: {token}")
        self.token = token
        self.details = {"token": token}


@dataclass(frozen=True)
class ScanResult:
    kind: str
    token: str
    order: Optional[Order] = None
    item: Optional[InventoryItem] = None
    can_process: bool = False
    is_reprocess: bool = False
    message: str = ""

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind,
            "token": self.token,
            "can_process": self.can_process,
            "is_reprocess": self.is_reprocess,
            "message": self.message,
        }
        if self.order is not None:
            data["order"] = order_service.get_order_summary(self.order.id)
        if self.item is not None:
            data["item"] = self.item.to_dict()
        return data


def normalize_token(token: str) -> str:
    return (token or "").strip()


def _order_from_qr(token: str) -> Order | None:
    parts = token.split("|")
    if len(parts) < 2 or parts[0] != QR_PREFIX:
        return None

    raw_id = parts[1].strip()
    code = parts[2].strip() if len(parts) > 2 and parts[2].strip() else None

    order = None
    if raw_id.isdigit():
        order = db.session.get(Order, int(raw_id))
        if order is not None and code is not None and order.code != code:
            order = None
    if order is None and code is not None:
        order = order_service.get_order_by_code(code)
    return order


def _item_by_sku(token: str) -> InventoryItem | None:
    return (
        db.session.query(InventoryItem)
        .filter(db.func.upper(InventoryItem.sku) == token.upper())
        .first()
    )


def _order_result(token: str, order: Order, elevated: bool) -> ScanResult:
    status = OrderStatus(order.status)
    if status is OrderStatus.PENDING:
        return ScanResult(
            kind=SCAN_KIND_ORDER, token=token, order=order, can_process=True,
            message="Order found. Confirm processing.",
        )
    if status is OrderStatus.COMPLETED:
        if elevated:
            return ScanResult(
                kind=SCAN_KIND_ORDER, token=token, order=order, can_process=True, is_reprocess=True,
                message="This order was already processed. Processing it again re-applies every line.",
            )
        return ScanResult(
            kind=SCAN_KIND_ORDER, token=token, order=order,
            message="This code was already scanned and processed.",
        )
    return ScanResult(
        kind=SCAN_KIND_ORDER, token=token, order=order,
        message=f"Order was cancelled: {order.cancellation_reason}",
    )


def resolve_token(token: str, *, elevated: bool = False) -> ScanResult:
    """
    Decode a scanned token without side effects.

    Raises:
        UnknownTokenError: token matches no order and no item
    """
    token = normalize_token(token)
    if not token:
        raise UnknownTokenError(token)

    if token.startswith(f"{QR_PREFIX}|"):
        order = _order_from_qr(token)
        if order is None:
            raise UnknownTokenError(token)
        return _order_result(token, order, elevated)

    item = _item_by_sku(token)
    if item is not None:
        return ScanResult(
            kind=SCAN_KIND_ITEM, token=token, item=item, can_process=True,
            message="Item found. Choose direction and quantity.",
        )

    order = order_service.get_order_by_code(token)
    if order is not None:
        return _order_result(token, order, elevated)

    raise UnknownTokenError(token)


def process_order_scan(token: str, *, user_id: int, elevated: bool = False) -> Order:
    """Resolve an order token and fulfill it (reprocess only when elevated)."""
    result = resolve_token(token, elevated=elevated)
    if result.kind != SCAN_KIND_ORDER:
        raise UnknownTokenError(result.token)
    return order_service.fulfill_order(result.order.id, user_id, elevated=elevated)


def process_item_scan(
    token: str,
    *,
    type,
    quantity: int,
    user_id: int,
    client_id: int | None = None,
) -> Movement:
    """Resolve an item SKU and apply one ad-hoc movement for it."""
    result = resolve_token(token)
    if result.kind != SCAN_KIND_ITEM:
        raise UnknownTokenError(result.token)
    return ledger_service.apply_movement(
        item_id=result.item.id,
        type=type,
        quantity=quantity,
        user_id=user_id,
        client_id=client_id,
        note=f"Scan {result.item.sku}",
    )
