"""
Typed request structs for every ledger/order operation.

Each struct validates itself in __post_init__, so constructing one is the
validation step. Services build them from keyword arguments before touching
the database; routes build them from JSON via from_payload(), which first
coerces loosely-typed input.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .models import MovementType


# Guard against nonsensical or overflowing quantities
MAX_QUANTITY = 1_000_000_000


class ValidationError(ValueError):
    """400-level input problem."""
    code = "VALIDATION_FAILED"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ReasonRequiredError(ValidationError):
    """Cancellation attempted without a usable reason."""
    code = "REASON_REQUIRED"


def coerce_int(value: Any, key: str, *, required: bool = True) -> Optional[int]:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if value is None:
        if required:
            raise ValidationError(f"{key} is required", {"field": key})
        return None

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer", {"field": key})
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)", {"field": key})
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)", {"field": key})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer", {"field": key})
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal", {"field": key})
    raise ValidationError(f"{key} must be an integer", {"field": key})


def coerce_str(value: Any, key: str, *, max_length: int | None = None) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_length and len(s) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}", {"field": key})
    return s


def coerce_movement_type(value: Any, key: str = "type") -> MovementType:
    if isinstance(value, MovementType):
        return value
    try:
        return MovementType(str(value).strip().upper())
    except (ValueError, AttributeError):
        raise ValidationError(f"{key} must be IN or OUT", {"field": key, "value": value})


def _check_quantity(quantity: int, key: str = "quantity") -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError(f"{key} must be an integer", {"field": key})
    if quantity <= 0:
        raise ValidationError(f"{key} must be > 0", {"field": key, "value": quantity})
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}", {"field": key, "value": quantity})


def require_payload(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


@dataclass(frozen=True)
class MovementRequest:
    item_id: int
    type: MovementType
    quantity: int
    user_id: Optional[int] = None
    client_id: Optional[int] = None
    correlation_token: Optional[str] = None
    note: Optional[str] = None

    def __post_init__(self):
        if self.item_id is None:
            raise ValidationError("item_id is required", {"field": "item_id"})
        object.__setattr__(self, "type", coerce_movement_type(self.type))
        _check_quantity(self.quantity)

    @classmethod
    def from_payload(cls, payload: Any, *, user_id: int | None) -> "MovementRequest":
        payload = require_payload(payload)
        return cls(
            item_id=coerce_int(payload.get("item_id"), "item_id"),
            type=coerce_movement_type(payload.get("type")),
            quantity=coerce_int(payload.get("quantity"), "quantity"),
            user_id=user_id,
            client_id=coerce_int(payload.get("client_id"), "client_id", required=False),
            correlation_token=coerce_str(payload.get("correlation_token"), "correlation_token", max_length=64),
            note=coerce_str(payload.get("note"), "note", max_length=255),
        )


@dataclass(frozen=True)
class OrderLineRequest:
    item_id: int
    quantity: int

    def __post_init__(self):
        if self.item_id is None:
            raise ValidationError("line item_id is required", {"field": "item_id"})
        _check_quantity(self.quantity)


ORDER_LINE_FIELDS = frozenset({"item_id", "quantity"})


def _line_from_raw(raw: Any, idx: int) -> OrderLineRequest:
    """Build one order line from an OrderLineRequest or a {"item_id", "quantity"} dict."""
    if isinstance(raw, OrderLineRequest):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(f"lines[{idx}] must be an object", {"field": "lines", "index": idx})

    unknown = sorted(str(key) for key in raw if key not in ORDER_LINE_FIELDS)
    if unknown:
        raise ValidationError(
            f"lines[{idx}] has unknown fields: {', '.join(unknown)}",
            {"field": "lines", "index": idx, "unknown": unknown},
        )
    return OrderLineRequest(
        item_id=coerce_int(raw.get("item_id"), f"lines[{idx}].item_id"),
        quantity=coerce_int(raw.get("quantity"), f"lines[{idx}].quantity"),
    )


@dataclass(frozen=True)
class CreateOrderRequest:
    direction: MovementType
    lines: tuple
    created_by_user_id: int
    code: Optional[str] = None
    warehouse_id: Optional[int] = None
    client_id: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "direction", coerce_movement_type(self.direction, "direction"))
        if not self.lines:
            raise ValidationError("Order must have at least one line", {"field": "lines"})
        lines = tuple(_line_from_raw(line, idx) for idx, line in enumerate(self.lines))
        object.__setattr__(self, "lines", lines)
        if self.created_by_user_id is None:
            raise ValidationError("created_by_user_id is required", {"field": "created_by_user_id"})
        if self.code is not None:
            if not isinstance(self.code, str):
                raise ValidationError("code must be a string", {"field": "code"})
            code = self.code.strip()
            if not code:
                raise ValidationError("code cannot be blank", {"field": "code"})
            if "|" in code:
                raise ValidationError("code cannot contain '|'", {"field": "code"})
            if len(code) > 64:
                raise ValidationError("code exceeds max length 64", {"field": "code"})
            object.__setattr__(self, "code", code)

    def merged_lines(self) -> list[OrderLineRequest]:
        """One line per item, quantities summed, first-seen order kept."""
        totals: dict[int, int] = {}
        for line in self.lines:
            totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
        return [OrderLineRequest(item_id=k, quantity=v) for k, v in totals.items()]

    @classmethod
    def from_payload(cls, payload: Any, *, user_id: int) -> "CreateOrderRequest":
        payload = require_payload(payload)
        raw_lines = payload.get("lines")
        if raw_lines is None:
            raw_lines = []
        if not isinstance(raw_lines, list):
            raise ValidationError("lines must be a list", {"field": "lines"})

        return cls(
            direction=coerce_movement_type(payload.get("direction"), "direction"),
            lines=tuple(raw_lines),
            created_by_user_id=user_id,
            code=coerce_str(payload.get("code"), "code"),
            warehouse_id=coerce_int(payload.get("warehouse_id"), "warehouse_id", required=False),
            client_id=coerce_int(payload.get("client_id"), "client_id", required=False),
        )


@dataclass(frozen=True)
class CancelOrderRequest:
    order_id: int
    reason: str = field(default="")
    cancelled_by_user_id: Optional[int] = None

    def __post_init__(self):
        if self.reason is not None and not isinstance(self.reason, str):
            raise ValidationError("reason must be a string", {"field": "reason"})
        reason = (self.reason or "").strip()
        if not reason:
            raise ReasonRequiredError("Cancellation reason is required", {"field": "reason"})
        object.__setattr__(self, "reason", reason)
