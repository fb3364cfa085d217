# Overview: Order state machine; the single source of truth for allowed status transitions.

"""
Stockline Order Lifecycle

================================================================================
STATE MACHINE:
    PENDING -> COMPLETED     fulfill (applies every line as a Movement)
    PENDING -> CANCELLED     cancel (reason required, no stock effect)
    COMPLETED -> COMPLETED   reprocess (elevated callers only)

RULES:
1. CANCELLED is terminal.
2. COMPLETED is terminal for ordinary callers.
3. Reprocess re-applies every line a second time. It is NOT idempotent and
   double-counts stock unless the first application was wrong. It is kept
   as an administrative correction path and logged every time it runs.
4. Any pair not in TRANSITIONS is rejected.
================================================================================
"""

from __future__ import annotations

from ..models import OrderStatus


class LifecycleError(ValueError):
    """
    Raised when an invalid lifecycle transition is attempted.

    This is a domain error, not a technical error.
    """
    code = "INVALID_TRANSITION"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# (from, to) -> requires elevated permission
TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], bool] = {
    (OrderStatus.PENDING, OrderStatus.COMPLETED): False,
    (OrderStatus.PENDING, OrderStatus.CANCELLED): False,
    (OrderStatus.COMPLETED, OrderStatus.COMPLETED): True,
}

TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED})


def parse_status(status: str | OrderStatus) -> OrderStatus:
    try:
        return OrderStatus(status)
    except ValueError:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: "
            f"{', '.join(s.value for s in OrderStatus)}",
            {"status": status},
        )


def can_transition(from_status, to_status, *, elevated: bool = False) -> bool:
    key = (parse_status(from_status), parse_status(to_status))
    if key not in TRANSITIONS:
        return False
    return elevated or not TRANSITIONS[key]


def is_reprocess(from_status, to_status) -> bool:
    return parse_status(from_status) is OrderStatus.COMPLETED and parse_status(to_status) is OrderStatus.COMPLETED


def require_transition(from_status, to_status, *, elevated: bool = False) -> None:
    """Raise LifecycleError unless from_status -> to_status is allowed for this caller."""
    if not can_transition(from_status, to_status, elevated=elevated):
        raise LifecycleError(
            f"Cannot transition order from {parse_status(from_status).value} "
            f"to {parse_status(to_status).value}",
            {"from": parse_status(from_status).value, "to": parse_status(to_status).value},
        )
