# Overview: Flask API routes for orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_user, require_admin
from ..services import order_service
from ..validation import CreateOrderRequest, coerce_int, require_payload
from .responses import error_response


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_user
def create_order():
    """
    Create a PENDING order.

    Request body:
    {
        "direction": "IN" | "OUT",
        "lines": [{"item_id": int, "quantity": int}, ...],
        "code": str (optional, allocated if omitted),
        "warehouse_id": int (optional),
        "client_id": int (optional)
    }

    Returns:
        201: Order created
        400: Invalid request (nothing persisted)
    """
    try:
        req = CreateOrderRequest.from_payload(request.get_json(silent=True), user_id=g.current_user.id)
        order = order_service.create_order(
            direction=req.direction,
            lines=req.lines,
            created_by_user_id=req.created_by_user_id,
            code=req.code,
            warehouse_id=req.warehouse_id,
            client_id=req.client_id,
        )
        return jsonify(order_service.get_order_summary(order.id)), 201
    except Exception as e:
        return error_response(e)


@orders_bp.get("")
@require_user
def list_orders():
    """
    List orders with optional filters.

    Query parameters:
        status: PENDING, COMPLETED, CANCELLED
        direction: IN, OUT
        limit: Max results (default 100)
    """
    try:
        orders = order_service.list_orders(
            status=request.args.get("status"),
            direction=request.args.get("direction"),
            limit=coerce_int(request.args.get("limit", "100"), "limit"),
        )
        return jsonify([order_service.get_order_summary(o.id) for o in orders]), 200
    except Exception as e:
        return error_response(e)


@orders_bp.get("/<int:order_id>")
@require_user
def get_order(order_id: int):
    try:
        return jsonify(order_service.get_order_summary(order_id)), 200
    except Exception as e:
        return error_response(e)


@orders_bp.post("/<int:order_id>/fulfill")
@require_user
def fulfill_order(order_id: int):
    """
    Fulfill an order: apply every line, then mark it COMPLETED.

    Admins may fulfill an already COMPLETED order again (reprocess). That
    re-applies every line and double-counts stock.

    Returns:
        200: Order completed
        404: Order or item not found
        409: Cancelled, already processed, or insufficient stock
    """
    try:
        order = order_service.fulfill_order(order_id, g.current_user.id, elevated=g.elevated)
        return jsonify(order_service.get_order_summary(order.id)), 200
    except Exception as e:
        return error_response(e)


@orders_bp.post("/<int:order_id>/cancel")
@require_user
def cancel_order(order_id: int):
    """
    Cancel a PENDING order.

    Request body:
    {
        "reason": str
    }

    Returns:
        200: Order cancelled
        400: Missing reason
        404: Order not found
        409: Order not pending
    """
    try:
        data = require_payload(request.get_json(silent=True))
        order = order_service.cancel_order(order_id, data.get("reason"), g.current_user.id)
        return jsonify(order_service.get_order_summary(order.id)), 200
    except Exception as e:
        return error_response(e)


@orders_bp.get("/<int:order_id>/reconciliation")
@require_user
@require_admin
def reconcile_order(order_id: int):
    try:
        return jsonify(order_service.reconcile_order(order_id)), 200
    except Exception as e:
        return error_response(e)
