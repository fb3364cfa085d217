# Overview: Flask API routes for stock lookups and ad-hoc movements; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_user
from ..services import catalog_service, ledger_service
from ..time_utils import parse_iso_datetime
from ..validation import MovementRequest, ValidationError, coerce_int
from .responses import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/warehouses")
@require_user
def list_warehouses():
    return jsonify([w.to_dict() for w in catalog_service.list_warehouses()]), 200


@inventory_bp.get("/inventory")
@require_user
def list_items():
    """
    List items, optionally for one warehouse.

    Query parameters:
        warehouse_id: Filter by warehouse
    """
    try:
        warehouse_id = coerce_int(request.args.get("warehouse_id"), "warehouse_id", required=False)
        items = catalog_service.list_items(warehouse_id=warehouse_id)
        return jsonify([i.to_dict() for i in items]), 200
    except Exception as e:
        return error_response(e)


@inventory_bp.get("/inventory/<int:item_id>")
@require_user
def get_item(item_id: int):
    try:
        return jsonify(ledger_service.get_item(item_id).to_dict()), 200
    except Exception as e:
        return error_response(e)


@inventory_bp.post("/movements")
@require_user
def create_movement():
    """
    Apply an ad-hoc movement.

    Request body:
    {
        "item_id": int,
        "type": "IN" | "OUT",
        "quantity": int,
        "client_id": int (optional),
        "correlation_token": str (optional),
        "note": str (optional)
    }

    Returns:
        201: Movement applied
        400: Invalid request
        404: Item not found
        409: Insufficient stock
    """
    try:
        req = MovementRequest.from_payload(request.get_json(silent=True), user_id=g.current_user.id)
        movement = ledger_service.apply_movement(
            item_id=req.item_id,
            type=req.type,
            quantity=req.quantity,
            user_id=req.user_id,
            client_id=req.client_id,
            correlation_token=req.correlation_token,
            note=req.note,
        )
        return jsonify({
            "movement": movement.to_dict(),
            "item": ledger_service.get_item(movement.item_id).to_dict(),
        }), 201
    except Exception as e:
        return error_response(e)


@inventory_bp.get("/movements")
@require_user
def list_movements():
    """
    List movements, newest first.

    Query parameters:
        item_id: Filter by item
        correlation_token: Filter by order code / token
        since: ISO-8601 lower bound (inclusive)
        limit: Max results (default 200)
    """
    try:
        since_raw = request.args.get("since")
        try:
            since = parse_iso_datetime(since_raw)
        except ValueError:
            raise ValidationError("since must be an ISO-8601 datetime", {"field": "since"})

        movements = ledger_service.list_movements(
            item_id=coerce_int(request.args.get("item_id"), "item_id", required=False),
            correlation_token=request.args.get("correlation_token") or None,
            since=since,
            limit=coerce_int(request.args.get("limit", "200"), "limit"),
        )
        return jsonify([m.to_dict() for m in movements]), 200
    except Exception as e:
        return error_response(e)
