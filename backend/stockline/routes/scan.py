# Overview: Flask API routes for the scanner workflow.

from flask import Blueprint, request, jsonify, g

from ..services import ledger_service, order_service, scan_service
from ..decorators import require_user
from ..validation import ValidationError, coerce_int, coerce_movement_type, require_payload
from .responses import error_response


scan_bp = Blueprint("scan", __name__, url_prefix="/api/scan")


def _token_from_request() -> str:
    data = require_payload(request.get_json(silent=True))
    token = data.get("token")
    if not isinstance(token, str) or not token.strip():
        raise ValidationError("token is required", {"field": "token"})
    return token


@scan_bp.post("/resolve")
@require_user
def resolve():
    """
    Decode a scanned token without side effects.

    Returns:
        200: {"kind": "order" | "item", "can_process": bool, "is_reprocess": bool, ...}
        404: Unknown token
    """
    try:
        result = scan_service.resolve_token(_token_from_request(), elevated=g.elevated)
        return jsonify(result.to_dict()), 200
    except Exception as e:
        return error_response(e)


@scan_bp.post("/order")
@require_user
def process_order():
    """Fulfill the order a token resolves to."""
    try:
        order = scan_service.process_order_scan(
            _token_from_request(), user_id=g.current_user.id, elevated=g.elevated
        )
        return jsonify(order_service.get_order_summary(order.id)), 200
    except Exception as e:
        return error_response(e)


@scan_bp.post("/item")
@require_user
def process_item():
    """
    Apply a movement to the item a SKU token resolves to.

    Request body:
    {
        "token": str,
        "type": "IN" | "OUT",
        "quantity": int,
        "client_id": int (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        movement = scan_service.process_item_scan(
            _token_from_request(),
            type=coerce_movement_type(data.get("type")),
            quantity=coerce_int(data.get("quantity"), "quantity"),
            user_id=g.current_user.id,
            client_id=coerce_int(data.get("client_id"), "client_id", required=False),
        )
        return jsonify({
            "movement": movement.to_dict(),
            "item": ledger_service.get_item(movement.item_id).to_dict(),
        }), 201
    except Exception as e:
        return error_response(e)
