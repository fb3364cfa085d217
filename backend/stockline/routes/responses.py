# Overview: Maps domain exceptions to JSON error responses.

from flask import jsonify, current_app

from ..services.concurrency import StorageError
from ..services.ledger_service import LedgerError, ItemNotFoundError
from ..services.order_lifecycle import LifecycleError
from ..services.order_service import OrderError, OrderNotFoundError
from ..services.scan_service import UnknownTokenError
from ..validation import ValidationError


def error_response(exc: Exception):
    """
    Validation -> 400, missing entities -> 404, state/stock conflicts -> 409,
    storage -> 503. Anything unrecognised is logged and returned as 500.
    """
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, (ItemNotFoundError, OrderNotFoundError, UnknownTokenError)):
        status = 404
    elif isinstance(exc, (LedgerError, OrderError)):
        status = 409
    elif isinstance(exc, LifecycleError):
        status = 400
    elif isinstance(exc, StorageError):
        current_app.logger.error("Storage failure: %s", exc)
        status = 503
    else:
        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "error": str(exc),
        "code": exc.code,
        "details": getattr(exc, "details", {}),
    }), status
