# Overview: Request identity decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import catalog_service


USER_HEADER = "X-User-Id"


def require_user(f):
    """
    Resolve the acting user from the X-User-Id header.

    Authentication happens upstream (gateway / session layer); by the time a
    request reaches us the header names an already-authenticated user. Sets:
    - g.current_user: the User row
    - g.elevated: True when the user holds the admin role

    Returns 401 if the header is missing, malformed, or names an unknown or
    inactive user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(USER_HEADER, "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        user = catalog_service.get_user(int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or inactive user"}), 401

        g.current_user = user
        g.elevated = user.is_admin
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the elevated (admin) role. Must be applied after @require_user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401
        if not g.elevated:
            return jsonify({
                "error": "Permission denied",
                "required_role": "admin",
            }), 403
        return f(*args, **kwargs)

    return decorated_function
