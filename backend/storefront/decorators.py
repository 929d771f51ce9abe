# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app


def require_admin_identity(f):
    """
    Require the upstream identity provider's assertion for back-office routes.

    Authentication itself happens in front of this service; the proxy sets
    ADMIN_IDENTITY_HEADER to the signed-in user's name. That value is stored
    in g.actor and attributed on every audit entry the request produces.

    Returns 401 when the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("ADMIN_IDENTITY_HEADER", "X-Authenticated-User")
        actor = (request.headers.get(header) or "").strip()

        if not actor:
            current_app.logger.warning(
                "Rejected %s %s: missing %s header", request.method, request.path, header
            )
            return jsonify({"success": False, "message": "Authentication required"}), 401

        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function
