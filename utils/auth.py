"""Static bearer-token check for the API routes."""

import hmac
from functools import wraps

from flask import current_app, jsonify, request

from config.defaults import DEFAULTS


def _unauthorized(message):
    return jsonify({"success": False, "status": "fail", "message": message}), 401


def require_token(view):
    """Reject the request with 401 unless it carries ``Authorization: Bearer <API_TOKEN>``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return _unauthorized("Authentication required. Please provide a valid Bearer token.")
        token = header[len("Bearer "):].strip()
        if not hmac.compare_digest(token.encode("utf-8"), DEFAULTS["api_token"].encode("utf-8")):
            return _unauthorized("Invalid token")
        return current_app.ensure_sync(view)(*args, **kwargs)

    return wrapper
