"""Role-based access control helpers.

Tokens carry the account role in the `role` claim ('user' or 'admin').
These helpers standardize identity and authorization checks across routes.
"""

from __future__ import annotations

from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity


def current_role() -> str:
    claims = get_jwt() or {}
    role = claims.get("role")
    return str(role or "").lower()


def current_user_id() -> int | None:
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        return None


def require_roles(*roles: str):
    """Decorator to require one of the allowed roles.

    Must be used with @jwt_required() on the route.
    """

    allowed = {str(r).lower() for r in roles if str(r).strip()}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_role() not in allowed:
                msg = "Admin access required" if allowed == {"admin"} else "Access denied"
                return jsonify({"success": False, "message": msg}), 403
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_admin(fn):
    return require_roles("admin")(fn)
