"""Helpers shared by the JSON controllers.

The caller identity comes from the Flask session (``user_id`` / ``role``),
which the external identity layer populates.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Optional

from flask import jsonify, session

from ..core.enums import Role


def json_error(message: str, status: int, **extra: Any):
    body = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def current_user_id() -> Optional[int]:
    raw = session.get("user_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def current_role() -> Optional[Role]:
    try:
        return Role(session.get("role"))
    except ValueError:
        return None


def api_login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            return json_error("Not authenticated", 401)
        return view(*args, **kwargs)

    return wrapper


def api_roles_required(*roles: Role):
    """Allow only the given roles (401 when anonymous, 403 otherwise)."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if current_user_id() is None:
                return json_error("Not authenticated", 401)
            if current_role() not in roles:
                return json_error("Forbidden", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
