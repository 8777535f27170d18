from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, jsonify, redirect, request, url_for

from app.gymadmin.models import User


def is_api_request() -> bool:
    return request.path.startswith("/api/")


def user_has_role(user: User | None, role: str) -> bool:
    if not user or not user.is_active:
        return False
    return user.role == role


def require_role(role: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login for pages, 401 for the JSON API.
            if not user or not user.is_active:
                if is_api_request():
                    return jsonify({"error": "Authentication required"}), 401
                nxt = request.full_path or request.path
                # Avoid trailing '?' from full_path when there is no query string.
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            # Authenticated but wrong role → 403
            if not user_has_role(user, role):
                g.missing_role = role
                if is_api_request():
                    return jsonify({"error": "Admin access required"}), 403
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


require_admin = require_role("admin")
