from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.skinserver.models import User
from app.skinserver.utils import result


def user_has_permission(user: User | None, level: int) -> bool:
    if not user or user.is_banned:
        return False
    return user.permission >= level


def _login_required_response():
    return result(1, "Please log in first."), 401


def require_permission(level: int) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user:
                return _login_required_response()
            if user.is_banned:
                g.forbidden_reason = "You are banned."
                abort(403)
            if not user_has_permission(user, level):
                g.forbidden_reason = "Permission denied."
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


require_login = require_permission(User.NORMAL)
require_admin = require_permission(User.ADMIN)
