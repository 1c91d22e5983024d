from flask import Blueprint, current_app, g, request

from app.skinserver.audit import record_event
from app.skinserver.db import db_session
from app.skinserver.models import User
from app.skinserver.options import DEFAULT_OPTIONS, all_options, set_option
from app.skinserver.rbac import require_admin
from app.skinserver.utils import request_payload, result

bp = Blueprint("admin", __name__)

PER_PAGE = 50
GRANTABLE_PERMISSIONS = (User.BANNED, User.NORMAL, User.ADMIN)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@bp.get("/options")
@require_admin
def options_get():
    return result(0, "ok", options=all_options(db_session()))


@bp.post("/options")
@require_admin
def options_post():
    s = db_session()
    payload = {k: v for k, v in request_payload().items() if k != "csrf_token"}
    unknown = sorted(k for k in payload if k not in DEFAULT_OPTIONS)
    if unknown:
        return result(1, f"Unknown option: {', '.join(unknown)}")
    if not payload:
        return result(1, "Nothing to update.")

    try:
        changed = {name: set_option(s, name, value) for name, value in payload.items()}
    except ValueError as e:
        s.rollback()
        return result(1, str(e))
    record_event(s, actor=_current_user(), action="admin.options", entity_type="Option", metadata=changed)
    s.commit()
    current_app.logger.info("Options updated by uid=%s: %s", _current_user().uid, ", ".join(sorted(changed)))
    return result(0, "Options saved.", options=all_options(s))


@bp.get("/users")
@require_admin
def users_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    try:
        page = max(int(request.args.get("page") or 1), 1)
    except ValueError:
        page = 1

    q = s.query(User)
    if search:
        like = f"%{_escape_like(search)}%"
        q = q.filter(User.email.ilike(like, escape="\\") | User.nickname.ilike(like, escape="\\"))
    total = q.count()
    users = q.order_by(User.uid.asc()).offset((page - 1) * PER_PAGE).limit(PER_PAGE).all()
    return result(0, "ok", total=total, page=page, users=[u.to_dict() for u in users])


@bp.post("/users/<int:uid>/permission")
@require_admin
def users_permission(uid: int):
    s = db_session()
    actor = _current_user()
    payload = request_payload()
    try:
        level = int(payload.get("permission"))
    except (TypeError, ValueError):
        return result(1, "Invalid permission.")
    if level not in GRANTABLE_PERMISSIONS:
        return result(1, "Invalid permission.")

    target = s.get(User, uid)
    if target is None:
        return result(1, "User not existed.")
    # admins may only manage users strictly below themselves, and only grant below their own level
    if target.uid == actor.uid or target.permission >= actor.permission or level >= actor.permission:
        return result(1, "Permission denied.")

    old = target.permission
    target.permission = level
    record_event(
        s,
        actor=actor,
        action="admin.user_permission",
        entity_type="User",
        entity_id=target.uid,
        metadata={"old": old, "new": level},
    )
    s.commit()
    return result(0, "Permission updated.", user=target.to_dict())
