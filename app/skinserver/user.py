from __future__ import annotations

import random
import re
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g
from sqlalchemy.exc import IntegrityError

from app.skinserver.audit import record_event
from app.skinserver.auth import PASSWORD_RULE, end_auth_session
from app.skinserver.db import db_session
from app.skinserver.models import Player, User
from app.skinserver.options import get_option, parse_score_range
from app.skinserver.rbac import require_login
from app.skinserver.utils import field, request_payload, result
from app.skinserver.validation import Rule, validate

bp = Blueprint("user", __name__)

PLAYER_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/")
@require_login
def profile():
    return result(0, "ok", user=_current_user().to_dict())


@bp.post("/sign")
@require_login
def sign():
    s = db_session()
    user = _current_user()
    gap = timedelta(hours=get_option(s, "sign_gap_time"))
    now = datetime.utcnow()
    if user.last_sign_at and now - user.last_sign_at < gap:
        remaining = gap - (now - user.last_sign_at)
        hours = round(remaining.total_seconds() / 3600, 1)
        return result(1, f"You can sign in again in {hours} hours.", remaining_hours=hours)

    lo, hi = parse_score_range(get_option(s, "sign_score"))
    acquired = random.randint(lo, hi)
    user.score += acquired
    user.last_sign_at = now
    record_event(s, actor=user, action="user.sign", entity_type="User", entity_id=user.uid, metadata={"acquired": acquired})
    s.commit()
    return result(0, f"Signed in successfully, you got {acquired} scores.", score=user.score, acquired=acquired)


@bp.post("/profile")
@require_login
def profile_update():
    s = db_session()
    user = _current_user()
    payload = request_payload()
    action = field(payload, "action")

    if action == "nickname":
        nickname = str(payload.get("new_nickname") or "")
        errors = validate({"new_nickname": nickname}, [Rule("new_nickname", label="nickname", no_special_chars=True, max_len=255)])
        if errors:
            return result(1, errors[0])
        old = user.nickname
        user.nickname = nickname
        record_event(s, actor=user, action="user.nickname", entity_type="User", entity_id=user.uid, metadata={"old": old, "new": nickname})
        s.commit()
        return result(0, f"Nickname changed to {nickname}.")

    if action == "password":
        data = {
            "current_password": str(payload.get("current_password") or ""),
            "new_password": str(payload.get("new_password") or ""),
        }
        rules = [
            Rule("current_password", label="current password"),
            Rule("new_password", label="new password", min_len=PASSWORD_RULE.min_len, max_len=PASSWORD_RULE.max_len),
        ]
        errors = validate(data, rules)
        if errors:
            return result(1, errors[0])
        if not user.verify_password(data["current_password"]):
            return result(1, "Wrong password.")
        user.change_password(data["new_password"])
        record_event(s, actor=user, action="user.password", entity_type="User", entity_id=user.uid)
        s.commit()
        resp = result(0, "Password changed. Please log in again.")
        end_auth_session(resp)
        return resp

    if action == "email":
        data = {
            "new_email": field(payload, "new_email").lower(),
            "password": str(payload.get("password") or ""),
        }
        errors = validate(data, [Rule("new_email", label="email", email=True), Rule("password")])
        if errors:
            return result(1, errors[0])
        if not user.verify_password(data["password"]):
            return result(1, "Wrong password.")
        if s.query(User.uid).filter(User.email == data["new_email"], User.uid != user.uid).first():
            return result(1, "This email has already been registered.")
        old = user.email
        user.email = data["new_email"]
        record_event(s, actor=user, action="user.email", entity_type="User", entity_id=user.uid, metadata={"old": old})
        s.commit()
        resp = result(0, "Email changed. Please log in again.")
        end_auth_session(resp)
        return resp

    return result(1, "Invalid action.")


# ---------- Players ----------
@bp.get("/players")
@require_login
def players_list():
    return result(0, "ok", players=[p.to_dict() for p in _current_user().players])


@bp.post("/players")
@require_login
def players_add():
    s = db_session()
    user = _current_user()
    payload = request_payload()
    name = field(payload, "player_name")
    rule = Rule(
        "player_name",
        label="player name",
        min_len=get_option(s, "player_name_length_min"),
        max_len=get_option(s, "player_name_length_max"),
    )
    errors = validate({"player_name": name}, [rule])
    if errors:
        return result(1, errors[0])
    if not PLAYER_NAME_RE.match(name):
        return result(1, "The player name may only contain letters, numbers and underscores.")

    if s.query(Player.pid).filter(Player.player_name == name).first():
        return result(6, "The player name has been taken.")

    cost = get_option(s, "score_per_player")
    if user.score < cost:
        return result(7, "You don't have enough score to add a player.")

    player = Player(player_name=name, last_modified=datetime.utcnow())
    user.players.append(player)
    user.score -= cost
    try:
        s.flush()
        record_event(s, actor=user, action="player.create", entity_type="Player", entity_id=player.pid, metadata={"name": name, "cost": cost})
        s.commit()
    except IntegrityError:
        s.rollback()
        return result(6, "The player name has been taken.")
    current_app.logger.info("Player added pid=%s uid=%s", player.pid, user.uid)
    return result(0, f"Player {name} added.", player=player.to_dict(), score=user.score)


@bp.post("/players/<int:pid>/delete")
@require_login
def players_delete(pid: int):
    s = db_session()
    user = _current_user()
    player = s.get(Player, pid)
    if player is None or player.uid != user.uid:
        return result(1, "Player not found.")

    refund = get_option(s, "score_per_player")
    name = player.player_name
    user.players.remove(player)
    user.score += refund
    record_event(s, actor=user, action="player.delete", entity_type="Player", entity_id=pid, metadata={"name": name, "refund": refund})
    s.commit()
    return result(0, f"Player {name} deleted.", score=user.score)
