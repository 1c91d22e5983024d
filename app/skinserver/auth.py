from __future__ import annotations

import hmac
import time
import uuid
from datetime import datetime, timedelta

from flask import Blueprint, Response, abort, current_app, g, make_response, render_template, request, session, url_for
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.skinserver.audit import record_event
from app.skinserver.captcha import check_captcha, issue_captcha
from app.skinserver.db import db_session
from app.skinserver.mail import get_mailer, mail_enabled
from app.skinserver.models import Player, User
from app.skinserver.options import get_option
from app.skinserver.tokens import InvalidResetToken, make_reset_token, read_reset_token, token_matches_user
from app.skinserver.utils import field, request_payload, result, truthy
from app.skinserver.validation import Rule, is_email, validate

bp = Blueprint("auth", __name__)

# captcha is demanded once the session has failed more often than this
MAX_LOGIN_FAILS = 3
MAIL_RESEND_INTERVAL = 180  # seconds
REMEMBER_COOKIE_AGE = 7 * 24 * 3600
SESSION_COOKIE_AGE = 3600

PASSWORD_RULE = Rule("password", min_len=8, max_len=32)
LOGIN_RULES = [
    Rule("identification", label="email or player name"),
    Rule("password", min_len=6, max_len=32),
]
REGISTER_RULES = [
    Rule("email", email=True),
    PASSWORD_RULE,
    Rule("nickname", no_special_chars=True, max_len=255),
]
FORGOT_RULES = [Rule("email", email=True)]

MSG_CAPTCHA = "Wrong captcha."
MSG_USER_NOT_FOUND = "User not existed."
MSG_WRONG_PASSWORD = "Wrong password."
MSG_BANNED = "You are banned."
MSG_LOGIN_OK = "Logged in successfully."
MSG_LOGOUT_OK = "Logged out successfully."
MSG_LOGOUT_FAIL = "No valid session."
MSG_REGISTER_CLOSED = "Registration is closed by the site administrator."
MSG_REGISTERED = "This email has already been registered."
MSG_REGISTER_OK = "Registered successfully."
MSG_FORGOT_CLOSED = "Password resetting is unavailable because mail is not configured."
MSG_FREQUENT_MAIL = "You are sending mails too frequently. Please try again later."
MSG_UNREGISTERED = "This email is not registered."
MSG_MAIL_OK = "A password reset link has been sent to your mailbox."
MSG_RESET_OK = "Password reset successfully."


def register_quota_message(regs: int) -> str:
    return f"You can't register more than {regs} accounts with this IP."


def mail_failed_message(detail: str) -> str:
    return f"Failed to send the mail: {detail}"


def _secret() -> str:
    return current_app.config["SECRET_KEY"]


def _cookie_kwargs() -> dict:
    return {
        "httponly": True,
        "samesite": "Lax",
        "secure": bool(current_app.config.get("SESSION_COOKIE_SECURE")),
    }


def start_auth_session(resp: Response, user: User, *, remember: bool = False) -> str:
    """Put uid/token into the session and mirror them as cookies."""
    token = user.get_token(_secret())
    max_age = REMEMBER_COOKIE_AGE if remember else SESSION_COOKIE_AGE
    session.permanent = remember
    session["uid"] = user.uid
    session["token"] = token
    session["auth_expires"] = int(time.time()) + max_age
    resp.set_cookie("uid", str(user.uid), max_age=max_age, **_cookie_kwargs())
    resp.set_cookie("token", token, max_age=max_age, **_cookie_kwargs())
    return token


def _drop_session_auth() -> None:
    for key in ("uid", "token", "auth_expires"):
        session.pop(key, None)


def end_auth_session(resp: Response) -> None:
    _drop_session_auth()
    session.permanent = False
    resp.delete_cookie("uid")
    resp.delete_cookie("token")


def _session_auth_live(token: str | None) -> bool:
    # the session login lives only as long as its token cookie, and never past auth_expires
    if int(session.get("auth_expires") or 0) < time.time():
        return False
    cookie = request.cookies.get("token")
    return bool(token and cookie) and hmac.compare_digest(str(cookie), str(token))


def load_current_user() -> None:
    """
    Loads g.current_user from the session, falling back to the uid/token
    cookies (which then repopulate the session). A token that no longer
    matches the user, e.g. after a password change, logs the client out.
    A session login also ends once its token cookie is gone or its
    auth_expires time has passed.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None

    uid = session.get("uid")
    token = session.get("token")
    if uid and not _session_auth_live(token):
        _drop_session_auth()
        uid = token = None
    from_cookie = False
    if not uid:
        uid = request.cookies.get("uid")
        token = request.cookies.get("token")
        from_cookie = True
    if not uid:
        return

    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None

    user = db_session().get(User, uid) if uid else None
    if not user or not token or not hmac.compare_digest(str(token), user.get_token(_secret())):
        _drop_session_auth()
        g.clear_auth_cookies = True
        return

    if from_cookie:
        session["uid"] = user.uid
        session["token"] = token
        session["auth_expires"] = int(time.time()) + SESSION_COOKIE_AGE
    g.current_user = user


@bp.after_app_request
def _clear_stale_auth_cookies(resp: Response) -> Response:
    if getattr(g, "clear_auth_cookies", False):
        resp.delete_cookie("uid")
        resp.delete_cookie("token")
    return resp


def _find_user(s, identification: str) -> User | None:
    if is_email(identification):
        return s.query(User).filter(User.email == identification.lower()).one_or_none()
    player = s.query(Player).filter(Player.player_name == identification).one_or_none()
    return player.owner if player else None


# ---------- Pages ----------
@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt, captcha_required=session.get("login_fails", 0) > MAX_LOGIN_FAILS)


@bp.get("/register")
def register_get():
    can_register = get_option(db_session(), "user_can_register")
    return render_template("auth/register.html", closed_message=None if can_register else MSG_REGISTER_CLOSED)


@bp.get("/forgot")
def forgot_get():
    enabled = mail_enabled(current_app.config)
    return render_template("auth/forgot.html", closed_message=None if enabled else MSG_FORGOT_CLOSED)


# ---------- Login / logout ----------
@bp.post("/login")
def login_post():
    payload = request_payload()
    identification = field(payload, "identification")
    password = str(payload.get("password") or "")

    errors = validate({"identification": identification, "password": password}, LOGIN_RULES)
    if errors:
        return result(1, errors[0])

    if session.get("login_fails", 0) > MAX_LOGIN_FAILS and not check_captcha(payload.get("captcha")):
        return result(1, MSG_CAPTCHA)

    s = db_session()
    user = _find_user(s, identification)
    record_event(s, actor=user, action="auth.login_attempt", metadata={"identification": identification})
    if user is None:
        s.commit()
        return result(2, MSG_USER_NOT_FOUND)

    if not user.verify_password(password):
        fails = session.get("login_fails", 0) + 1
        session["login_fails"] = fails
        record_event(s, actor=user, action="auth.login_failed", entity_type="User", entity_id=user.uid, metadata={"login_fails": fails})
        s.commit()
        current_app.logger.info("Login failed uid=%s fails=%s request_id=%s", user.uid, fails, g.request_id)
        return result(1, MSG_WRONG_PASSWORD, login_fails=fails)

    if user.is_banned:
        s.commit()
        return result(5, MSG_BANNED)

    session.pop("login_fails", None)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.uid)
    s.commit()

    resp = result(0, MSG_LOGIN_OK, token=user.get_token(_secret()))
    start_auth_session(resp, user, remember=truthy(payload.get("keep")))
    return resp


@bp.post("/logout")
def logout_post():
    if not session.get("uid"):
        return result(1, MSG_LOGOUT_FAIL)
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=user.uid)
        s.commit()
    resp = result(0, MSG_LOGOUT_OK)
    end_auth_session(resp)
    return resp


# ---------- Registration ----------
@bp.post("/register")
def register_post():
    payload = request_payload()
    if not check_captcha(payload.get("captcha")):
        return result(1, MSG_CAPTCHA)

    data = {
        "email": field(payload, "email").lower(),
        "password": str(payload.get("password") or ""),
        "nickname": str(payload.get("nickname") or ""),
    }
    errors = validate(data, REGISTER_RULES)
    if errors:
        return result(1, errors[0])

    s = db_session()
    if not get_option(s, "user_can_register"):
        return result(7, MSG_REGISTER_CLOSED)

    ip = request.remote_addr or ""
    regs_per_ip = get_option(s, "regs_per_ip")
    regs = s.query(func.count(User.uid)).filter(User.ip == ip).scalar() or 0
    if regs >= regs_per_ip:
        return result(7, register_quota_message(regs_per_ip))

    if s.query(User.uid).filter(User.email == data["email"]).first():
        return result(5, MSG_REGISTERED)

    now = datetime.utcnow()
    user = User(
        email=data["email"],
        nickname=data["nickname"],
        score=get_option(s, "user_initial_score"),
        avatar=0,
        ip=ip,
        permission=User.NORMAL,
        # allow a sign-in right after registering
        last_sign_at=now - timedelta(days=1),
        register_at=now,
    )
    user.change_password(data["password"])
    s.add(user)
    try:
        s.flush()
        record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=user.uid, metadata={"ip": ip})
        s.commit()
    except IntegrityError:
        # lost a race against a concurrent registration with the same email
        s.rollback()
        return result(5, MSG_REGISTERED)

    current_app.logger.info("User registered uid=%s ip=%s", user.uid, ip)
    resp = result(0, MSG_REGISTER_OK, token=user.get_token(_secret()))
    start_auth_session(resp, user)
    return resp


# ---------- Forgot / reset password ----------
@bp.post("/forgot")
def forgot_post():
    payload = request_payload()
    if not check_captcha(payload.get("captcha")):
        return result(1, MSG_CAPTCHA)

    if not mail_enabled(current_app.config):
        return result(1, MSG_FORGOT_CLOSED)

    last_mail_time = session.get("last_mail_time", 0)
    if time.time() - last_mail_time < MAIL_RESEND_INTERVAL:
        return result(1, MSG_FREQUENT_MAIL)

    email = field(payload, "email").lower()
    errors = validate({"email": email}, FORGOT_RULES)
    if errors:
        return result(1, errors[0])

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if user is None:
        return result(1, MSG_UNREGISTERED)

    token = make_reset_token(_secret(), user)
    site_url = (current_app.config.get("SITE_URL") or "").rstrip("/")
    if site_url:
        url = site_url + url_for("auth.reset_get", token=token)
    else:
        url = url_for("auth.reset_get", token=token, _external=True)
    site_name = get_option(s, "site_name")
    body = render_template(
        "mails/password_reset.txt",
        user=user,
        url=url,
        site_name=site_name,
        ttl_minutes=current_app.config["RESET_LINK_TTL"] // 60,
    )

    try:
        get_mailer(current_app).send(user.email, f"[{site_name}] Reset your password", body)
    except Exception as e:
        current_app.logger.exception("Password reset mail failed uid=%s request_id=%s", user.uid, g.request_id)
        return result(2, mail_failed_message(str(e)))

    session["last_mail_time"] = int(time.time())
    record_event(s, actor=user, action="auth.forgot", entity_type="User", entity_id=user.uid)
    s.commit()
    return result(0, MSG_MAIL_OK)


def _user_from_reset_token(token: str) -> User:
    try:
        uid, fingerprint = read_reset_token(_secret(), token, current_app.config["RESET_LINK_TTL"])
    except InvalidResetToken as e:
        current_app.logger.info("Rejected reset token: %s", e)
        g.forbidden_reason = "Invalid or expired link."
        abort(403)
    user = db_session().get(User, uid)
    if user is None:
        abort(404)
    if not token_matches_user(fingerprint, user):
        g.forbidden_reason = "This link has already been used."
        abort(403)
    return user


@bp.get("/reset/<token>")
def reset_get(token: str):
    user = _user_from_reset_token(token)
    return render_template("auth/reset.html", user=user, token=token)


@bp.post("/reset/<token>")
def reset_post(token: str):
    user = _user_from_reset_token(token)
    payload = request_payload()
    password = str(payload.get("password") or "")
    errors = validate({"password": password}, [PASSWORD_RULE])
    if errors:
        return result(1, errors[0])

    s = db_session()
    user.change_password(password)
    record_event(s, actor=user, action="auth.password_reset", entity_type="User", entity_id=user.uid)
    s.commit()
    current_app.logger.info("Password reset uid=%s", user.uid)
    return result(0, MSG_RESET_OK)


# ---------- Captcha ----------
@bp.get("/captcha")
def captcha():
    resp = make_response(issue_captcha())
    resp.headers["Content-Type"] = "image/png"
    resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return resp
