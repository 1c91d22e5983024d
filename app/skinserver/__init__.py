import logging
from datetime import timedelta

from flask import Flask, g, render_template, request
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from app.skinserver.config import load_config
from app.skinserver.db import db_session, init_db, teardown_db_session
from app.skinserver.options import DEFAULT_OPTIONS, get_option
from app.skinserver.routes import bp as routes_bp
from app.skinserver.auth import REMEMBER_COOKIE_AGE, bp as auth_bp, load_current_user
from app.skinserver.user import bp as user_bp
from app.skinserver.admin import bp as admin_bp
from app.skinserver.utils import result, wants_json

_SKIP_PREFIXES = ("/static/", "/health", "/healthz")


def _is_api_request() -> bool:
    return wants_json() or request.path.startswith(("/user", "/admin")) or request.method != "GET"


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    # only "keep me logged in" sessions are permanent; the rest end with the browser
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(seconds=REMEMBER_COOKIE_AGE)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.skinserver.security import ensure_csrf_token, validate_csrf

    def _site_name() -> str:
        try:
            return get_option(db_session(), "site_name")
        except SQLAlchemyError:
            app.logger.exception("Could not read site_name option; using default")
            return DEFAULT_OPTIONS["site_name"]

    @app.context_processor
    def _inject_globals() -> dict:
        return {
            "csrf_token": ensure_csrf_token(),
            "current_user": getattr(g, "current_user", None),
            "site_name": _site_name(),
        }

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_SKIP_PREFIXES):
            return None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Auth endpoints are guarded by captcha/credentials and are called before a session exists.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return result(1, "CSRF token missing or invalid."), 400
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    if not app.config.get("MAIL_DRIVER"):
        app.logger.warning("MAIL_DRIVER not set; password reset by mail is disabled.")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(user_bp, url_prefix="/user")
    app.register_blueprint(admin_bp, url_prefix="/admin")

    def _load_user_wrapper():
        if request.path.startswith(_SKIP_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if _is_api_request():
            return result(500, "Internal server error."), 500
        return render_template("errors/500.html"), 500

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        reason = getattr(g, "forbidden_reason", None) or "Forbidden."
        app.logger.warning("Forbidden: %s path=%s request_id=%s", reason, request.path, getattr(g, "request_id", None))
        if _is_api_request():
            return result(403, reason), 403
        return render_template("errors/403.html", reason=reason), 403

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _is_api_request():
            return result(404, "Not found."), 404
        return render_template("errors/404.html"), 404

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
