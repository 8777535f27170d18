import logging
from datetime import timedelta

from flask import Flask, g, jsonify, render_template, request, session
from dotenv import load_dotenv

from app.gymadmin.config import load_config
from app.gymadmin.db import db_session, init_db, teardown_db_session
from app.gymadmin.routes import bp as routes_bp
from app.gymadmin.auth import bp as auth_bp, load_current_user
from app.gymadmin.admin import bp as admin_bp
from app.gymadmin.modules.classes.admin import api_bp as classes_api_bp, bp as classes_bp
from app.gymadmin.modules.bookings.admin import api_bp as bookings_api_bp, bp as bookings_bp
from app.gymadmin.modules.clients.admin import api_bp as clients_api_bp, bp as clients_bp
from app.gymadmin.modules.notifications.admin import api_bp as notifications_api_bp, bp as notifications_bp
from app.gymadmin.modules.pending_users.admin import api_bp as pending_users_api_bp, bp as pending_users_bp
from app.gymadmin.modules.settings.admin import api_bp as settings_api_bp, bp as settings_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # CSRF + role helpers used by the request hooks below
    from app.gymadmin.security import UNGUARDED_PATH_PREFIXES, csrf_exempt, ensure_csrf_token, validate_csrf
    from app.gymadmin.rbac import is_api_request

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_sidebar_counts() -> dict:
        user = getattr(g, "current_user", None)
        if not user or not user.is_admin:
            return {"sidebar_counts": {"unread_notifications": 0, "pending_users": 0}}
        from app.gymadmin.modules.notifications.service import unread_count
        from app.gymadmin.modules.pending_users.service import count_pending_users

        s = db_session()
        return {
            "sidebar_counts": {
                "unread_notifications": unread_count(s, user.id),
                "pending_users": count_pending_users(s),
            }
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "—"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.template_filter("timeago")
    def _timeago_filter(value) -> str:
        from app.gymadmin.modules.notifications.service import time_ago

        return time_ago(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(UNGUARDED_PATH_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if csrf_exempt(request) or validate_csrf(request):
            return None
        app.logger.warning("CSRF rejected: %s %s", request.method, request.path)
        if is_api_request():
            return jsonify({"error": "CSRF token missing or invalid."}), 400
        return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

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

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    for page_bp in (classes_bp, bookings_bp, clients_bp, notifications_bp, pending_users_bp, settings_bp):
        app.register_blueprint(page_bp, url_prefix="/admin")
    for api_bp in (
        classes_api_bp,
        bookings_api_bp,
        clients_api_bp,
        notifications_api_bp,
        pending_users_api_bp,
        settings_api_bp,
    ):
        app.register_blueprint(api_bp, url_prefix="/api")

    def _load_user_wrapper():
        if request.path.startswith(UNGUARDED_PATH_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        s = g.pop("db_session", None)
        if s is not None:
            s.rollback()
            s.close()
        if is_api_request():
            return jsonify({"error": "Internal server error", "requestId": rid}), 500
        return render_template("errors/500.html", request_id=rid), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if is_api_request():
            return jsonify({"error": "Not found"}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_role", None)
        if missing:
            app.logger.warning("Forbidden: missing_role=%s request_id=%s", missing, getattr(g, "request_id", None))
        if is_api_request():
            return jsonify({"error": "Admin access required"}), 403
        return render_template("errors/403.html", missing_role=missing), 403

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        if is_api_request():
            return jsonify({"error": "Request body too large"}), 413
        return render_template("errors/400.html", message="Request body too large."), 413

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
