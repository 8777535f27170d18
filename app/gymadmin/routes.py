from flask import Blueprint, current_app, jsonify, redirect, url_for
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.gymadmin.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return redirect(url_for("admin.index"))


@bp.get("/health")
def health():
    """Readiness check: confirms the database answers. 503 when it does not."""
    s = db_session()
    try:
        s.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        s.rollback()
        current_app.logger.error("Health check DB failure: %s", e)
        return jsonify({"ok": False, "database": "unavailable"}), 503
    return jsonify({"ok": True, "database": "ok"})


@bp.get("/healthz")
def healthz():
    """Liveness probe for the container platform. No DB access."""
    return "ok", 200
