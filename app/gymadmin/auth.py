from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash

from app.gymadmin.audit import record_event
from app.gymadmin.db import db_session
from app.gymadmin.models import ROLE_PENDING, User

bp = Blueprint("auth", __name__)

# authenticate() failure codes -> flash message
LOGIN_FAILURES = {
    "invalid": "Invalid credentials.",
    "pending": "Your account is awaiting approval.",
    "not_admin": "You don't have permission to access the admin area.",
}


class LoginThrottle:
    """Sliding-window count of login attempts per client address."""

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def blocked(self, key: str, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        self._attempts[key] = [t for t in self._attempts[key] if t > now - self.window]
        return len(self._attempts[key]) >= self.limit

    def record(self, key: str, now: datetime | None = None) -> None:
        self._attempts[key].append(now or datetime.utcnow())

    def reset(self, key: str) -> None:
        self._attempts.pop(key, None)


def _throttle() -> LoginThrottle:
    throttle = current_app.extensions.get("login_throttle")
    if throttle is None:
        throttle = LoginThrottle(
            current_app.config.get("LOGIN_RATE_LIMIT", 5),
            current_app.config.get("LOGIN_RATE_WINDOW_SECONDS", 300),
        )
        current_app.extensions["login_throttle"] = throttle
    return throttle


def authenticate(s: Session, email: str, password: str) -> tuple[User | None, str | None]:
    """Returns (user, None) for an admin who may sign in, else (user or None, failure code)."""
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        return None, "invalid"
    if user.role == ROLE_PENDING:
        return user, "pending"
    if not user.is_admin:
        return user, "not_admin"
    return user, None


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie and
    assigns a per-request request_id for audit/log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        user = db_session().get(User, int(user_id))
    except SQLAlchemyError as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        user = None
    if not user or not user.is_active:
        session.pop("user_id", None)
        user = None
    g.current_user = user


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"
    throttle = _throttle()

    if throttle.blocked(ip):
        current_app.logger.warning("Login throttled for %s", ip)
        minutes = int(throttle.window.total_seconds() // 60)
        flash(f"Too many login attempts. Please wait {minutes} minutes.", "danger")
        return redirect(url_for("auth.login_get"))
    throttle.record(ip)

    s = db_session()
    user, failure = authenticate(s, email, password)
    if failure:
        record_event(
            s,
            actor=user,
            action="auth.login_failed" if failure == "invalid" else "auth.login_denied",
            entity_type="User",
            entity_id=str(user.id) if user else email,
            reason=failure,
            metadata={"email": email},
        )
        s.commit()
        flash(LOGIN_FAILURES[failure], "danger")
        return redirect(url_for("auth.login_get"))

    session["user_id"] = user.id
    throttle.reset(ip)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    current_app.logger.info("Admin %s signed in (request_id=%s)", user.email, g.request_id)
    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("admin.index"))


@bp.get("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("auth.login_get"))
