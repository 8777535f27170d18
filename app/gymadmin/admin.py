from datetime import date

from flask import Blueprint, abort, current_app, flash, g, render_template, request

from app.gymadmin.audit import query_events
from app.gymadmin.db import db_session
from app.gymadmin.models import ROLE_CLIENT, AuditEvent, User
from app.gymadmin.modules.classes.models import GymClass
from app.gymadmin.modules.classes.schedule import group_classes_by_day, group_classes_by_week, schedule_status
from app.gymadmin.modules.clients.service import count_active_members
from app.gymadmin.modules.notifications.service import list_notifications, unread_count
from app.gymadmin.modules.pending_users.service import count_pending_users
from app.gymadmin.modules.settings.service import default_class_capacity
from app.gymadmin.rbac import require_admin

bp = Blueprint("admin", __name__)

DASHBOARD_VIEWS = ("week", "day")
RECENT_NOTIFICATIONS = 5


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def diagnostics_allowed() -> bool:
    env = (current_app.config.get("ENV") or "development").strip().lower()
    enabled = bool(current_app.config.get("ADMIN_DIAGNOSTICS_ENABLED"))
    return env not in ("prod", "production") or enabled


@bp.get("/")
@require_admin
def index():
    s = db_session()
    u = _current_user()
    view = (request.args.get("view") or "week").strip()
    if view not in DASHBOARD_VIEWS:
        view = "week"

    classes = s.query(GymClass).all()
    weeks = group_classes_by_week(classes) if view == "week" else []
    days = group_classes_by_day(classes) if view == "day" else []

    stats = {
        "class_count": len(classes),
        "enabled_count": sum(1 for c in classes if c.enabled),
        "client_count": s.query(User).filter(User.role == ROLE_CLIENT).count(),
        "active_members": count_active_members(s),
        "pending_users": count_pending_users(s),
        "unread_notifications": unread_count(s, u.id),
    }
    return render_template(
        "admin/index.html",
        view=view,
        weeks=weeks,
        days=days,
        stats=stats,
        status=schedule_status(len(classes), weeks=current_app.config.get("SCHEDULE_WEEKS", 52)),
        recent_notifications=list_notifications(s, u.id, limit=RECENT_NOTIFICATIONS),
        default_capacity=default_class_capacity(s),
        today=date.today(),
    )


@bp.get("/audit")
@require_admin
def audit_list():
    """
    Audit trail (last 200 events) with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    events = query_events(s, action=action, actor_email=actor_email, date_from=date_from, date_to=date_to)
    return render_template(
        "admin/audit/list.html",
        events=events,
        action=action,
        actor_email=actor_email,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )


@bp.get("/diagnostics")
@require_admin
def diagnostics():
    """Database connectivity and table counts."""
    if not diagnostics_allowed():
        abort(404)
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from app.gymadmin.modules.bookings.models import Booking
    from app.gymadmin.modules.clients.models import ClientPackage
    from app.gymadmin.modules.notifications.models import Notification

    s = db_session()
    diag = {
        "env": current_app.config.get("ENV"),
        "db_connected": False,
        "db_error": None,
        "counts": {},
    }
    try:
        s.execute(text("SELECT 1"))
        diag["db_connected"] = True
        for label, model in (
            ("users", User),
            ("classes", GymClass),
            ("bookings", Booking),
            ("packages", ClientPackage),
            ("notifications", Notification),
            ("audit_events", AuditEvent),
        ):
            diag["counts"][label] = s.query(model).count()
    except SQLAlchemyError as e:
        s.rollback()
        current_app.logger.exception("Diagnostics DB check failed")
        diag["db_error"] = str(e)
    return render_template("admin/diagnostics.html", diag=diag)
