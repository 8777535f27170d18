from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, jsonify, redirect, render_template, request, url_for

from app.gymadmin.admin import diagnostics_allowed
from app.gymadmin.db import db_session
from app.gymadmin.models import User
from app.gymadmin.modules.notifications.service import (
    clear_cancellation_notifications,
    clear_simple_tests,
    create_sample_cancellations,
    create_simple_test,
    delete_notification,
    diagnostics_snapshot,
    list_notifications,
    mark_all_read,
    mark_read,
    notification_to_dict,
    parse_limit,
    unread_count,
)
from app.gymadmin.rbac import require_admin
from app.gymadmin.utils import json_payload, parse_bool

bp = Blueprint("notifications", __name__)
api_bp = Blueprint("notifications_api", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


# ---------- Pages ----------
@bp.get("/notifications")
@require_admin
def notifications_list():
    s = db_session()
    u = _current_user()
    unread_only = parse_bool(request.args.get("unreadOnly"))
    notifications = list_notifications(s, u.id, unread_only=unread_only, limit=200)
    return render_template(
        "admin/notifications/list.html",
        notifications=notifications,
        unread_only=unread_only,
        unread_total=unread_count(s, u.id),
    )


@bp.post("/notifications/<int:notification_id>/read")
@require_admin
def notifications_mark_read_post(notification_id: int):
    s = db_session()
    u = _current_user()
    mark_read(s, u.id, [notification_id])
    s.commit()
    return redirect(url_for("notifications.notifications_list"))


@bp.post("/notifications/read-all")
@require_admin
def notifications_mark_all_read_post():
    s = db_session()
    u = _current_user()
    updated = mark_all_read(s, u.id)
    s.commit()
    flash(f"Marked {updated} notifications as read.", "success")
    return redirect(url_for("notifications.notifications_list"))


@bp.post("/notifications/<int:notification_id>/delete")
@require_admin
def notifications_delete_post(notification_id: int):
    s = db_session()
    u = _current_user()
    if not delete_notification(s, u.id, notification_id):
        abort(404)
    s.commit()
    flash("Notification deleted.", "success")
    return redirect(url_for("notifications.notifications_list"))


# ---------- JSON API ----------
@api_bp.get("/admin/notifications")
@require_admin
def api_notifications_list():
    s = db_session()
    u = _current_user()
    try:
        limit = parse_limit(request.args.get("limit"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    notifications = list_notifications(s, u.id, unread_only=parse_bool(request.args.get("unreadOnly")), limit=limit)
    return jsonify({
        "notifications": [notification_to_dict(n) for n in notifications],
        "unreadCount": unread_count(s, u.id),
    })


@api_bp.put("/admin/notifications")
@require_admin
def api_notifications_mark_read():
    s = db_session()
    u = _current_user()
    payload = json_payload()
    if parse_bool(payload.get("markAllRead")):
        updated = mark_all_read(s, u.id)
    else:
        ids = payload.get("notificationIds")
        if not isinstance(ids, list):
            return jsonify({"error": "notificationIds (list) or markAllRead is required"}), 400
        try:
            updated = mark_read(s, u.id, ids)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify({"updated": updated, "unreadCount": unread_count(s, u.id)})


@api_bp.delete("/admin/notifications")
@require_admin
def api_notifications_delete():
    s = db_session()
    u = _current_user()
    raw_id = (request.args.get("id") or "").strip()
    if not raw_id.isdigit():
        return jsonify({"error": "Notification id is required"}), 400
    if not delete_notification(s, u.id, int(raw_id)):
        return jsonify({"error": "Notification not found"}), 404
    s.commit()
    return jsonify({"message": "Notification deleted"})


# ---------- Diagnostics ----------
@api_bp.get("/admin/check-notifications")
@require_admin
def api_check_notifications():
    if not diagnostics_allowed():
        abort(404)
    s = db_session()
    return jsonify(diagnostics_snapshot(s, _current_user().id))


@api_bp.post("/admin/test-notifications")
@require_admin
def api_test_notifications_create():
    if not diagnostics_allowed():
        abort(404)
    s = db_session()
    try:
        created = create_sample_cancellations(s)
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    current_app.logger.info("Created %s sample cancellation notifications", created)
    return jsonify({"message": f"Created {created} test notifications", "created": created})


@api_bp.delete("/admin/test-notifications")
@require_admin
def api_test_notifications_clear():
    if not diagnostics_allowed():
        abort(404)
    s = db_session()
    deleted = clear_cancellation_notifications(s)
    s.commit()
    return jsonify({"message": f"Deleted {deleted} test notifications", "deleted": deleted})


@api_bp.post("/admin/simple-test")
@require_admin
def api_simple_test_create():
    if not diagnostics_allowed():
        abort(404)
    s = db_session()
    try:
        created = create_simple_test(s)
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": f"Created test notification for {created} admins", "created": created})


@api_bp.delete("/admin/simple-test")
@require_admin
def api_simple_test_clear():
    if not diagnostics_allowed():
        abort(404)
    s = db_session()
    deleted = clear_simple_tests(s)
    s.commit()
    return jsonify({"message": f"Deleted {deleted} test notifications", "deleted": deleted})
