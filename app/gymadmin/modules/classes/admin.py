from __future__ import annotations

from datetime import date

from flask import Blueprint, abort, current_app, flash, g, jsonify, redirect, render_template, request, url_for

from app.gymadmin.db import db_session
from app.gymadmin.models import ROLE_CLIENT, User
from app.gymadmin.modules.classes.models import GymClass
from app.gymadmin.modules.classes.schedule import schedule_status
from app.gymadmin.modules.classes.service import (
    VALID_FILTERS,
    VALID_SORTS,
    add_user_to_class,
    batch_set_enabled,
    class_to_dict,
    clear_all_classes,
    count_classes,
    create_class,
    delete_class,
    delete_past_classes,
    generate_default_schedule,
    list_classes,
    remove_user_from_class,
    set_class_enabled,
    toggle_week,
    update_class,
    update_upcoming_capacities,
)
from app.gymadmin.rbac import require_admin
from app.gymadmin.utils import json_payload, parse_bool

bp = Blueprint("classes", __name__)
api_bp = Blueprint("classes_api", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _back_to(default_endpoint: str = "admin.index"):
    nxt = (request.form.get("next") or "").strip()
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for(default_endpoint))


def _list_args() -> dict:
    return {
        "search": (request.args.get("q") or "").strip(),
        "status_filter": (request.args.get("filter") or "all").strip(),
        "sort": (request.args.get("sort") or "date").strip(),
        "order": (request.args.get("order") or "asc").strip(),
    }


# ---------- Pages ----------
@bp.get("/classes")
@require_admin
def classes_list():
    s = db_session()
    args = _list_args()
    classes = list_classes(s, **args)
    return render_template(
        "admin/classes/list.html",
        classes=classes,
        filters=VALID_FILTERS,
        sorts=VALID_SORTS,
        today=date.today(),
        **args,
    )


@bp.get("/classes/<int:class_id>")
@require_admin
def class_detail(class_id: int):
    s = db_session()
    cls = s.get(GymClass, class_id)
    if not cls:
        abort(404)
    booked_ids = {b.user_id for b in cls.active_bookings}
    available_clients = [
        u
        for u in s.query(User).filter(User.role == ROLE_CLIENT).order_by(User.name.asc()).all()
        if u.id not in booked_ids
    ]
    return render_template("admin/classes/detail.html", cls=cls, available_clients=available_clients)


@bp.post("/classes/new")
@require_admin
def classes_new_post():
    s = db_session()
    u = _current_user()
    payload = {
        "name": request.form.get("name"),
        "date": request.form.get("date"),
        "timeHour": request.form.get("timeHour"),
        "timeMinute": request.form.get("timeMinute"),
        "timePeriod": request.form.get("timePeriod"),
        "capacity": request.form.get("capacity"),
        "description": request.form.get("description"),
    }
    try:
        cls = create_class(s, payload, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to()
    flash(f"Class {cls.name} added for {cls.day}, {cls.date.strftime('%b %d')} at {cls.time}.", "success")
    return _back_to()


@bp.post("/classes/<int:class_id>/toggle")
@require_admin
def classes_toggle_post(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        abort(404)
    set_class_enabled(s, cls, not cls.enabled, u)
    s.commit()
    flash(f"Class {'enabled' if cls.enabled else 'disabled'}.", "success")
    return _back_to()


@bp.post("/classes/<int:class_id>/delete")
@require_admin
def classes_delete_post(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        abort(404)
    delete_class(s, cls, u)
    s.commit()
    flash("Class deleted.", "success")
    return _back_to("classes.classes_list")


@bp.post("/classes/week/<int:week_number>/toggle")
@require_admin
def classes_week_toggle_post(week_number: int):
    s = db_session()
    u = _current_user()
    enabled = parse_bool(request.form.get("enabled"))
    try:
        updated = toggle_week(s, week_number, enabled, u)
        s.commit()
    except LookupError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to()
    flash(f"Week {week_number + 1}: {updated} classes {'enabled' if enabled else 'disabled'}.", "success")
    return _back_to()


@bp.post("/classes/generate-schedule")
@require_admin
def classes_generate_post():
    s = db_session()
    u = _current_user()
    try:
        created = generate_default_schedule(s, u, weeks=current_app.config.get("SCHEDULE_WEEKS", 52))
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(f"Error generating schedule: {e}", "danger")
        return _back_to()
    flash(f"Schedule generated: {created} classes created.", "success")
    return _back_to()


@bp.post("/classes/delete-past")
@require_admin
def classes_delete_past_post():
    s = db_session()
    u = _current_user()
    deleted = delete_past_classes(s, u)
    s.commit()
    flash(f"Deleted {len(deleted)} past classes.", "success")
    return _back_to()


@bp.post("/classes/clear-all")
@require_admin
def classes_clear_all_post():
    s = db_session()
    u = _current_user()
    if (request.form.get("confirm") or "").strip() != "CLEAR":
        flash('Type "CLEAR" to confirm deleting every class.', "danger")
        return _back_to()
    deleted = clear_all_classes(s, u)
    s.commit()
    flash(f"Deleted {deleted} classes.", "success")
    return _back_to()


@bp.post("/classes/<int:class_id>/add-user")
@require_admin
def classes_add_user_post(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        abort(404)
    try:
        booking, pre_added = add_user_to_class(s, cls, request.form.get("userId"), u)
        s.commit()
    except (ValueError, LookupError) as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("classes.class_detail", class_id=class_id))
    name = booking.user.display_name
    flash(f"{name} pre-added to disabled class." if pre_added else f"{name} added to class.", "success")
    return redirect(url_for("classes.class_detail", class_id=class_id))


@bp.post("/classes/<int:class_id>/remove-user")
@require_admin
def classes_remove_user_post(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        abort(404)
    try:
        remove_user_from_class(s, cls, request.form.get("bookingId"), u)
        s.commit()
    except (ValueError, LookupError) as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("classes.class_detail", class_id=class_id))
    flash("User removed from class.", "success")
    return redirect(url_for("classes.class_detail", class_id=class_id))


# ---------- JSON API ----------
@api_bp.get("/classes")
@require_admin
def api_classes_list():
    s = db_session()
    if parse_bool(request.args.get("count")):
        return jsonify({"count": count_classes(s)})
    classes = list_classes(s, **_list_args())
    return jsonify([class_to_dict(c) for c in classes])


@api_bp.post("/classes")
@require_admin
def api_classes_create():
    s = db_session()
    u = _current_user()
    try:
        cls = create_class(s, json_payload(), u)
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify(class_to_dict(cls)), 201


@api_bp.patch("/classes/<int:class_id>")
@require_admin
def api_classes_update(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        return jsonify({"error": "Class not found"}), 404
    try:
        update_class(s, cls, json_payload(), u)
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify(class_to_dict(cls))


@api_bp.delete("/classes/<int:class_id>")
@require_admin
def api_classes_delete(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        return jsonify({"error": "Class not found"}), 404
    delete_class(s, cls, u)
    s.commit()
    return jsonify({"message": "Class deleted successfully"})


@api_bp.post("/classes/batch-toggle")
@require_admin
def api_classes_batch_toggle():
    s = db_session()
    u = _current_user()
    payload = json_payload()
    class_ids = payload.get("classIds")
    if not isinstance(class_ids, list) or "enabled" not in payload:
        return jsonify({"error": "classIds (list) and enabled are required"}), 400
    try:
        updated = batch_set_enabled(s, class_ids, parse_bool(payload.get("enabled")), u)
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"updatedCount": updated})


@api_bp.get("/admin/classes")
@require_admin
def api_admin_classes_list():
    s = db_session()
    classes = list_classes(s, **_list_args())
    return jsonify([class_to_dict(c, include_bookings=True) for c in classes])


@api_bp.get("/admin/classes/schedule-status")
@require_admin
def api_admin_schedule_status():
    s = db_session()
    return jsonify(schedule_status(count_classes(s), weeks=current_app.config.get("SCHEDULE_WEEKS", 52)))


@api_bp.post("/admin/classes/<int:class_id>/toggle-enabled")
@require_admin
def api_admin_classes_toggle(class_id: int):
    s = db_session()
    u = _current_user()
    payload = json_payload()
    if "enabled" not in payload:
        return jsonify({"error": "enabled is required"}), 400
    cls = s.get(GymClass, class_id)
    if not cls:
        return jsonify({"error": "Class not found"}), 404
    enabled = parse_bool(payload.get("enabled"))
    set_class_enabled(s, cls, enabled, u)
    s.commit()
    return jsonify({
        "message": f"Class {'enabled' if enabled else 'disabled'} successfully",
        "class": class_to_dict(cls),
    })


@api_bp.post("/admin/classes/<int:class_id>/add-user")
@require_admin
def api_admin_classes_add_user(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        return jsonify({"error": "Class not found"}), 404
    payload = json_payload()
    if payload.get("userId") in (None, ""):
        return jsonify({"error": "userId is required"}), 400
    try:
        booking, pre_added = add_user_to_class(s, cls, payload.get("userId"), u)
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    name = booking.user.display_name
    return jsonify({
        "message": f"{name} pre-added to disabled class" if pre_added else f"{name} added to class",
        "bookingId": booking.id,
        "preAdded": pre_added,
    })


@api_bp.post("/admin/classes/<int:class_id>/remove-user")
@require_admin
def api_admin_classes_remove_user(class_id: int):
    s = db_session()
    u = _current_user()
    cls = s.get(GymClass, class_id)
    if not cls:
        return jsonify({"error": "Class not found"}), 404
    payload = json_payload()
    if payload.get("bookingId") in (None, ""):
        return jsonify({"error": "bookingId is required"}), 400
    try:
        remove_user_from_class(s, cls, payload.get("bookingId"), u)
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "User removed from class"})


@api_bp.post("/admin/classes/delete-past")
@require_admin
def api_admin_classes_delete_past():
    s = db_session()
    u = _current_user()
    deleted = delete_past_classes(s, u)
    s.commit()
    return jsonify({"deleted": len(deleted), "deletedClassIds": deleted})


@api_bp.delete("/admin/classes/clear-all")
@require_admin
def api_admin_classes_clear_all():
    s = db_session()
    u = _current_user()
    deleted = clear_all_classes(s, u)
    s.commit()
    return jsonify({"deleted": deleted})


@api_bp.post("/admin/classes/generate-default-schedule")
@require_admin
def api_admin_generate_schedule():
    s = db_session()
    u = _current_user()
    created = generate_default_schedule(s, u, weeks=current_app.config.get("SCHEDULE_WEEKS", 52))
    s.commit()
    return jsonify({"totalClassesCreated": created})


@api_bp.post("/admin/update-class-capacities")
@require_admin
def api_admin_update_capacities():
    s = db_session()
    u = _current_user()
    updated, capacity = update_upcoming_capacities(s, u)
    s.commit()
    return jsonify({"message": f"Updated {updated} classes to capacity {capacity}", "updated": updated})
