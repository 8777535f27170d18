from __future__ import annotations

from datetime import date

from flask import Blueprint, abort, flash, g, jsonify, redirect, render_template, request, url_for

from app.gymadmin.db import db_session
from app.gymadmin.models import ROLE_CLIENT, User
from app.gymadmin.modules.classes.service import update_upcoming_capacities
from app.gymadmin.modules.clients.service import current_package, get_client, set_classes_remaining, update_expiration
from app.gymadmin.modules.settings.service import DEFAULT_SETTINGS, VALID_SECTIONS, get_all_settings, update_section
from app.gymadmin.rbac import require_admin
from app.gymadmin.utils import json_payload

bp = Blueprint("settings", __name__)
api_bp = Blueprint("settings_api", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/settings")
@require_admin
def settings_index():
    s = db_session()
    today = date.today()
    clients = s.query(User).filter(User.role == ROLE_CLIENT).order_by(User.name.asc()).all()
    # Current package, else the newest one so an expired package can be extended
    client_packages = [(c, current_package(c, today) or (c.packages[0] if c.packages else None)) for c in clients]
    return render_template(
        "admin/settings/index.html",
        settings=get_all_settings(s),
        client_packages=client_packages,
        today=today,
    )


@bp.post("/settings/<section>")
@require_admin
def settings_update_post(section: str):
    s = db_session()
    u = _current_user()
    if section not in VALID_SECTIONS:
        flash(f"Unknown settings section: {section}", "danger")
        return redirect(url_for("settings.settings_index"))

    values = {}
    for key, default in DEFAULT_SETTINGS[section].items():
        if isinstance(default, bool):
            # Unchecked checkboxes are absent from the form.
            values[key] = request.form.get(key) or "off"
        elif key in request.form:
            values[key] = request.form.get(key)

    try:
        update_section(s, section, values, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("settings.settings_index"))
    flash(f"{section.capitalize()} settings saved.", "success")
    return redirect(url_for("settings.settings_index"))


@bp.post("/settings/clients/<int:client_id>/classes")
@require_admin
def settings_client_classes_post(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        abort(404)
    try:
        pkg = set_classes_remaining(
            s, client, request.form.get("package_id"), request.form.get("classes_remaining"), u
        )
        s.commit()
    except LookupError:
        s.rollback()
        abort(404)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("settings.settings_index"))
    flash(f"{client.display_name} now has {pkg.classes_remaining} classes remaining.", "success")
    return redirect(url_for("settings.settings_index"))


@bp.post("/settings/clients/<int:client_id>/expiration")
@require_admin
def settings_client_expiration_post(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        abort(404)
    try:
        pkg = update_expiration(s, client, request.form.get("package_id"), request.form.get("expiration_date"), u)
        s.commit()
    except LookupError:
        s.rollback()
        abort(404)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("settings.settings_index"))
    flash(f"{client.display_name}'s package now expires on {pkg.end_date.isoformat()}.", "success")
    return redirect(url_for("settings.settings_index"))


@bp.post("/settings/update-capacities")
@require_admin
def settings_update_capacities_post():
    s = db_session()
    u = _current_user()
    updated, capacity = update_upcoming_capacities(s, u)
    s.commit()
    flash(f"Updated {updated} classes to capacity {capacity}", "success")
    return redirect(url_for("settings.settings_index"))


@api_bp.get("/admin/settings")
@require_admin
def api_settings_get():
    s = db_session()
    return jsonify(get_all_settings(s))


@api_bp.post("/admin/settings")
@require_admin
def api_settings_update():
    s = db_session()
    u = _current_user()
    payload = json_payload()
    section = (payload.get("section") or "").strip()
    settings = payload.get("settings")
    if not section or settings is None:
        return jsonify({"error": "section and settings are required"}), 400
    try:
        merged = update_section(s, section, settings, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Settings saved successfully", "section": section, "settings": merged})
