from __future__ import annotations

from datetime import date

from flask import Blueprint, abort, flash, g, jsonify, redirect, render_template, request, url_for

from app.gymadmin.constants import PACKAGE_TYPES
from app.gymadmin.db import db_session
from app.gymadmin.models import ROLE_CLIENT, User
from app.gymadmin.modules.clients.service import (
    VALID_FILTERS,
    VALID_SORTS,
    assign_package,
    client_status,
    client_to_dict,
    current_package,
    delete_client,
    get_client,
    list_clients,
    next_class,
    package_to_dict,
    send_renewal_reminder,
    set_classes_remaining,
    status_counts,
    update_expiration,
)
from app.gymadmin.rbac import require_admin
from app.gymadmin.utils import json_payload

bp = Blueprint("clients", __name__)
api_bp = Blueprint("clients_api", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _list_args() -> dict:
    return {
        "search": (request.args.get("q") or "").strip(),
        "status_filter": (request.args.get("filter") or "all").strip(),
        "sort": (request.args.get("sort") or "name").strip(),
        "order": (request.args.get("order") or "asc").strip(),
    }


# ---------- Pages ----------
@bp.get("/clients")
@require_admin
def clients_list():
    s = db_session()
    today = date.today()
    args = _list_args()
    clients = list_clients(s, today=today, **args)
    rows = [
        {
            "user": c,
            "status": client_status(c, today),
            "package": current_package(c, today),
            "next_class": next_class(c, today),
        }
        for c in clients
    ]
    return render_template(
        "admin/clients/list.html",
        rows=rows,
        counts=status_counts(s, today),
        filters=VALID_FILTERS,
        sorts=VALID_SORTS,
        package_types=PACKAGE_TYPES,
        today=today,
        **args,
    )


@bp.post("/clients/<int:client_id>/assign-package")
@require_admin
def clients_assign_package_post(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        abort(404)
    try:
        pkg = assign_package(
            s,
            client,
            request.form.get("packageType") or "",
            u,
            total_classes=request.form.get("totalClasses"),
        )
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("clients.clients_list"))
    flash(f"Assigned {pkg.name} to {client.display_name}.", "success")
    return redirect(url_for("clients.clients_list"))


@bp.post("/clients/<int:client_id>/adjust-classes")
@require_admin
def clients_adjust_classes_post(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        abort(404)
    reason = (request.form.get("reason") or "").strip()
    if not reason:
        flash("Reason is required when adjusting classes.", "danger")
        return redirect(url_for("clients.clients_list"))
    try:
        set_classes_remaining(
            s,
            client,
            request.form.get("packageId"),
            request.form.get("newClassesRemaining"),
            u,
            reason=reason,
        )
        s.commit()
    except (ValueError, LookupError) as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("clients.clients_list"))
    flash(f"Classes updated for {client.display_name}.", "success")
    return redirect(url_for("clients.clients_list"))


@bp.post("/clients/<int:client_id>/remind")
@require_admin
def clients_remind_post(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        abort(404)
    try:
        send_renewal_reminder(s, client, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("clients.clients_list"))
    flash(f"Reminder sent to {client.display_name}.", "success")
    return redirect(url_for("clients.clients_list"))


@bp.post("/clients/<int:client_id>/delete")
@require_admin
def clients_delete_post(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        abort(404)
    name = client.display_name
    delete_client(s, client, u)
    s.commit()
    flash(f"Deleted {name}.", "success")
    return redirect(url_for("clients.clients_list"))


# ---------- JSON API ----------
@api_bp.get("/admin/clients")
@require_admin
def api_clients_list():
    s = db_session()
    today = date.today()
    clients = list_clients(s, today=today, **_list_args())
    return jsonify([client_to_dict(c, today) for c in clients])


@api_bp.post("/admin/clients/<int:client_id>/remind")
@require_admin
def api_clients_remind(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        return jsonify({"error": "Client not found"}), 404
    try:
        n = send_renewal_reminder(s, client, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": f"Reminder sent to {client.display_name}", "notificationId": n.id})


@api_bp.post("/admin/clients/<int:client_id>/assign-package")
@require_admin
def api_clients_assign_package(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        return jsonify({"error": "Client not found"}), 404
    payload = json_payload()
    try:
        pkg = assign_package(s, client, payload.get("packageType") or "", u, total_classes=payload.get("totalClasses"))
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({
        "message": f"Assigned {pkg.name} to {client.display_name}",
        "package": package_to_dict(pkg),
    })


@api_bp.post("/admin/clients/<int:client_id>/adjust-classes")
@require_admin
def api_clients_adjust_classes(client_id: int):
    s = db_session()
    u = _current_user()
    client = get_client(s, client_id)
    if not client:
        return jsonify({"error": "Client not found"}), 404
    payload = json_payload()
    if payload.get("packageId") in (None, "") or payload.get("newClassesRemaining") in (None, ""):
        return jsonify({"error": "packageId and newClassesRemaining are required"}), 400
    try:
        pkg = set_classes_remaining(
            s,
            client,
            payload.get("packageId"),
            payload.get("newClassesRemaining"),
            u,
            reason=(payload.get("reason") or "").strip() or None,
        )
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Classes updated", "package": package_to_dict(pkg)})


@api_bp.post("/admin/clients/update-classes")
@require_admin
def api_clients_update_classes():
    s = db_session()
    u = _current_user()
    payload = json_payload()
    missing = [k for k in ("clientId", "packageId", "classesRemaining") if payload.get(k) in (None, "")]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        client = get_client(s, int(payload["clientId"]))
    except (TypeError, ValueError):
        return jsonify({"error": "clientId must be a whole number."}), 400
    if not client:
        return jsonify({"error": "Client not found"}), 404
    try:
        pkg = set_classes_remaining(s, client, payload["packageId"], payload["classesRemaining"], u)
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Classes updated", "package": package_to_dict(pkg)})


@api_bp.post("/admin/clients/update-expiration")
@require_admin
def api_clients_update_expiration():
    s = db_session()
    u = _current_user()
    payload = json_payload()
    missing = [k for k in ("clientId", "packageId", "newExpirationDate") if payload.get(k) in (None, "")]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        client = get_client(s, int(payload["clientId"]))
    except (TypeError, ValueError):
        return jsonify({"error": "clientId must be a whole number."}), 400
    if not client:
        return jsonify({"error": "Client not found"}), 404
    try:
        pkg = update_expiration(s, client, payload["packageId"], payload["newExpirationDate"], u)
        s.commit()
    except LookupError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "Expiration date updated", "package": package_to_dict(pkg)})


@api_bp.get("/admin/users")
@require_admin
def api_users_list():
    s = db_session()
    users = s.query(User).filter(User.role == ROLE_CLIENT).order_by(User.name.asc(), User.id.asc()).all()
    return jsonify([{"id": u.id, "name": u.name, "email": u.email} for u in users])


@api_bp.delete("/admin/users/<int:user_id>")
@require_admin
def api_users_delete(user_id: int):
    s = db_session()
    u = _current_user()
    user = s.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    try:
        delete_client(s, user, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    return jsonify({"message": "User deleted successfully"})
