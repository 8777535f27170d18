from __future__ import annotations

from flask import Blueprint, flash, g, jsonify, redirect, render_template, request, url_for

from app.gymadmin.db import db_session
from app.gymadmin.models import User
from app.gymadmin.modules.pending_users.service import (
    approve_user,
    decline_user,
    get_pending_user,
    list_pending_users,
    pending_user_to_dict,
)
from app.gymadmin.rbac import require_admin
from app.gymadmin.utils import json_payload

bp = Blueprint("pending_users", __name__)
api_bp = Blueprint("pending_users_api", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/pending-users")
@require_admin
def pending_users_list():
    s = db_session()
    return render_template("admin/pending_users/list.html", users=list_pending_users(s))


@bp.post("/pending-users/<int:user_id>/approve")
@require_admin
def pending_users_approve_post(user_id: int):
    s = db_session()
    try:
        user = get_pending_user(s, user_id)
    except LookupError as e:
        flash(str(e), "danger")
        return redirect(url_for("pending_users.pending_users_list"))
    approve_user(s, user, _current_user())
    s.commit()
    flash(f"{user.display_name} approved.", "success")
    return redirect(url_for("pending_users.pending_users_list"))


@bp.post("/pending-users/<int:user_id>/decline")
@require_admin
def pending_users_decline_post(user_id: int):
    s = db_session()
    try:
        user = get_pending_user(s, user_id)
    except LookupError as e:
        flash(str(e), "danger")
        return redirect(url_for("pending_users.pending_users_list"))
    name = user.display_name
    decline_user(s, user, _current_user())
    s.commit()
    flash(f"{name} declined.", "success")
    return redirect(url_for("pending_users.pending_users_list"))


# ---------- JSON API ----------
@api_bp.get("/admin/pending-users")
@require_admin
def api_pending_users_list():
    s = db_session()
    return jsonify([pending_user_to_dict(u) for u in list_pending_users(s)])


@api_bp.post("/admin/pending-users")
@require_admin
def api_pending_users_approve():
    s = db_session()
    payload = json_payload()
    if payload.get("userId") in (None, ""):
        return jsonify({"error": "userId is required"}), 400
    try:
        user = get_pending_user(s, payload.get("userId"))
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    approve_user(s, user, _current_user())
    s.commit()
    return jsonify({"message": "User approved successfully", "user": pending_user_to_dict(user)})


@api_bp.delete("/admin/pending-users")
@require_admin
def api_pending_users_decline():
    s = db_session()
    payload = json_payload()
    if payload.get("userId") in (None, "") and request.args.get("userId"):
        payload = {"userId": request.args.get("userId")}
    if payload.get("userId") in (None, ""):
        return jsonify({"error": "userId is required"}), 400
    try:
        user = get_pending_user(s, payload.get("userId"))
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    decline_user(s, user, _current_user())
    s.commit()
    return jsonify({"message": "User declined and removed"})
