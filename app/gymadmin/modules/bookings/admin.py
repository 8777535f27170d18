from __future__ import annotations

from flask import Blueprint, flash, jsonify, render_template, request

from app.gymadmin.db import db_session
from app.gymadmin.modules.bookings.models import VALID_STATUSES
from app.gymadmin.modules.bookings.service import booking_to_dict, list_bookings, status_counts
from app.gymadmin.rbac import require_admin

bp = Blueprint("bookings", __name__)
api_bp = Blueprint("bookings_api", __name__)


@bp.get("/bookings")
@require_admin
def bookings_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    status_filter = (request.args.get("status") or "").strip()
    try:
        bookings = list_bookings(s, status=status_filter, search=search)
    except ValueError as e:
        flash(str(e), "danger")
        status_filter = ""
        bookings = list_bookings(s, search=search)
    return render_template(
        "admin/bookings/list.html",
        bookings=bookings,
        counts=status_counts(s),
        statuses=VALID_STATUSES,
        search=search,
        status_filter=status_filter,
    )


@api_bp.get("/admin/bookings")
@require_admin
def api_bookings_list():
    s = db_session()
    try:
        bookings = list_bookings(
            s,
            status=(request.args.get("status") or "").strip(),
            search=(request.args.get("q") or "").strip(),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"bookings": [booking_to_dict(b) for b in bookings]})
