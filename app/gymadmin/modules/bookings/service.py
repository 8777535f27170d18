from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, cast, func

from app.gymadmin.audit import record_event
from app.gymadmin.models import User
from app.gymadmin.modules.bookings.models import BOOKING_ACTIVE, BOOKING_CANCELLED, VALID_STATUSES, Booking
from app.gymadmin.modules.classes.models import GymClass
from app.gymadmin.modules.notifications.models import TYPE_ADMIN_CANCELLATION
from app.gymadmin.modules.notifications.service import notify_admins
from app.gymadmin.modules.settings.service import get_section

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def booking_to_dict(b: Booking) -> dict[str, Any]:
    cls = b.gym_class
    user = b.user
    return {
        "id": b.id,
        "classId": b.class_id,
        "className": cls.name if cls else None,
        "classDate": cls.date.isoformat() if cls else None,
        "classTime": cls.time if cls else None,
        "client": {"id": user.id, "name": user.name, "email": user.email} if user else None,
        "status": b.status,
        "createdAt": b.created_at.isoformat() if b.created_at else None,
        "cancelledAt": b.cancelled_at.isoformat() if b.cancelled_at else None,
    }


def list_bookings(s: "Session", *, status: str = "", search: str = "") -> list[Booking]:
    """Newest first. `search` matches class name, client name/email, or booking id."""
    q = s.query(Booking).join(GymClass, Booking.class_id == GymClass.id).join(User, Booking.user_id == User.id)

    status = (status or "").strip()
    if status and status != "all":
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
        q = q.filter(Booking.status == status)

    search = (search or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(
            GymClass.name.ilike(like)
            | User.name.ilike(like)
            | User.email.ilike(like)
            | cast(Booking.id, String).ilike(like)
        )

    return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


def status_counts(s: "Session") -> dict[str, int]:
    counts = {"all": 0, BOOKING_ACTIVE: 0, BOOKING_CANCELLED: 0}
    for status, n in s.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all():
        counts["all"] += n
        counts[status] = counts.get(status, 0) + n
    return counts


def active_booking_for(gym_class: GymClass, user_id: int) -> Booking | None:
    return next((b for b in gym_class.bookings if b.user_id == user_id and b.status == BOOKING_ACTIVE), None)


def cancel_booking(s: "Session", booking: Booking, actor: User, *, reason: str | None = None) -> Booking:
    """Mark cancelled and let admins know (when cancellation notices are switched on)."""
    if booking.status == BOOKING_CANCELLED:
        raise ValueError("Booking is already cancelled.")
    booking.status = BOOKING_CANCELLED
    booking.cancelled_at = datetime.utcnow()

    cls = booking.gym_class
    client = booking.user
    if get_section(s, "notifications").get("sendCancellationNotifications"):
        notify_admins(
            s,
            TYPE_ADMIN_CANCELLATION,
            f"{client.display_name} was removed from {cls.name} on "
            f"{cls.date.strftime('%a, %b %d')} at {cls.time}",
        )

    record_event(
        s,
        actor=actor,
        action="booking.cancel",
        entity_type="Booking",
        entity_id=str(booking.id),
        reason=reason,
        metadata={"class_id": booking.class_id, "user_id": booking.user_id},
    )
    return booking
