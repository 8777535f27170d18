from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Iterable

from app.gymadmin.audit import record_event
from app.gymadmin.constants import PAST_CLASS_RETENTION_DAYS
from app.gymadmin.models import ROLE_CLIENT, User
from app.gymadmin.modules.bookings.models import BOOKING_ACTIVE, Booking
from app.gymadmin.modules.bookings.service import active_booking_for, cancel_booking
from app.gymadmin.modules.classes.models import GymClass
from app.gymadmin.modules.classes.schedule import (
    DEFAULT_CLASS_NAME,
    class_ids_in_week,
    format_time,
    group_classes_by_week,
    iter_template_slots,
    monday_of,
    normalize_time,
    time_sort_key,
    weekday_name,
)
from app.gymadmin.modules.clients.service import consume_class, current_package, refund_class
from app.gymadmin.modules.settings.service import default_class_capacity
from app.gymadmin.utils import parse_bool, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


VALID_FILTERS = ("all", "active", "inactive", "full")
VALID_SORTS = ("name", "date", "capacity", "bookings")


def class_to_dict(cls: GymClass, *, include_bookings: bool = False) -> dict[str, Any]:
    data = {
        "id": cls.id,
        "name": cls.name,
        "day": cls.day,
        "date": cls.date.isoformat(),
        "time": cls.time,
        "capacity": cls.capacity,
        "enabled": bool(cls.enabled),
        "description": cls.description,
        "currentBookings": cls.current_bookings,
    }
    if include_bookings:
        data["bookings"] = [
            {
                "id": b.id,
                "userId": b.user_id,
                "status": b.status,
                "user": {"id": b.user.id, "name": b.user.name, "email": b.user.email},
            }
            for b in cls.active_bookings
        ]
    return data


# ---------- Queries ----------
def list_classes(
    s: "Session",
    *,
    search: str = "",
    status_filter: str = "all",
    sort: str = "date",
    order: str = "asc",
) -> list[GymClass]:
    q = s.query(GymClass)
    search = (search or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter((GymClass.name.ilike(like)) | (GymClass.day.ilike(like)))

    status_filter = status_filter if status_filter in VALID_FILTERS else "all"
    if status_filter == "active":
        q = q.filter(GymClass.enabled.is_(True))
    elif status_filter == "inactive":
        q = q.filter(GymClass.enabled.is_(False))
    classes = q.all()
    if status_filter == "full":
        classes = [c for c in classes if c.is_full]

    sort = sort if sort in VALID_SORTS else "date"
    if sort == "name":
        key = lambda c: (c.name.lower(), c.date, time_sort_key(c.time))  # noqa: E731
    elif sort == "capacity":
        key = lambda c: (c.capacity, c.date, time_sort_key(c.time))  # noqa: E731
    elif sort == "bookings":
        key = lambda c: (c.current_bookings, c.date, time_sort_key(c.time))  # noqa: E731
    else:
        key = lambda c: (c.date, time_sort_key(c.time))  # noqa: E731
    return sorted(classes, key=key, reverse=(order == "desc"))


def count_classes(s: "Session", *, enabled_only: bool = False) -> int:
    q = s.query(GymClass)
    if enabled_only:
        q = q.filter(GymClass.enabled.is_(True))
    return q.count()


# ---------- Create / update ----------
def _text(payload: dict, key: str, label: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{label} must be text.")
    return value.strip()


def _resolve_time(payload: dict) -> str:
    if payload.get("timeHour") not in (None, ""):
        return format_time(payload.get("timeHour"), payload.get("timeMinute") or 0, payload.get("timePeriod") or "")
    return normalize_time(payload.get("time"))


def validate_class_payload(payload: dict) -> list[str]:
    """Validate class creation payload. Returns list of errors."""
    errors = []
    try:
        if not _text(payload, "name", "Name"):
            errors.append("Name is required.")
        _text(payload, "description", "Description")
    except ValueError as e:
        errors.append(str(e))
    try:
        if parse_date(payload.get("date")) is None:
            errors.append("Date is required.")
    except ValueError as e:
        errors.append(str(e))
    try:
        _resolve_time(payload)
    except ValueError as e:
        errors.append(str(e))
    if payload.get("capacity") not in (None, ""):
        try:
            parse_int(payload.get("capacity"), "Capacity", minimum=1)
        except ValueError as e:
            errors.append(str(e))
    return errors


def create_class(s: "Session", payload: dict, user: User) -> GymClass:
    errors = validate_class_payload(payload)
    if errors:
        raise ValueError(" ".join(errors))

    class_date = parse_date(payload.get("date"))
    capacity_raw = payload.get("capacity")
    capacity = (
        parse_int(capacity_raw, "Capacity", minimum=1) if capacity_raw not in (None, "") else default_class_capacity(s)
    )
    now = datetime.utcnow()
    cls = GymClass(
        name=_text(payload, "name", "Name"),
        day=weekday_name(class_date),
        date=class_date,
        time=_resolve_time(payload),
        capacity=capacity,
        enabled=parse_bool(payload["enabled"]) if "enabled" in payload else True,
        description=_text(payload, "description", "Description") or None,
        created_at=now,
        updated_at=now,
    )
    s.add(cls)
    s.flush()

    record_event(
        s,
        actor=user,
        action="class.create",
        entity_type="GymClass",
        entity_id=str(cls.id),
        metadata={"name": cls.name, "date": cls.date, "time": cls.time, "capacity": cls.capacity},
    )
    return cls


def update_class(s: "Session", cls: GymClass, payload: dict, user: User) -> GymClass:
    """Partial update: only keys present in the payload are touched."""
    changes = {}

    if "name" in payload:
        new_name = _text(payload, "name", "Name")
        if not new_name:
            raise ValueError("Name cannot be empty.")
        if new_name != cls.name:
            changes["name"] = {"old": cls.name, "new": new_name}
            cls.name = new_name

    if "capacity" in payload:
        new_capacity = parse_int(payload.get("capacity"), "Capacity", minimum=1)
        if new_capacity < cls.current_bookings:
            raise ValueError(f"Capacity cannot be lower than current bookings ({cls.current_bookings}).")
        if new_capacity != cls.capacity:
            changes["capacity"] = {"old": cls.capacity, "new": new_capacity}
            cls.capacity = new_capacity

    if "time" in payload:
        new_time = normalize_time(payload.get("time"))
        if new_time != cls.time:
            changes["time"] = {"old": cls.time, "new": new_time}
            cls.time = new_time

    if "description" in payload:
        new_description = _text(payload, "description", "Description") or None
        if new_description != cls.description:
            changes["description"] = {"old": cls.description, "new": new_description}
            cls.description = new_description

    if "enabled" in payload:
        new_enabled = parse_bool(payload.get("enabled"))
        if new_enabled != cls.enabled:
            changes["enabled"] = {"old": cls.enabled, "new": new_enabled}
            cls.enabled = new_enabled

    cls.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="class.edit",
        entity_type="GymClass",
        entity_id=str(cls.id),
        metadata={"name": cls.name, "changes": changes},
    )
    return cls


def set_class_enabled(s: "Session", cls: GymClass, enabled: bool, user: User) -> GymClass:
    old = cls.enabled
    cls.enabled = enabled
    cls.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="class.toggle",
        entity_type="GymClass",
        entity_id=str(cls.id),
        metadata={"old": old, "new": enabled},
    )
    return cls


def batch_set_enabled(s: "Session", class_ids: Iterable[Any], enabled: bool, user: User) -> int:
    """Enable/disable many classes at once. Unknown ids are skipped."""
    ids = []
    for raw in class_ids:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            raise ValueError("classIds must be a list of class ids.")
    if not ids:
        return 0

    updated = (
        s.query(GymClass)
        .filter(GymClass.id.in_(ids))
        .update({GymClass.enabled: enabled, GymClass.updated_at: datetime.utcnow()}, synchronize_session=False)
    )
    s.expire_all()
    record_event(
        s,
        actor=user,
        action="class.batch_toggle",
        entity_type="GymClass",
        metadata={"class_ids": ids, "enabled": enabled, "updated": updated},
    )
    return updated


def toggle_week(s: "Session", week_number: int, enabled: bool, user: User) -> int:
    weeks = group_classes_by_week(s.query(GymClass).all())
    ids = class_ids_in_week(weeks, week_number)
    if not ids:
        raise LookupError(f"Week {week_number + 1} has no classes")
    return batch_set_enabled(s, ids, enabled, user)


# ---------- Bulk deletes ----------
def _delete_classes(s: "Session", ids: list[int]) -> int:
    if not ids:
        return 0
    s.query(Booking).filter(Booking.class_id.in_(ids)).delete(synchronize_session=False)
    deleted = s.query(GymClass).filter(GymClass.id.in_(ids)).delete(synchronize_session=False)
    s.expire_all()
    return deleted


def delete_class(s: "Session", cls: GymClass, user: User) -> None:
    record_event(
        s,
        actor=user,
        action="class.delete",
        entity_type="GymClass",
        entity_id=str(cls.id),
        metadata={"name": cls.name, "date": cls.date, "time": cls.time, "bookings": cls.current_bookings},
    )
    s.delete(cls)


def delete_past_classes(s: "Session", user: User, today: date | None = None) -> list[int]:
    """Delete classes dated before today minus the retention window. Returns the deleted ids."""
    today = today or date.today()
    cutoff = today - timedelta(days=PAST_CLASS_RETENTION_DAYS)
    ids = [row[0] for row in s.query(GymClass.id).filter(GymClass.date < cutoff).order_by(GymClass.id).all()]
    _delete_classes(s, ids)
    record_event(
        s,
        actor=user,
        action="class.delete_past",
        entity_type="GymClass",
        metadata={"cutoff": cutoff, "deleted": len(ids)},
    )
    return ids


def clear_all_classes(s: "Session", user: User) -> int:
    ids = [row[0] for row in s.query(GymClass.id).all()]
    deleted = _delete_classes(s, ids)
    record_event(s, actor=user, action="class.clear_all", entity_type="GymClass", metadata={"deleted": deleted})
    return deleted


# ---------- Schedule generation ----------
def generate_default_schedule(
    s: "Session",
    user: User | None,
    *,
    start: date | None = None,
    weeks: int = 52,
) -> int:
    """
    Create the default weekly template for `weeks` weeks from the Monday of `start`.
    Slots that already hold a class (same date and time) are skipped, so re-running is safe.
    """
    start = monday_of(start or date.today())
    if weeks < 1:
        raise ValueError("weeks must be at least 1.")
    end = start + timedelta(weeks=weeks)
    existing = {
        (d, t)
        for d, t in s.query(GymClass.date, GymClass.time)
        .filter(GymClass.date >= start)
        .filter(GymClass.date < end)
        .all()
    }
    capacity = default_class_capacity(s)
    now = datetime.utcnow()

    created = 0
    for class_date, day_name, time_text in iter_template_slots(start, weeks):
        if (class_date, time_text) in existing:
            continue
        s.add(
            GymClass(
                name=DEFAULT_CLASS_NAME,
                day=day_name,
                date=class_date,
                time=time_text,
                capacity=capacity,
                enabled=True,
                created_at=now,
                updated_at=now,
            )
        )
        created += 1
    s.flush()

    record_event(
        s,
        actor=user,
        action="class.generate_schedule",
        entity_type="GymClass",
        metadata={"start": start, "weeks": weeks, "created": created},
    )
    return created


def update_upcoming_capacities(s: "Session", user: User, today: date | None = None) -> tuple[int, int]:
    """Apply the studio's class capacity to every class from today on. Returns (updated, capacity)."""
    today = today or date.today()
    capacity = default_class_capacity(s)
    updated = (
        s.query(GymClass)
        .filter(GymClass.date >= today)
        .update({GymClass.capacity: capacity, GymClass.updated_at: datetime.utcnow()}, synchronize_session=False)
    )
    s.expire_all()
    record_event(
        s,
        actor=user,
        action="class.capacity_sync",
        entity_type="GymClass",
        metadata={"capacity": capacity, "updated": updated},
    )
    return updated, capacity


# ---------- Roster ----------
def add_user_to_class(s: "Session", cls: GymClass, user_id: Any, actor: User) -> tuple[Booking, bool]:
    """
    Book a client into a class on their behalf. Returns (booking, pre_added);
    pre_added is True when the class is currently disabled.
    """
    uid = parse_int(user_id, "userId")
    client = s.get(User, uid)
    if client is None:
        raise LookupError("User not found")
    if client.role != ROLE_CLIENT:
        raise ValueError("Only approved clients can be added to a class.")
    if active_booking_for(cls, client.id):
        raise ValueError(f"{client.display_name} is already booked into this class.")
    if cls.is_full:
        raise ValueError("Class is full.")

    booking = Booking(class_id=cls.id, user_id=client.id, status=BOOKING_ACTIVE, created_at=datetime.utcnow())
    s.add(booking)
    pkg = current_package(client)
    consumed = consume_class(pkg)
    s.flush()
    s.expire(cls, ["bookings"])

    record_event(
        s,
        actor=actor,
        action="class.add_user",
        entity_type="Booking",
        entity_id=str(booking.id),
        metadata={
            "class_id": cls.id,
            "user_id": client.id,
            "package_id": pkg.id if pkg else None,
            "package_decremented": consumed,
            "pre_added": not cls.enabled,
        },
    )
    return booking, not cls.enabled


def remove_user_from_class(s: "Session", cls: GymClass, booking_id: Any, actor: User) -> Booking:
    bid = parse_int(booking_id, "bookingId")
    booking = s.get(Booking, bid)
    if booking is None or booking.class_id != cls.id:
        raise LookupError("Booking not found for this class")

    cancel_booking(s, booking, actor, reason="Removed from class by admin")
    refunded = refund_class(current_package(booking.user))
    s.flush()
    s.expire(cls, ["bookings"])
    record_event(
        s,
        actor=actor,
        action="class.remove_user",
        entity_type="Booking",
        entity_id=str(booking.id),
        metadata={"class_id": cls.id, "user_id": booking.user_id, "package_refunded": refunded},
    )
    return booking
