from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from app.gymadmin.audit import record_event
from app.gymadmin.constants import (
    CLIENT_STATUS_ACTIVE,
    CLIENT_STATUS_EXPIRED,
    CLIENT_STATUS_WARNING,
    EXPIRY_WARNING_DAYS,
    PACKAGE_TYPES,
    UNLIMITED_CLASS_ALLOWANCE,
)
from app.gymadmin.models import ROLE_CLIENT, User
from app.gymadmin.modules.bookings.models import BOOKING_ACTIVE
from app.gymadmin.modules.clients.models import ClientPackage
from app.gymadmin.modules.notifications.models import TYPE_PACKAGE_ASSIGNED, TYPE_RENEWAL_REMINDER
from app.gymadmin.modules.notifications.service import create_notification
from app.gymadmin.modules.settings.service import package_duration_days
from app.gymadmin.utils import parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


VALID_FILTERS = ("all", "active", "warning", "expired", "nopackage")
VALID_SORTS = ("name", "joinDate", "bookings")


# ---------- Derived values ----------
def current_package(user: User, today: date | None = None) -> ClientPackage | None:
    """The client's active, unexpired package (newest first if data ever holds more than one)."""
    today = today or date.today()
    for pkg in user.packages:
        if pkg.is_current(today):
            return pkg
    return None


def client_status(user: User, today: date | None = None) -> str:
    today = today or date.today()
    pkg = current_package(user, today)
    if pkg is None:
        return CLIENT_STATUS_EXPIRED
    if pkg.days_remaining(today) <= EXPIRY_WARNING_DAYS:
        return CLIENT_STATUS_WARNING
    return CLIENT_STATUS_ACTIVE


def next_class(user: User, today: date | None = None):
    today = today or date.today()
    upcoming = [
        b.gym_class
        for b in user.bookings
        if b.status == BOOKING_ACTIVE and b.gym_class is not None and b.gym_class.date >= today
    ]
    if not upcoming:
        return None
    from app.gymadmin.modules.classes.schedule import time_sort_key

    return min(upcoming, key=lambda c: (c.date, time_sort_key(c.time)))


def package_to_dict(pkg: ClientPackage, today: date | None = None) -> dict[str, Any]:
    today = today or date.today()
    return {
        "id": pkg.id,
        "name": pkg.name,
        "packageType": pkg.package_type,
        "classesRemaining": pkg.classes_remaining,
        "totalClasses": pkg.total_classes,
        "daysRemaining": pkg.days_remaining(today),
        "startDate": pkg.start_date.isoformat(),
        "endDate": pkg.end_date.isoformat(),
        "active": bool(pkg.active),
    }


def client_to_dict(user: User, today: date | None = None) -> dict[str, Any]:
    today = today or date.today()
    pkg = current_package(user, today)
    nxt = next_class(user, today)
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "joinDate": user.created_at.isoformat() if user.created_at else None,
        "totalBookings": sum(1 for b in user.bookings if b.status == BOOKING_ACTIVE),
        "nextClass": (
            {"id": nxt.id, "name": nxt.name, "date": nxt.date.isoformat(), "time": nxt.time} if nxt else None
        ),
        "status": client_status(user, today),
        "package": package_to_dict(pkg, today) if pkg else None,
        "packages": [package_to_dict(p, today) for p in user.packages],
    }


# ---------- Queries ----------
def get_client(s: "Session", client_id: int) -> User | None:
    user = s.get(User, client_id)
    if not user or user.role != ROLE_CLIENT:
        return None
    return user


def list_clients(
    s: "Session",
    *,
    search: str = "",
    status_filter: str = "all",
    sort: str = "name",
    order: str = "asc",
    today: date | None = None,
) -> list[User]:
    today = today or date.today()
    q = s.query(User).filter(User.role == ROLE_CLIENT)
    search = (search or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter((User.name.ilike(like)) | (User.email.ilike(like)))
    clients = q.all()

    status_filter = status_filter if status_filter in VALID_FILTERS else "all"
    if status_filter == "nopackage":
        clients = [c for c in clients if current_package(c, today) is None]
    elif status_filter != "all":
        clients = [c for c in clients if client_status(c, today) == status_filter]

    sort = sort if sort in VALID_SORTS else "name"
    if sort == "joinDate":
        key = lambda c: c.created_at or datetime.min  # noqa: E731
    elif sort == "bookings":
        key = lambda c: sum(1 for b in c.bookings if b.status == BOOKING_ACTIVE)  # noqa: E731
    else:
        key = lambda c: (c.name or c.email).lower()  # noqa: E731
    return sorted(clients, key=key, reverse=(order == "desc"))


def status_counts(s: "Session", today: date | None = None) -> dict[str, int]:
    today = today or date.today()
    counts = {key: 0 for key in VALID_FILTERS}
    for c in s.query(User).filter(User.role == ROLE_CLIENT).all():
        counts["all"] += 1
        counts[client_status(c, today)] += 1
        if current_package(c, today) is None:
            counts["nopackage"] += 1
    return counts


def count_active_members(s: "Session", today: date | None = None) -> int:
    today = today or date.today()
    return (
        s.query(User)
        .join(ClientPackage, ClientPackage.user_id == User.id)
        .filter(User.role == ROLE_CLIENT)
        .filter(ClientPackage.active.is_(True))
        .filter(ClientPackage.end_date >= today)
        .distinct()
        .count()
    )


def _get_client_package(client: User, package_id: Any) -> ClientPackage:
    pid = parse_int(package_id, "packageId")
    pkg = next((p for p in client.packages if p.id == pid), None)
    if pkg is None:
        raise LookupError("Package not found for this client")
    return pkg


# ---------- Mutations ----------
def assign_package(
    s: "Session",
    client: User,
    package_type: str,
    actor: User,
    *,
    total_classes: Any = None,
    today: date | None = None,
) -> ClientPackage:
    """New package starting today; any previous active package is deactivated."""
    today = today or date.today()
    package_type = (package_type or "").strip()
    if package_type not in PACKAGE_TYPES:
        raise ValueError(f"Invalid package type. Must be one of: {', '.join(PACKAGE_TYPES)}")

    label, allowance = PACKAGE_TYPES[package_type]
    if allowance is None:
        allowance = UNLIMITED_CLASS_ALLOWANCE
    elif total_classes not in (None, ""):
        allowance = parse_int(total_classes, "totalClasses", minimum=1)

    duration = package_duration_days(s)
    now = datetime.utcnow()
    deactivated = []
    for pkg in client.packages:
        if pkg.active:
            pkg.active = False
            pkg.updated_at = now
            deactivated.append(pkg.id)

    pkg = ClientPackage(
        user_id=client.id,
        name=f"{label}: {duration} days",
        package_type=package_type,
        total_classes=allowance,
        classes_remaining=allowance,
        start_date=today,
        end_date=today + timedelta(days=duration),
        active=True,
        created_at=now,
        updated_at=now,
    )
    s.add(pkg)
    s.flush()
    s.expire(client, ["packages"])

    create_notification(
        s,
        user_id=client.id,
        type=TYPE_PACKAGE_ASSIGNED,
        message=f"You have been assigned the {pkg.name}. It expires on {pkg.end_date.strftime('%b %d, %Y')}.",
    )
    record_event(
        s,
        actor=actor,
        action="client.package_assign",
        entity_type="ClientPackage",
        entity_id=str(pkg.id),
        metadata={
            "client_id": client.id,
            "package_type": package_type,
            "total_classes": allowance,
            "deactivated": deactivated,
        },
    )
    return pkg


def set_classes_remaining(
    s: "Session",
    client: User,
    package_id: Any,
    new_value: Any,
    actor: User,
    *,
    reason: str | None = None,
) -> ClientPackage:
    pkg = _get_client_package(client, package_id)
    if not pkg.active:
        raise ValueError("Only an active package can be adjusted.")
    value = parse_int(new_value, "classesRemaining", minimum=0)

    old_value = pkg.classes_remaining
    pkg.classes_remaining = value
    pkg.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=actor,
        action="client.classes_adjust",
        entity_type="ClientPackage",
        entity_id=str(pkg.id),
        reason=reason,
        metadata={"client_id": client.id, "changes": {"classes_remaining": {"old": old_value, "new": value}}},
    )
    return pkg


def update_expiration(
    s: "Session",
    client: User,
    package_id: Any,
    new_date: Any,
    actor: User,
    *,
    today: date | None = None,
) -> ClientPackage:
    today = today or date.today()
    pkg = _get_client_package(client, package_id)
    end_date = parse_date(new_date)
    if end_date is None:
        raise ValueError("newExpirationDate is required.")
    if end_date < pkg.start_date:
        raise ValueError("Expiration date cannot be before the package start date.")

    old_end = pkg.end_date
    pkg.end_date = end_date
    reactivated = False
    if end_date >= today and not pkg.active:
        for other in client.packages:
            if other.id != pkg.id and other.active:
                other.active = False
        pkg.active = True
        reactivated = True
    pkg.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=actor,
        action="client.expiration_update",
        entity_type="ClientPackage",
        entity_id=str(pkg.id),
        metadata={
            "client_id": client.id,
            "changes": {"end_date": {"old": str(old_end), "new": str(end_date)}},
            "reactivated": reactivated,
        },
    )
    return pkg


def send_renewal_reminder(s: "Session", client: User, actor: User, today: date | None = None):
    """Queue an in-app reminder about the client's package expiry."""
    today = today or date.today()
    if not client.packages:
        raise ValueError("Client has no package to renew.")
    pkg = current_package(client, today) or client.packages[0]
    days = pkg.days_remaining(today)
    if days == 0:
        message = f"Your {pkg.name} has expired. Please renew to keep booking classes."
    else:
        message = (
            f"Your {pkg.name} expires in {days} day{'s' if days != 1 else ''} "
            f"({pkg.end_date.strftime('%b %d, %Y')}). Please renew to keep booking classes."
        )
    n = create_notification(s, user_id=client.id, type=TYPE_RENEWAL_REMINDER, message=message)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="client.remind",
        entity_type="User",
        entity_id=str(client.id),
        metadata={"package_id": pkg.id, "days_remaining": days},
    )
    return n


def delete_client(s: "Session", client: User, actor: User) -> None:
    if client.role != ROLE_CLIENT:
        raise ValueError("Only client accounts can be deleted here.")
    record_event(
        s,
        actor=actor,
        action="client.delete",
        entity_type="User",
        entity_id=str(client.id),
        metadata={"email": client.email, "name": client.name},
    )
    s.delete(client)


# ---------- Package counter, used by class roster changes ----------
def consume_class(pkg: ClientPackage | None) -> bool:
    if pkg is None or pkg.classes_remaining <= 0:
        return False
    pkg.classes_remaining -= 1
    pkg.updated_at = datetime.utcnow()
    return True


def refund_class(pkg: ClientPackage | None) -> bool:
    if pkg is None or pkg.classes_remaining >= pkg.total_classes:
        return False
    pkg.classes_remaining += 1
    pkg.updated_at = datetime.utcnow()
    return True
