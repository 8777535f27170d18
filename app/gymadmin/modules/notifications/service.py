from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from app.gymadmin.models import ROLE_ADMIN, User
from app.gymadmin.modules.notifications.models import (
    TYPE_ADMIN_CANCELLATION,
    Notification,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200
DIAGNOSTIC_RECENT_LIMIT = 10
TEST_MESSAGE_MARKER = "TEST:"

SAMPLE_CANCELLATIONS = (
    "John Smith cancelled CrossFit WOD on Mon, Nov 18 at 8:00 AM",
    "Sarah Johnson cancelled CrossFit HIIT on Tue, Nov 19 at 6:00 PM",
    "Mike Davis cancelled CrossFit Strength on Wed, Nov 20 at 7:00 AM",
)


def notification_to_dict(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "userId": n.user_id,
        "type": n.type,
        "message": n.message,
        "read": bool(n.read),
        "createdAt": n.created_at.isoformat() if n.created_at else None,
    }


def admin_users(s: "Session") -> list[User]:
    return (
        s.query(User)
        .filter(User.role == ROLE_ADMIN)
        .filter(User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )


def unread_count(s: "Session", user_id: int) -> int:
    return (
        s.query(Notification)
        .filter(Notification.user_id == user_id)
        .filter(Notification.read.is_(False))
        .count()
    )


def parse_limit(raw: str | None, default: int = DEFAULT_LIST_LIMIT) -> int:
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ValueError("limit must be a whole number.")
    if value < 1:
        raise ValueError("limit must be at least 1.")
    return min(value, MAX_LIST_LIMIT)


def list_notifications(
    s: "Session",
    user_id: int,
    *,
    unread_only: bool = False,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[Notification]:
    q = s.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def create_notification(s: "Session", *, user_id: int, type: str, message: str) -> Notification:
    n = Notification(user_id=user_id, type=type, message=message, read=False, created_at=datetime.utcnow())
    s.add(n)
    return n


def notify_admins(s: "Session", type: str, message: str) -> list[Notification]:
    """One notification per active admin. Caller commits."""
    created = [create_notification(s, user_id=admin.id, type=type, message=message) for admin in admin_users(s)]
    if created:
        s.flush()
    return created


def mark_read(s: "Session", user_id: int, notification_ids: Iterable[Any]) -> int:
    ids: list[int] = []
    for raw in notification_ids:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            raise ValueError("notificationIds must be a list of ids.")
    if not ids:
        return 0
    return (
        s.query(Notification)
        .filter(Notification.user_id == user_id)
        .filter(Notification.id.in_(ids))
        .filter(Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )


def mark_all_read(s: "Session", user_id: int) -> int:
    return (
        s.query(Notification)
        .filter(Notification.user_id == user_id)
        .filter(Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )


def delete_notification(s: "Session", user_id: int, notification_id: int) -> bool:
    n = s.get(Notification, notification_id)
    if not n or n.user_id != user_id:
        return False
    s.delete(n)
    return True


# ---------- Diagnostics ----------
def diagnostics_snapshot(s: "Session", user_id: int) -> dict[str, Any]:
    recent = (
        s.query(Notification)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(DIAGNOSTIC_RECENT_LIMIT)
        .all()
    )
    admins = admin_users(s)
    return {
        "recentNotifications": [notification_to_dict(n) for n in recent],
        "totalNotifications": s.query(Notification).count(),
        "adminUsers": [{"id": a.id, "name": a.name, "email": a.email} for a in admins],
        "unreadCount": unread_count(s, user_id),
    }


def create_sample_cancellations(s: "Session") -> int:
    admins = admin_users(s)
    if not admins:
        raise LookupError("No admin users found")
    count = 0
    for admin in admins:
        for message in SAMPLE_CANCELLATIONS:
            create_notification(s, user_id=admin.id, type=TYPE_ADMIN_CANCELLATION, message=message)
            count += 1
    s.flush()
    return count


def clear_cancellation_notifications(s: "Session") -> int:
    return (
        s.query(Notification)
        .filter(Notification.type == TYPE_ADMIN_CANCELLATION)
        .delete(synchronize_session=False)
    )


def create_simple_test(s: "Session", now: datetime | None = None) -> int:
    admins = admin_users(s)
    if not admins:
        raise LookupError("No admin users found")
    now = now or datetime.utcnow()
    message = f"{TEST_MESSAGE_MARKER} Client cancelled CrossFit class on {now.strftime('%a, %b %d at %I:%M %p')}"
    for admin in admins:
        create_notification(s, user_id=admin.id, type=TYPE_ADMIN_CANCELLATION, message=message)
    s.flush()
    return len(admins)


def clear_simple_tests(s: "Session") -> int:
    return (
        s.query(Notification)
        .filter(Notification.message.contains(TEST_MESSAGE_MARKER))
        .delete(synchronize_session=False)
    )


def time_ago(value: datetime | None, now: datetime | None = None) -> str:
    """Relative time for the notifications page, e.g. "5 minutes ago"."""
    if value is None:
        return ""
    now = now or datetime.utcnow()
    seconds = int((now - value).total_seconds())
    if seconds < 0:
        seconds = 0
    if seconds < 45:
        return "less than a minute ago"
    minutes = round(seconds / 60)
    if minutes < 45:
        return "1 minute ago" if minutes == 1 else f"{minutes} minutes ago"
    hours = round(seconds / 3600)
    if hours < 24:
        return "about 1 hour ago" if hours == 1 else f"about {hours} hours ago"
    days = round(seconds / 86400)
    if days < 30:
        return "1 day ago" if days == 1 else f"{days} days ago"
    months = round(days / 30)
    if months < 12:
        return "about 1 month ago" if months == 1 else f"{months} months ago"
    years = round(days / 365)
    return "about 1 year ago" if years == 1 else f"about {years} years ago"
