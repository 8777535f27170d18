from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.gymadmin.audit import record_event
from app.gymadmin.models import ROLE_CLIENT, ROLE_PENDING, User
from app.gymadmin.modules.notifications.models import TYPE_PENDING_USER
from app.gymadmin.modules.notifications.service import notify_admins
from app.gymadmin.utils import parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def pending_user_to_dict(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "createdAt": u.created_at.isoformat() if u.created_at else None,
    }


def list_pending_users(s: "Session") -> list[User]:
    return s.query(User).filter(User.role == ROLE_PENDING).order_by(User.created_at.desc(), User.id.desc()).all()


def count_pending_users(s: "Session") -> int:
    return s.query(User).filter(User.role == ROLE_PENDING).count()


def get_pending_user(s: "Session", user_id: Any) -> User:
    uid = parse_int(user_id, "userId")
    user = s.get(User, uid)
    if user is None or user.role != ROLE_PENDING:
        raise LookupError("Pending user not found")
    return user


def approve_user(s: "Session", user: User, actor: User) -> User:
    user.role = ROLE_CLIENT
    record_event(
        s,
        actor=actor,
        action="pending_user.approve",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "changes": {"role": {"old": ROLE_PENDING, "new": ROLE_CLIENT}}},
    )
    return user


def decline_user(s: "Session", user: User, actor: User) -> None:
    """Declining removes the account entirely."""
    record_event(
        s,
        actor=actor,
        action="pending_user.decline",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "name": user.name},
    )
    s.delete(user)


def announce_pending_user(s: "Session", user: User) -> None:
    """Tell every admin that a new account is waiting for approval."""
    notify_admins(s, TYPE_PENDING_USER, f"New user {user.display_name} ({user.email}) is awaiting approval")
