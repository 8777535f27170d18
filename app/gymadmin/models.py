from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from app.gymadmin.modules.bookings.models import Booking
    from app.gymadmin.modules.clients.models import ClientPackage
    from app.gymadmin.modules.notifications.models import Notification


class Base(DeclarativeBase):
    pass


ROLE_ADMIN = "admin"
ROLE_CLIENT = "client"
ROLE_PENDING = "pending"
VALID_ROLES = (ROLE_ADMIN, ROLE_CLIENT, ROLE_PENDING)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role", "role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_PENDING)  # admin, client, pending
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    packages: Mapped[list["ClientPackage"]] = relationship(
        "ClientPackage",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ClientPackage.created_at.desc()",
    )
    notifications: Mapped[list["Notification"]] = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def display_name(self) -> str:
        return self.name or self.email


class AuditEvent(Base):
    """
    Append-only audit trail event.
    Keep this table intentionally generic; module tables can refer to it by id if needed.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_events_created_at", "created_at"),
        Index("idx_audit_events_action", "action"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "class.toggle"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "GymClass"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)  # reason-for-change
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.gymadmin.modules.classes.models import GymClass  # noqa: E402,F401
from app.gymadmin.modules.bookings.models import Booking  # noqa: E402,F401,F811
from app.gymadmin.modules.clients.models import ClientPackage  # noqa: E402,F401,F811
from app.gymadmin.modules.notifications.models import Notification  # noqa: E402,F401,F811
from app.gymadmin.modules.settings.models import StudioSetting  # noqa: E402,F401
