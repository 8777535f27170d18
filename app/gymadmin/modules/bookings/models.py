from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gymadmin.models import Base

if TYPE_CHECKING:
    from app.gymadmin.models import User
    from app.gymadmin.modules.classes.models import GymClass


BOOKING_ACTIVE = "active"
BOOKING_CANCELLED = "cancelled"
VALID_STATUSES = (BOOKING_ACTIVE, BOOKING_CANCELLED)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_class_id", "class_id"),
        Index("idx_bookings_user_id", "user_id"),
        Index("idx_bookings_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=BOOKING_ACTIVE)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    gym_class: Mapped["GymClass"] = relationship("GymClass", back_populates="bookings", lazy="joined")
    user: Mapped["User"] = relationship("User", back_populates="bookings", lazy="joined")
