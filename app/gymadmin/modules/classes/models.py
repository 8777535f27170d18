from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gymadmin.models import Base

if TYPE_CHECKING:
    from app.gymadmin.modules.bookings.models import Booking


class GymClass(Base):
    __tablename__ = "classes"
    __table_args__ = (
        Index("idx_classes_date", "date"),
        Index("idx_classes_enabled", "enabled"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    day: Mapped[str] = mapped_column(String(16), nullable=False)  # weekday name, e.g. "Monday"
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[str] = mapped_column(String(16), nullable=False)  # "7:00 AM"
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="gym_class",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def active_bookings(self) -> list["Booking"]:
        return [b for b in self.bookings if b.status == "active"]

    @property
    def current_bookings(self) -> int:
        return len(self.active_bookings)

    @property
    def is_full(self) -> bool:
        return self.current_bookings >= self.capacity
