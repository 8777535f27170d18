from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gymadmin.models import Base

if TYPE_CHECKING:
    from app.gymadmin.models import User


class ClientPackage(Base):
    __tablename__ = "client_packages"
    __table_args__ = (
        Index("idx_client_packages_user_id", "user_id"),
        Index("idx_client_packages_active", "active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)  # "8-Class Package: 30 days"
    package_type: Mapped[str] = mapped_column(String(32), nullable=False)  # 8-class, 12-class, unlimited
    total_classes: Mapped[int] = mapped_column(Integer, nullable=False)
    classes_remaining: Mapped[int] = mapped_column(Integer, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    # At most one active package per user; enforced by the service layer.
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="packages")

    def days_remaining(self, today: date | None = None) -> int:
        today = today or date.today()
        return max(0, (self.end_date - today).days)

    def is_current(self, today: date | None = None) -> bool:
        today = today or date.today()
        return self.active and self.end_date >= today
