from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.gymadmin.models import Base


class StudioSetting(Base):
    """One row per settings section; values stored as a small JSON object."""

    __tablename__ = "studio_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    section: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # general, notifications, packages
    values_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
