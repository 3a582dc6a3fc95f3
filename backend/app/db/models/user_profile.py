"""Per-user scheduling preferences."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    wake_up_time = Column(String(5), nullable=False, default="07:00")
    bed_time = Column(String(5), nullable=False, default="23:00")
    energy_peak_time = Column(String(20), nullable=True)
    sleep_hours = Column(Float, nullable=False, default=8.0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
