"""Schemas for the scheduling profile endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.api.schemas.task import TimeOfDayLiteral


class ProfileResponse(BaseModel):
    user_id: UUID
    wake_up_time: str
    bed_time: str
    energy_peak_time: Optional[str]
    sleep_hours: float
    updated_at: Optional[datetime] = None
    request_id: str


class ProfileUpdateRequest(BaseModel):
    user_id: UUID
    wake_up_time: Optional[str] = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")
    bed_time: Optional[str] = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")
    energy_peak_time: Optional[TimeOfDayLiteral] = None
    sleep_hours: Optional[float] = Field(default=None, gt=0, le=24)
