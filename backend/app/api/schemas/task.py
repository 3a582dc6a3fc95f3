"""Schemas for task endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

CategoryLiteral = Literal["WORK", "STUDY", "LEISURE", "REST", "SPORT", "SOCIAL", "HOUSEHOLD", "PERSONAL"]
PriorityLiteral = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
TimeOfDayLiteral = Literal["morning", "afternoon", "evening"]


class TaskCreateRequest(BaseModel):
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: CategoryLiteral
    priority: PriorityLiteral = "MEDIUM"
    duration_min: int = Field(..., gt=0, le=24 * 60)
    deadline: Optional[datetime] = None
    preferred_time: Optional[TimeOfDayLiteral] = None


class TaskSummary(BaseModel):
    id: UUID
    title: str
    description: Optional[str]
    category: str
    priority: str
    duration_min: int
    deadline: Optional[datetime]
    preferred_time: Optional[str]
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class TaskUpdateRequest(BaseModel):
    user_id: UUID
    completed: bool


class TaskUpdateResponse(BaseModel):
    id: UUID
    completed: bool
    completed_at: Optional[datetime]
    request_id: str


class TaskEditRequest(BaseModel):
    user_id: UUID
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[CategoryLiteral] = None
    priority: Optional[PriorityLiteral] = None
    duration_min: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    deadline: Optional[datetime] = None
    preferred_time: Optional[TimeOfDayLiteral] = None


class TaskBulkRequest(BaseModel):
    user_id: UUID
    task_ids: List[UUID] = Field(..., min_length=1)


class TaskBulkResponse(BaseModel):
    count: int
    request_id: str
