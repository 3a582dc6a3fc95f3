"""Schemas for schedule and mental load endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

ItemTypeLiteral = Literal["TASK", "BREAK", "BUFFER", "LUNCH", "SLEEP"]
LoadLevelLiteral = Literal["light", "balanced", "busy", "overloaded", "critical"]


class ScheduleTaskPayload(BaseModel):
    id: UUID
    title: str
    category: str
    priority: str


class ScheduleItemPayload(BaseModel):
    id: UUID
    title: str
    type: ItemTypeLiteral
    start_time: datetime
    end_time: datetime
    task_id: Optional[UUID]
    task: Optional[ScheduleTaskPayload] = None


class SchedulePayload(BaseModel):
    id: UUID
    user_id: UUID
    date: date
    optimized: bool
    mental_load_score: float
    items: List[ScheduleItemPayload]


class ScheduleResponse(BaseModel):
    schedule: SchedulePayload
    request_id: str


class SuggestionPayload(BaseModel):
    type: str
    message: str
    impact: float
    tasks: Optional[List[str]] = None


class OptimizeRequest(BaseModel):
    user_id: UUID
    date: date


class OptimizeResponse(BaseModel):
    schedule: SchedulePayload
    mental_load: float
    overload_warning: Optional[List[SuggestionPayload]]
    unplaced_task_ids: List[UUID]
    request_id: str


class ScheduleItemInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: ItemTypeLiteral = "TASK"
    start_time: datetime
    end_time: datetime
    task_id: Optional[UUID] = None


class ScheduleItemCreateRequest(ScheduleItemInput):
    user_id: UUID


class ScheduleUpdateRequest(BaseModel):
    user_id: UUID
    items: List[ScheduleItemInput]


class ScheduleItemUpdateRequest(BaseModel):
    user_id: UUID
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[ItemTypeLiteral] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    task_id: Optional[UUID] = None


class ScheduleItemResponse(BaseModel):
    item: ScheduleItemPayload
    mental_load_score: float
    request_id: str


class CategorySharePayload(BaseModel):
    minutes: float
    percentage: int


class MentalLoadResponse(BaseModel):
    date: date
    score: float
    level: LoadLevelLiteral
    message: str
    suggestions: List[SuggestionPayload] = Field(default_factory=list)
    distribution: Dict[str, CategorySharePayload] = Field(default_factory=dict)
    request_id: str
