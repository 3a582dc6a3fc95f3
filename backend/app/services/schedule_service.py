"""Daily schedule persistence around the allocator and the load scorer."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.models.activity_log import ActivityLog
from app.db.models.schedule import Schedule, ScheduleItem
from app.db.models.task import Task
from app.services.profile_service import get_or_create_user, get_profile, to_day_profile
from app.services.scheduling import allocator, mental_load
from app.services.scheduling.types import (
    InvalidScheduleItem,
    ItemType,
    MentalLoadAnalysis,
    PlacedItem,
    Suggestion,
    TaskRef,
)
from app.services.scheduling.validation import coerce_category, coerce_priority, naive_utc
from app.services.task_service import get_owned_task, load_schedulable_tasks, task_to_spec

logger = logging.getLogger(__name__)


class ScheduleItemNotFound(LookupError):
    pass


@dataclass
class OptimizationOutcome:
    schedule: Schedule
    mental_load: float
    overload_warning: Optional[List[Suggestion]]
    unplaced_task_ids: List[str] = field(default_factory=list)


def find_schedule(db: Session, user_id: UUID, day: date) -> Optional[Schedule]:
    return db.query(Schedule).filter(Schedule.user_id == user_id, Schedule.date == day).one_or_none()


def get_or_create_schedule(db: Session, user_id: UUID, day: date) -> Schedule:
    schedule = find_schedule(db, user_id, day)
    if schedule is not None:
        return schedule
    get_or_create_user(db, user_id)
    schedule = Schedule(user_id=user_id, date=day, optimized=False, mental_load_score=0.0)
    db.add(schedule)
    db.flush()
    return schedule


def _task_ref(task: Optional[Task]) -> Optional[TaskRef]:
    if task is None:
        return None
    return TaskRef(
        title=task.title,
        category=coerce_category(task.category),
        priority=coerce_priority(task.priority),
    )


def item_to_placed(row: ScheduleItem) -> PlacedItem:
    item_type = ItemType(row.type)
    is_task = item_type is ItemType.TASK
    return PlacedItem(
        title=row.title,
        type=item_type,
        start_time=row.start_time,
        end_time=row.end_time,
        task_id=str(row.task_id) if is_task and row.task_id else None,
        task=_task_ref(row.task) if is_task else None,
    )


def placed_items(schedule: Schedule) -> List[PlacedItem]:
    return [item_to_placed(row) for row in schedule.items]


def refresh_mental_load(schedule: Schedule) -> float:
    score = mental_load.calculate_mental_load(placed_items(schedule))
    schedule.mental_load_score = score
    return score


def _log_action(db: Session, user_id: UUID, action_type: str, payload: Dict[str, Any], reason: str) -> None:
    db.add(ActivityLog(user_id=user_id, action_type=action_type, action_payload=payload, reason=reason))


def optimize_day(db: Session, user_id: UUID, day: date, request_id: Optional[str] = None) -> OptimizationOutcome:
    """
    Rebuild the day's items from the user's pending tasks.

    Raises ProfileNotFound when the user has no profile yet and InvalidProfile /
    InvalidTask when stored rows cannot be scheduled. The caller commits.
    """
    profile = to_day_profile(get_profile(db, user_id))
    task_rows = load_schedulable_tasks(db, user_id, day)
    tasks_by_id = {str(task.id): task for task in task_rows}

    result = allocator.allocate_day([task_to_spec(task) for task in task_rows], profile, day)
    score = mental_load.calculate_mental_load(result.items)
    overload_warning = None
    if score > mental_load.OVERLOAD_THRESHOLD:
        overload_warning = mental_load.generate_overload_suggestions(score, result.items)

    schedule = get_or_create_schedule(db, user_id, day)
    schedule.items.clear()
    for item in result.items:
        schedule.items.append(
            ScheduleItem(
                title=item.title,
                type=item.type.value,
                start_time=item.start_time,
                end_time=item.end_time,
                task=tasks_by_id.get(item.task_id) if item.task_id else None,
            )
        )
    schedule.optimized = True
    schedule.mental_load_score = score
    schedule.metadata_json = {
        "unplaced_task_ids": result.unplaced_task_ids,
        "overload_warning": [s.to_dict() for s in overload_warning] if overload_warning else None,
    }
    db.add(schedule)
    _log_action(
        db,
        user_id,
        "schedule_optimized",
        {
            "date": day.isoformat(),
            "items": len(result.items),
            "tasks_considered": len(task_rows),
            "unplaced_task_ids": result.unplaced_task_ids,
            "mental_load": score,
            "request_id": request_id,
        },
        "Schedule optimized",
    )
    db.flush()

    if result.unplaced:
        logger.info(
            "Schedule for user %s on %s left %d task(s) unplaced",
            user_id,
            day.isoformat(),
            len(result.unplaced),
        )
    logger.info("Schedule optimized for user %s on %s (mental load %.1f)", user_id, day.isoformat(), score)

    return OptimizationOutcome(
        schedule=schedule,
        mental_load=score,
        overload_warning=overload_warning,
        unplaced_task_ids=result.unplaced_task_ids,
    )


def _validated_fields(
    db: Session,
    user_id: UUID,
    *,
    title: str,
    type: str = ItemType.TASK.value,
    start_time: datetime,
    end_time: datetime,
    task_id: Optional[UUID] = None,
) -> Dict[str, Any]:
    try:
        item_type = ItemType(type)
    except ValueError as exc:
        raise InvalidScheduleItem(f"Unknown schedule item type: {type!r}") from exc

    task = get_owned_task(db, task_id, user_id) if task_id else None
    start_time, end_time = naive_utc(start_time), naive_utc(end_time)
    # Constructing the PlacedItem enforces the time and task-reference invariants.
    PlacedItem(
        title=title,
        type=item_type,
        start_time=start_time,
        end_time=end_time,
        task_id=str(task_id) if task_id else None,
        task=_task_ref(task),
    )
    return {"title": title, "type": item_type.value, "start_time": start_time, "end_time": end_time, "task": task}


def build_item(db: Session, user_id: UUID, **fields: Any) -> ScheduleItem:
    """Validate a manually supplied item and return an unsaved row."""
    return ScheduleItem(**_validated_fields(db, user_id, **fields))


def replace_items(db: Session, user_id: UUID, day: date, items: List[Dict[str, Any]]) -> Schedule:
    rows = [build_item(db, user_id, **item) for item in items]
    schedule = get_or_create_schedule(db, user_id, day)
    schedule.items.clear()
    schedule.items.extend(rows)
    schedule.optimized = False
    refresh_mental_load(schedule)
    db.add(schedule)
    _log_action(
        db,
        user_id,
        "schedule_updated",
        {"date": day.isoformat(), "items": len(rows)},
        "Schedule replaced manually",
    )
    db.flush()
    return schedule


def _owned_item(db: Session, user_id: UUID, item_id: UUID) -> ScheduleItem:
    item = (
        db.query(ScheduleItem)
        .join(Schedule, ScheduleItem.schedule_id == Schedule.id)
        .filter(ScheduleItem.id == item_id, Schedule.user_id == user_id)
        .one_or_none()
    )
    if item is None:
        raise ScheduleItemNotFound("Schedule item not found")
    return item


def add_item(db: Session, user_id: UUID, day: date, payload: Dict[str, Any]) -> ScheduleItem:
    row = build_item(db, user_id, **payload)
    schedule = get_or_create_schedule(db, user_id, day)
    schedule.items.append(row)
    refresh_mental_load(schedule)
    db.flush()
    return row


def update_item(db: Session, user_id: UUID, item_id: UUID, changes: Dict[str, Any]) -> ScheduleItem:
    row = _owned_item(db, user_id, item_id)
    current = {
        "title": row.title,
        "type": row.type,
        "start_time": row.start_time,
        "end_time": row.end_time,
        "task_id": row.task_id,
    }
    current.update(changes)
    for key, value in _validated_fields(db, user_id, **current).items():
        setattr(row, key, value)
    refresh_mental_load(row.schedule)
    db.flush()
    return row


def delete_item(db: Session, user_id: UUID, item_id: UUID) -> None:
    row = _owned_item(db, user_id, item_id)
    schedule = row.schedule
    schedule.items.remove(row)
    refresh_mental_load(schedule)
    db.flush()


def get_day_mental_load(db: Session, user_id: UUID, day: date) -> Optional[Tuple[float, MentalLoadAnalysis]]:
    """Score and analysis for the stored day, or None when nothing is stored."""
    schedule = find_schedule(db, user_id, day)
    if schedule is None:
        return None
    items = placed_items(schedule)
    score = mental_load.calculate_mental_load(items)
    return score, mental_load.analyze_mental_load(score, items)



def _items_for_tasks(db: Session, task_ids: Sequence[UUID]) -> List[ScheduleItem]:
    if not task_ids:
        return []
    return db.query(ScheduleItem).filter(ScheduleItem.task_id.in_(list(task_ids))).all()


def _distinct_schedules(rows: Sequence[ScheduleItem]) -> List[Schedule]:
    schedules: Dict[UUID, Schedule] = {}
    for row in rows:
        schedules.setdefault(row.schedule_id, row.schedule)
    return list(schedules.values())


def rescore_task_schedules(db: Session, task_ids: Sequence[UUID]) -> List[Schedule]:
    """Recompute the stored score of every schedule that places one of ``task_ids``."""
    schedules = _distinct_schedules(_items_for_tasks(db, task_ids))
    for schedule in schedules:
        refresh_mental_load(schedule)
    db.flush()
    return schedules


def detach_tasks(db: Session, task_ids: Sequence[UUID]) -> List[Schedule]:
    """
    Unlink schedule items from tasks that are about to be deleted.

    The items keep their time block and title. Returns the affected schedules
    so the caller can rescore them once the tasks are gone.
    """
    rows = _items_for_tasks(db, task_ids)
    for row in rows:
        row.task = None
    db.flush()
    return _distinct_schedules(rows)
