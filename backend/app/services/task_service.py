"""Task persistence helpers and the snapshot fed to the allocator."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import asc, case, desc, nulls_last, or_
from sqlalchemy.orm import Session

from app.db.models.task import Task
from app.services.profile_service import get_or_create_user
from app.services.scheduling.types import TaskSpec
from app.services.scheduling.validation import coerce_task

_PRIORITY_ORDER = case(
    (Task.priority == "URGENT", 4),
    (Task.priority == "HIGH", 3),
    (Task.priority == "LOW", 1),
    else_=2,
)


class TaskNotFound(LookupError):
    pass


class TaskOwnershipError(PermissionError):
    pass


def create_task(
    db: Session,
    *,
    user_id: UUID,
    title: str,
    category: str,
    duration_min: int,
    priority: Optional[str] = None,
    description: Optional[str] = None,
    deadline: Optional[datetime] = None,
    preferred_time: Optional[str] = None,
) -> Task:
    """Validate and add a task; raises InvalidTask for unusable input."""
    get_or_create_user(db, user_id)
    spec = coerce_task(
        id="new",
        title=title,
        category=category,
        priority=priority,
        duration_min=duration_min,
        deadline=deadline,
        preferred_time=preferred_time,
    )
    task = Task(
        user_id=user_id,
        title=spec.title,
        description=description,
        category=spec.category.value,
        priority=spec.priority.value,
        duration_min=spec.duration_min,
        deadline=spec.deadline,
        preferred_time=spec.preferred_time.value if spec.preferred_time else None,
        completed=False,
    )
    db.add(task)
    db.flush()
    return task


def list_tasks(db: Session, user_id: UUID, status: str = "active") -> List[Task]:
    query = db.query(Task).filter(Task.user_id == user_id)
    if status == "active":
        query = query.filter(Task.completed.is_(False))
    elif status == "completed":
        query = query.filter(Task.completed.is_(True))
    return query.order_by(desc(_PRIORITY_ORDER), nulls_last(asc(Task.deadline)), asc(Task.created_at)).all()


def get_owned_task(db: Session, task_id: UUID, user_id: UUID) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise TaskNotFound("Task not found")
    if task.user_id != user_id:
        raise TaskOwnershipError("Task does not belong to user")
    return task


def set_task_completed(db: Session, task: Task, completed: bool) -> bool:
    """Toggle completion; returns True when the stored value changed."""
    if bool(task.completed) == completed:
        return False
    task.completed = completed
    task.completed_at = datetime.now(timezone.utc) if completed else None
    db.add(task)
    return True


def load_schedulable_tasks(db: Session, user_id: UUID, day: date) -> List[Task]:
    """Incomplete tasks whose deadline is missing or not before ``day``."""
    day_start = datetime.combine(day, time.min)
    return (
        db.query(Task)
        .filter(
            Task.user_id == user_id,
            Task.completed.is_(False),
            or_(Task.deadline.is_(None), Task.deadline >= day_start),
        )
        .order_by(desc(_PRIORITY_ORDER), nulls_last(asc(Task.deadline)), asc(Task.created_at))
        .all()
    )


def task_to_spec(task: Task) -> TaskSpec:
    return coerce_task(
        id=task.id,
        title=task.title,
        category=task.category,
        priority=task.priority,
        duration_min=task.duration_min,
        deadline=task.deadline,
        preferred_time=task.preferred_time,
    )


TASK_FIELDS = ("title", "description", "category", "priority", "duration_min", "deadline", "preferred_time")
_CLEARABLE_FIELDS = frozenset({"description", "deadline", "preferred_time"})


def update_task(db: Session, task: Task, changes: Dict[str, Any]) -> List[str]:
    """
    Apply a partial edit and re-validate the whole task.

    Returns the names of the fields whose stored value changed. Raises
    InvalidTask before touching the row when the merged task is unusable.
    """
    merged = {field: getattr(task, field) for field in TASK_FIELDS}
    for key, value in changes.items():
        if key in TASK_FIELDS and (value is not None or key in _CLEARABLE_FIELDS):
            merged[key] = value
    spec = coerce_task(
        id=task.id,
        title=merged["title"],
        category=merged["category"],
        priority=merged["priority"],
        duration_min=merged["duration_min"],
        deadline=merged["deadline"],
        preferred_time=merged["preferred_time"],
    )
    values = {
        "title": spec.title,
        "description": merged["description"],
        "category": spec.category.value,
        "priority": spec.priority.value,
        "duration_min": spec.duration_min,
        "deadline": spec.deadline,
        "preferred_time": spec.preferred_time.value if spec.preferred_time else None,
    }
    changed = [field for field, value in values.items() if getattr(task, field) != value]
    for field in changed:
        setattr(task, field, values[field])
    db.add(task)
    db.flush()
    return changed


def owned_tasks(db: Session, user_id: UUID, task_ids: Sequence[UUID]) -> List[Task]:
    """Tasks among ``task_ids`` that belong to the user; others are skipped."""
    if not task_ids:
        return []
    return db.query(Task).filter(Task.user_id == user_id, Task.id.in_(list(task_ids))).all()


def delete_tasks(db: Session, tasks: Sequence[Task]) -> int:
    for task in tasks:
        db.delete(task)
    db.flush()
    return len(tasks)
