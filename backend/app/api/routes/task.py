"""Task API routes."""
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.schemas.task import (
    TaskBulkRequest,
    TaskBulkResponse,
    TaskCreateRequest,
    TaskEditRequest,
    TaskSummary,
    TaskUpdateRequest,
    TaskUpdateResponse,
)
from app.db.deps import get_db
from app.db.models.activity_log import ActivityLog
from app.db.models.task import Task
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services import schedule_service
from app.services.scheduling.types import InvalidTask
from app.services.task_service import (
    TaskNotFound,
    TaskOwnershipError,
    create_task,
    delete_tasks,
    get_owned_task,
    list_tasks,
    owned_tasks,
    set_task_completed,
    update_task,
)

router = APIRouter()


def _serialize_task(task: Task) -> TaskSummary:
    return TaskSummary(
        id=task.id,
        title=task.title,
        description=task.description,
        category=task.category,
        priority=task.priority,
        duration_min=task.duration_min,
        deadline=task.deadline,
        preferred_time=task.preferred_time,
        completed=bool(task.completed),
        completed_at=task.completed_at,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _owned_or_http_error(db: Session, task_id: UUID, user_id: UUID) -> Task:
    try:
        return get_owned_task(db, task_id, user_id)
    except TaskNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except TaskOwnershipError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.post("/tasks", response_model=TaskSummary, status_code=status.HTTP_201_CREATED, tags=["tasks"])
def create_task_endpoint(
    payload: TaskCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskSummary:
    """Add a pending task for the user."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "task.create",
            metadata={"route": "/tasks", "category": payload.category, "priority": payload.priority},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            task = create_task(db, **payload.model_dump())
            db.add(
                ActivityLog(
                    user_id=payload.user_id,
                    action_type="task_created",
                    action_payload={"task_id": str(task.id), "request_id": request_id},
                    reason="Task created",
                )
            )
            db.commit()
    except InvalidTask as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except Exception:
        db.rollback()
        raise

    log_metric("task.create.success", 1, metadata={"user_id": str(payload.user_id)})
    db.refresh(task)
    return _serialize_task(task)


@router.get("/tasks", response_model=List[TaskSummary], tags=["tasks"])
def list_tasks_endpoint(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the tasks"),
    status: str = Query("active", pattern="^(active|completed|all)$"),
    db: Session = Depends(get_db),
) -> List[TaskSummary]:
    """List tasks ordered by priority then deadline."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "task.list",
        metadata={"route": "/tasks", "status": status},
        user_id=str(user_id),
        request_id=request_id,
    ):
        tasks = list_tasks(db, user_id, status)

    log_metric("task.list.count", len(tasks), metadata={"user_id": str(user_id), "status": status})
    return [_serialize_task(task) for task in tasks]


@router.patch("/tasks/{task_id}", response_model=TaskUpdateResponse, tags=["tasks"])
def update_task_completion(
    task_id: UUID,
    payload: TaskUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskUpdateResponse:
    """Mark a task complete or incomplete."""
    task = _owned_or_http_error(db, task_id, payload.user_id)

    request_id = getattr(http_request.state, "request_id", None)
    changed = False
    try:
        with trace(
            "task.complete",
            metadata={"route": f"/tasks/{task_id}", "task_id": str(task_id), "completed": payload.completed},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            changed = set_task_completed(db, task, payload.completed)
            if changed:
                db.add(
                    ActivityLog(
                        user_id=payload.user_id,
                        action_type="task_completed" if payload.completed else "task_uncompleted",
                        action_payload={
                            "task_id": str(task.id),
                            "completed": payload.completed,
                            "request_id": request_id,
                        },
                        reason="Task completion toggled",
                    )
                )
            db.commit()
    except Exception:
        db.rollback()
        raise

    log_metric(
        "task.complete.changed",
        1 if changed else 0,
        metadata={"user_id": str(payload.user_id), "task_id": str(task_id)},
    )

    return TaskUpdateResponse(
        id=task.id,
        completed=bool(task.completed),
        completed_at=task.completed_at,
        request_id=request_id or "",
    )


@router.post("/tasks/bulk-complete", response_model=TaskBulkResponse, tags=["tasks"])
def bulk_complete_tasks_endpoint(
    payload: TaskBulkRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskBulkResponse:
    """Complete every listed task the user owns; unknown ids are skipped."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "task.bulk_complete",
            metadata={"route": "/tasks/bulk-complete", "requested": len(payload.task_ids)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            tasks = owned_tasks(db, payload.user_id, payload.task_ids)
            completed = [task for task in tasks if set_task_completed(db, task, True)]
            if completed:
                db.add(
                    ActivityLog(
                        user_id=payload.user_id,
                        action_type="task_bulk_completed",
                        action_payload={
                            "task_ids": [str(task.id) for task in completed],
                            "request_id": request_id,
                        },
                        reason="Tasks completed in bulk",
                    )
                )
            db.commit()
    except Exception:
        db.rollback()
        raise

    log_metric("task.bulk_complete.count", len(completed), metadata={"user_id": str(payload.user_id)})
    return TaskBulkResponse(count=len(completed), request_id=request_id or "")


@router.post("/tasks/bulk-delete", response_model=TaskBulkResponse, tags=["tasks"])
def bulk_delete_tasks_endpoint(
    payload: TaskBulkRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskBulkResponse:
    """Delete every listed task the user owns; scheduled blocks stay without a task."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "task.bulk_delete",
            metadata={"route": "/tasks/bulk-delete", "requested": len(payload.task_ids)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            tasks = owned_tasks(db, payload.user_id, payload.task_ids)
            task_ids = [task.id for task in tasks]
            schedules = schedule_service.detach_tasks(db, task_ids)
            count = delete_tasks(db, tasks)
            for schedule in schedules:
                schedule_service.refresh_mental_load(schedule)
            if count:
                db.add(
                    ActivityLog(
                        user_id=payload.user_id,
                        action_type="task_bulk_deleted",
                        action_payload={"task_ids": [str(task_id) for task_id in task_ids], "request_id": request_id},
                        reason="Tasks deleted in bulk",
                    )
                )
            db.commit()
    except Exception:
        db.rollback()
        raise

    log_metric("task.bulk_delete.count", count, metadata={"user_id": str(payload.user_id)})
    return TaskBulkResponse(count=count, request_id=request_id or "")


@router.get("/tasks/{task_id}", response_model=TaskSummary, tags=["tasks"])
def get_task_endpoint(
    task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the task"),
    db: Session = Depends(get_db),
) -> TaskSummary:
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "task.get",
        metadata={"route": "/tasks/{task_id}", "task_id": str(task_id)},
        user_id=str(user_id),
        request_id=request_id,
    ):
        task = _owned_or_http_error(db, task_id, user_id)
    return _serialize_task(task)


@router.put("/tasks/{task_id}", response_model=TaskSummary, tags=["tasks"])
def edit_task_endpoint(
    task_id: UUID,
    payload: TaskEditRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskSummary:
    """Edit task fields; days that place the task are rescored."""
    task = _owned_or_http_error(db, task_id, payload.user_id)
    request_id = getattr(http_request.state, "request_id", None)
    changes = payload.model_dump(exclude_unset=True, exclude={"user_id"})

    try:
        with trace(
            "task.update",
            metadata={"route": "/tasks/{task_id}", "task_id": str(task_id), "fields": sorted(changes)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            changed = update_task(db, task, changes)
            if changed:
                schedule_service.rescore_task_schedules(db, [task.id])
                db.add(
                    ActivityLog(
                        user_id=payload.user_id,
                        action_type="task_updated",
                        action_payload={"task_id": str(task.id), "fields": changed, "request_id": request_id},
                        reason="Task edited",
                    )
                )
            db.commit()
    except InvalidTask as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(task)
    return _serialize_task(task)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["tasks"])
def delete_task_endpoint(
    task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the task"),
    db: Session = Depends(get_db),
) -> None:
    """Delete a task; its scheduled blocks stay on their days without a task link."""
    task = _owned_or_http_error(db, task_id, user_id)
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "task.delete",
            metadata={"route": "/tasks/{task_id}", "task_id": str(task_id)},
            user_id=str(user_id),
            request_id=request_id,
        ):
            schedules = schedule_service.detach_tasks(db, [task.id])
            delete_tasks(db, [task])
            for schedule in schedules:
                schedule_service.refresh_mental_load(schedule)
            db.add(
                ActivityLog(
                    user_id=user_id,
                    action_type="task_deleted",
                    action_payload={"task_id": str(task_id), "request_id": request_id},
                    reason="Task deleted",
                )
            )
            db.commit()
    except Exception:
        db.rollback()
        raise
