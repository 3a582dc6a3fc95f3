"""Daily schedule, optimization and mental load API routes."""
from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.schemas.schedule import (
    CategorySharePayload,
    MentalLoadResponse,
    OptimizeRequest,
    OptimizeResponse,
    ScheduleItemCreateRequest,
    ScheduleItemPayload,
    ScheduleItemResponse,
    ScheduleItemUpdateRequest,
    SchedulePayload,
    ScheduleResponse,
    ScheduleTaskPayload,
    ScheduleUpdateRequest,
    SuggestionPayload,
)
from app.db.deps import get_db
from app.db.models.schedule import Schedule, ScheduleItem
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services import schedule_service
from app.services.profile_service import ProfileNotFound
from app.services.scheduling.types import LoadLevel, SchedulingError
from app.services.task_service import TaskNotFound, TaskOwnershipError

router = APIRouter()

NO_SCHEDULE_MESSAGE = "No schedule for this date"


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, TaskOwnershipError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


# Service errors that map onto client-facing HTTP errors.
_CLIENT_ERRORS = (SchedulingError, ProfileNotFound, TaskNotFound, TaskOwnershipError, schedule_service.ScheduleItemNotFound)


def _serialize_item(item: ScheduleItem) -> ScheduleItemPayload:
    task_payload = None
    if item.task is not None:
        task_payload = ScheduleTaskPayload(
            id=item.task.id,
            title=item.task.title,
            category=item.task.category,
            priority=item.task.priority,
        )
    return ScheduleItemPayload(
        id=item.id,
        title=item.title,
        type=item.type,
        start_time=item.start_time,
        end_time=item.end_time,
        task_id=item.task_id,
        task=task_payload,
    )


def _serialize_schedule(schedule: Schedule) -> SchedulePayload:
    return SchedulePayload(
        id=schedule.id,
        user_id=schedule.user_id,
        date=schedule.date,
        optimized=bool(schedule.optimized),
        mental_load_score=schedule.mental_load_score,
        items=[_serialize_item(item) for item in schedule.items],
    )


@router.post("/schedules/optimize", response_model=OptimizeResponse, tags=["schedules"])
def optimize_schedule_endpoint(
    payload: OptimizeRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> OptimizeResponse:
    """Rebuild the day from pending tasks and report its mental load."""
    request_id = getattr(http_request.state, "request_id", None)
    start_time = datetime.now(timezone.utc)

    try:
        with trace(
            "schedule.optimize",
            metadata={"route": "/schedules/optimize", "date": payload.date.isoformat()},
            user_id=str(payload.user_id),
            request_id=request_id,
        ) as span:
            outcome = schedule_service.optimize_day(db, payload.user_id, payload.date, request_id=request_id)
            db.commit()
            if span:
                span.update(
                    metadata={
                        "mental_load": outcome.mental_load,
                        "unplaced_count": len(outcome.unplaced_task_ids),
                    }
                )
    except _CLIENT_ERRORS as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise

    latency_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
    metric_metadata = {"user_id": str(payload.user_id)}
    log_metric("schedule.optimize.mental_load", outcome.mental_load, metadata=metric_metadata)
    log_metric("schedule.optimize.unplaced", len(outcome.unplaced_task_ids), metadata=metric_metadata)
    log_metric("schedule.optimize.latency_ms", latency_ms, metadata=metric_metadata)

    db.refresh(outcome.schedule)
    overload = None
    if outcome.overload_warning is not None:
        overload = [SuggestionPayload(**suggestion.to_dict()) for suggestion in outcome.overload_warning]
    return OptimizeResponse(
        schedule=_serialize_schedule(outcome.schedule),
        mental_load=outcome.mental_load,
        overload_warning=overload,
        unplaced_task_ids=[UUID(task_id) for task_id in outcome.unplaced_task_ids],
        request_id=request_id or "",
    )


@router.get("/schedules/{day}", response_model=ScheduleResponse, tags=["schedules"])
def get_schedule_endpoint(
    day: date,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the schedule"),
    db: Session = Depends(get_db),
) -> ScheduleResponse:
    """Return the day's schedule, creating an empty one when none exists."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "schedule.get",
            metadata={"route": "/schedules/{day}", "date": day.isoformat()},
            user_id=str(user_id),
            request_id=request_id,
        ):
            schedule = schedule_service.get_or_create_schedule(db, user_id, day)
            schedule_service.refresh_mental_load(schedule)
            db.commit()
    except _CLIENT_ERRORS as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(schedule)
    return ScheduleResponse(schedule=_serialize_schedule(schedule), request_id=request_id or "")


@router.put("/schedules/{day}", response_model=ScheduleResponse, tags=["schedules"])
def update_schedule_endpoint(
    day: date,
    payload: ScheduleUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ScheduleResponse:
    """Replace every item of the day with a manually edited list."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "schedule.update",
            metadata={"route": "/schedules/{day}", "date": day.isoformat(), "items": len(payload.items)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            schedule = schedule_service.replace_items(
                db,
                payload.user_id,
                day,
                [item.model_dump() for item in payload.items],
            )
            db.commit()
    except _CLIENT_ERRORS as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(schedule)
    return ScheduleResponse(schedule=_serialize_schedule(schedule), request_id=request_id or "")


@router.post(
    "/schedules/{day}/items",
    response_model=ScheduleItemResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["schedules"],
)
def add_schedule_item_endpoint(
    day: date,
    payload: ScheduleItemCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ScheduleItemResponse:
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "schedule.item.add",
            metadata={"route": "/schedules/{day}/items", "date": day.isoformat(), "type": payload.type},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            item = schedule_service.add_item(db, payload.user_id, day, payload.model_dump(exclude={"user_id"}))
            db.commit()
    except _CLIENT_ERRORS as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(item)
    return ScheduleItemResponse(
        item=_serialize_item(item),
        mental_load_score=item.schedule.mental_load_score,
        request_id=request_id or "",
    )


@router.put("/schedules/{day}/items/{item_id}", response_model=ScheduleItemResponse, tags=["schedules"])
def update_schedule_item_endpoint(
    day: date,
    item_id: UUID,
    payload: ScheduleItemUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ScheduleItemResponse:
    request_id = getattr(http_request.state, "request_id", None)
    changes = payload.model_dump(exclude_unset=True, exclude={"user_id"})
    try:
        with trace(
            "schedule.item.update",
            metadata={"route": "/schedules/{day}/items/{item_id}", "item_id": str(item_id), "fields": sorted(changes)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            item = schedule_service.update_item(db, payload.user_id, item_id, changes)
            db.commit()
    except _CLIENT_ERRORS as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(item)
    return ScheduleItemResponse(
        item=_serialize_item(item),
        mental_load_score=item.schedule.mental_load_score,
        request_id=request_id or "",
    )


@router.delete(
    "/schedules/{day}/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["schedules"],
)
def delete_schedule_item_endpoint(
    day: date,
    item_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the schedule"),
    db: Session = Depends(get_db),
) -> None:
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "schedule.item.delete",
            metadata={"route": "/schedules/{day}/items/{item_id}", "item_id": str(item_id)},
            user_id=str(user_id),
            request_id=request_id,
        ):
            schedule_service.delete_item(db, user_id, item_id)
            db.commit()
    except _CLIENT_ERRORS as exc:
        db.rollback()
        raise _http_error(exc) from exc
    except Exception:
        db.rollback()
        raise


@router.get("/schedules/{day}/mental-load", response_model=MentalLoadResponse, tags=["schedules"])
def get_mental_load_endpoint(
    day: date,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the schedule"),
    db: Session = Depends(get_db),
) -> MentalLoadResponse:
    """Score the stored day and explain it."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "schedule.mental_load",
            metadata={"route": "/schedules/{day}/mental-load", "date": day.isoformat()},
            user_id=str(user_id),
            request_id=request_id,
        ):
            result = schedule_service.get_day_mental_load(db, user_id, day)
    except _CLIENT_ERRORS as exc:
        raise _http_error(exc) from exc

    if result is None:
        return MentalLoadResponse(
            date=day,
            score=0.0,
            level=LoadLevel.LIGHT.value,
            message=NO_SCHEDULE_MESSAGE,
            request_id=request_id or "",
        )

    score, analysis = result
    log_metric("schedule.mental_load.score", score, metadata={"user_id": str(user_id), "level": analysis.level.value})
    return MentalLoadResponse(
        date=day,
        score=score,
        level=analysis.level.value,
        message=analysis.message,
        suggestions=[SuggestionPayload(**suggestion.to_dict()) for suggestion in analysis.suggestions],
        distribution={
            bucket: CategorySharePayload(minutes=share.minutes, percentage=share.percentage)
            for bucket, share in analysis.distribution.items()
        },
        request_id=request_id or "",
    )
