"""Scheduling profile API routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.schemas.profile import ProfileResponse, ProfileUpdateRequest
from app.db.deps import get_db
from app.db.models.user_profile import UserProfile
from app.observability.metrics import log_metric
from app.observability.tracing import trace
from app.services.profile_service import get_or_create_profile, update_profile
from app.services.scheduling.types import InvalidProfile

router = APIRouter()


def _serialize_profile(profile: UserProfile, request_id: str | None) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        wake_up_time=profile.wake_up_time,
        bed_time=profile.bed_time,
        energy_peak_time=profile.energy_peak_time,
        sleep_hours=profile.sleep_hours,
        updated_at=profile.updated_at,
        request_id=request_id or "",
    )


@router.get("/profile", response_model=ProfileResponse, tags=["profile"])
def get_profile_endpoint(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the profile"),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    """Return the user's scheduling profile, creating a default one on first access."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace("profile.get", metadata={"route": "/profile"}, user_id=str(user_id), request_id=request_id):
            profile = get_or_create_profile(db, user_id)
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(profile)
    return _serialize_profile(profile, request_id)


@router.put("/profile", response_model=ProfileResponse, tags=["profile"])
def update_profile_endpoint(
    payload: ProfileUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ProfileResponse:
    """Partially update wake/bed times, energy peak and sleep hours."""
    request_id = getattr(http_request.state, "request_id", None)
    changes = payload.model_dump(exclude_unset=True, exclude={"user_id"})

    try:
        with trace(
            "profile.update",
            metadata={"route": "/profile", "fields": sorted(changes)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            profile = update_profile(db, payload.user_id, changes)
            db.commit()
    except InvalidProfile as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except Exception:
        db.rollback()
        raise

    log_metric("profile.update.success", 1, metadata={"user_id": str(payload.user_id)})
    db.refresh(profile)
    return _serialize_profile(profile, request_id)
