"""Helpers for users and their scheduling profile."""
from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models.user import User
from app.db.models.user_profile import UserProfile
from app.services.scheduling.types import DayProfile, InvalidProfile
from app.services.scheduling.validation import coerce_profile, format_clock

PROFILE_FIELDS = ("wake_up_time", "bed_time", "energy_peak_time", "sleep_hours")


class ProfileNotFound(LookupError):
    pass


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create a new row safely."""
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
        return user
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise


def get_profile(db: Session, user_id: UUID) -> UserProfile:
    profile = db.get(UserProfile, user_id)
    if profile is None:
        raise ProfileNotFound("User profile not found")
    return profile


def get_or_create_profile(db: Session, user_id: UUID) -> UserProfile:
    """Return the user's profile, creating it from configured defaults."""
    profile = db.get(UserProfile, user_id)
    if profile is not None:
        return profile

    get_or_create_user(db, user_id)
    profile = UserProfile(
        user_id=user_id,
        wake_up_time=settings.default_wake_up_time,
        bed_time=settings.default_bed_time,
        energy_peak_time=settings.default_energy_peak_time,
        sleep_hours=settings.default_sleep_hours,
    )
    db.add(profile)
    db.flush()
    return profile


def update_profile(db: Session, user_id: UUID, changes: Dict[str, Any]) -> UserProfile:
    """
    Apply a partial update and re-validate the resulting day.

    Raises InvalidProfile when the merged values do not describe a usable day;
    nothing is written in that case.
    """
    profile = get_or_create_profile(db, user_id)
    merged = {field: getattr(profile, field) for field in PROFILE_FIELDS}
    merged.update({key: value for key, value in changes.items() if key in PROFILE_FIELDS})

    day = coerce_profile(**merged)
    if merged["sleep_hours"] is not None and not 0 < float(merged["sleep_hours"]) <= 24:
        raise InvalidProfile("sleep_hours must be between 0 and 24")

    profile.wake_up_time = format_clock(day.wake_up_time)
    profile.bed_time = format_clock(day.bed_time)
    profile.energy_peak_time = day.energy_peak_time.value if day.energy_peak_time else None
    profile.sleep_hours = day.sleep_hours
    db.add(profile)
    db.flush()
    return profile


def to_day_profile(profile: UserProfile) -> DayProfile:
    return coerce_profile(
        wake_up_time=profile.wake_up_time,
        bed_time=profile.bed_time,
        energy_peak_time=profile.energy_peak_time,
        sleep_hours=profile.sleep_hours,
    )
