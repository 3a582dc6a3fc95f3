"""ORM models exposed for metadata discovery."""
from app.db.models.activity_log import ActivityLog
from app.db.models.schedule import Schedule, ScheduleItem
from app.db.models.task import Task
from app.db.models.user import User
from app.db.models.user_profile import UserProfile

__all__ = [
    "ActivityLog",
    "Schedule",
    "ScheduleItem",
    "Task",
    "User",
    "UserProfile",
]
