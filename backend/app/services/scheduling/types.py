"""Domain types shared by the slot allocator and the load scorer."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Dict, List, Optional


class SchedulingError(ValueError):
    """Base class for scheduling input errors."""


class InvalidTask(SchedulingError):
    """Raised when a task cannot be scheduled as given."""


class InvalidProfile(SchedulingError):
    """Raised when a profile does not describe a usable waking day."""


class InvalidScheduleItem(SchedulingError):
    """Raised when a schedule item breaks its time or type invariants."""


class Category(str, Enum):
    WORK = "WORK"
    STUDY = "STUDY"
    LEISURE = "LEISURE"
    REST = "REST"
    SPORT = "SPORT"
    SOCIAL = "SOCIAL"
    HOUSEHOLD = "HOUSEHOLD"
    PERSONAL = "PERSONAL"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class EnergyLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class ItemType(str, Enum):
    TASK = "TASK"
    BREAK = "BREAK"
    BUFFER = "BUFFER"
    LUNCH = "LUNCH"
    SLEEP = "SLEEP"


class LoadLevel(str, Enum):
    LIGHT = "light"
    BALANCED = "balanced"
    BUSY = "busy"
    OVERLOADED = "overloaded"
    CRITICAL = "critical"


INTENSIVE_CATEGORIES = frozenset({Category.WORK, Category.STUDY})

# Item types that never add to the mental load sum.
RECOVERY_ITEM_TYPES = frozenset({ItemType.BREAK, ItemType.BUFFER, ItemType.SLEEP, ItemType.LUNCH})


@dataclass(frozen=True)
class TaskSpec:
    """Validated snapshot of a pending task."""

    id: str
    title: str
    category: Category
    priority: Priority
    duration_min: int
    deadline: Optional[datetime] = None
    preferred_time: Optional[TimeOfDay] = None

    @property
    def is_intensive(self) -> bool:
        return self.category in INTENSIVE_CATEGORIES


@dataclass(frozen=True)
class DayProfile:
    wake_up_time: time
    bed_time: time
    energy_peak_time: Optional[TimeOfDay] = None
    sleep_hours: float = 8.0


@dataclass
class TimeSlot:
    start: datetime
    end: datetime
    energy_level: EnergyLevel
    occupied: bool = False


@dataclass(frozen=True)
class TaskRef:
    """Summary of the task behind a TASK item, as read by the scorer."""

    title: str
    category: Category
    priority: Priority


@dataclass(frozen=True)
class PlacedItem:
    title: str
    type: ItemType
    start_time: datetime
    end_time: datetime
    task_id: Optional[str] = None
    task: Optional[TaskRef] = None

    def __post_init__(self) -> None:
        if self.start_time >= self.end_time:
            raise InvalidScheduleItem(f"Item '{self.title}' must start before it ends")
        if self.type is not ItemType.TASK and (self.task_id is not None or self.task is not None):
            raise InvalidScheduleItem(f"{self.type.value} items cannot reference a task")

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60


@dataclass
class AllocationResult:
    items: List[PlacedItem]
    unplaced: List[TaskSpec] = field(default_factory=list)

    @property
    def unplaced_task_ids(self) -> List[str]:
        return [task.id for task in self.unplaced]


@dataclass(frozen=True)
class Suggestion:
    type: str
    message: str
    impact: float
    tasks: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"type": self.type, "message": self.message, "impact": self.impact}
        if self.tasks is not None:
            payload["tasks"] = list(self.tasks)
        return payload


@dataclass(frozen=True)
class CategoryShare:
    minutes: float
    percentage: int


@dataclass
class MentalLoadAnalysis:
    level: LoadLevel
    message: str
    suggestions: List[Suggestion] = field(default_factory=list)
    distribution: Dict[str, CategoryShare] = field(default_factory=dict)
