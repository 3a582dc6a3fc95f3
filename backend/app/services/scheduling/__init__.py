"""Day scheduling core: slot allocation and mental load scoring."""

from app.services.scheduling.allocator import allocate_day, get_energy_level, optimize_schedule
from app.services.scheduling.mental_load import (
    LoadWeights,
    MentalLoadScorer,
    analyze_mental_load,
    calculate_mental_load,
    calculate_time_distribution,
    generate_overload_suggestions,
    get_mental_load_level,
)
from app.services.scheduling.types import (
    Category,
    InvalidProfile,
    InvalidScheduleItem,
    InvalidTask,
    ItemType,
    LoadLevel,
    PlacedItem,
    Priority,
    SchedulingError,
)

__all__ = [
    "Category",
    "InvalidProfile",
    "InvalidScheduleItem",
    "InvalidTask",
    "ItemType",
    "LoadLevel",
    "LoadWeights",
    "MentalLoadScorer",
    "PlacedItem",
    "Priority",
    "SchedulingError",
    "allocate_day",
    "analyze_mental_load",
    "calculate_mental_load",
    "calculate_time_distribution",
    "generate_overload_suggestions",
    "get_energy_level",
    "get_mental_load_level",
    "optimize_schedule",
]
