"""Greedy slot allocator for a single day.

The waking day is cut into 30-minute slots, lunch is reserved, and tasks are
placed one by one into the best free window. Short recovery breaks follow long
intensive tasks and small gaps between items become transition buffers.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple

from app.services.scheduling.types import (
    AllocationResult,
    DayProfile,
    EnergyLevel,
    ItemType,
    PlacedItem,
    Priority,
    TaskRef,
    TaskSpec,
    TimeOfDay,
    TimeSlot,
)

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
BREAK_MINUTES = 15
BUFFER_MIN_GAP = timedelta(minutes=5)
BUFFER_MAX_GAP = timedelta(minutes=30)
LUNCH_START = time(12, 0)
LUNCH_END = time(13, 0)

LUNCH_TITLE = "Lunch break"
BREAK_TITLE = "Break"
BUFFER_TITLE = "Transition"

PRIORITY_RANK = {
    Priority.URGENT: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

# (start_hour, end_hour) ranges per peak preference; anything else is low.
_ENERGY_WINDOWS = {
    TimeOfDay.MORNING: ((6, 12), (12, 17)),
    TimeOfDay.AFTERNOON: ((12, 17), (6, 12)),
    TimeOfDay.EVENING: ((17, 22), (12, 17)),
    None: ((9, 12), (14, 17)),
}

_ENERGY_SCORE_INTENSIVE = {EnergyLevel.HIGH: 3, EnergyLevel.MEDIUM: 2, EnergyLevel.LOW: 1}
_ENERGY_SCORE_LIGHT = {EnergyLevel.LOW: 3, EnergyLevel.MEDIUM: 2, EnergyLevel.HIGH: 1}


def get_energy_level(hour: int, peak: Optional[TimeOfDay]) -> EnergyLevel:
    high, medium = _ENERGY_WINDOWS[peak]
    if high[0] <= hour < high[1]:
        return EnergyLevel.HIGH
    if medium[0] <= hour < medium[1]:
        return EnergyLevel.MEDIUM
    return EnergyLevel.LOW


def time_of_day_bucket(hour: int) -> TimeOfDay:
    if hour < 12:
        return TimeOfDay.MORNING
    if hour < 17:
        return TimeOfDay.AFTERNOON
    return TimeOfDay.EVENING


def build_slot_grid(profile: DayProfile, day: date) -> List[TimeSlot]:
    """Return consecutive slots starting at wake-up until bedtime is reached."""
    slots: List[TimeSlot] = []
    bed = profile.bed_time
    cursor = datetime.combine(day, profile.wake_up_time)
    step = timedelta(minutes=SLOT_MINUTES)

    while cursor.date() == day and (
        cursor.hour < bed.hour or (cursor.hour == bed.hour and cursor.minute < bed.minute)
    ):
        slots.append(
            TimeSlot(
                start=cursor,
                end=cursor + step,
                energy_level=get_energy_level(cursor.hour, profile.energy_peak_time),
            )
        )
        cursor += step
    return slots


def sort_tasks_for_placement(tasks: Iterable[TaskSpec]) -> List[TaskSpec]:
    """Priority first, then earliest deadline; undated tasks keep their order."""

    def key(task: TaskSpec) -> Tuple[int, int, datetime]:
        rank = PRIORITY_RANK.get(task.priority, PRIORITY_RANK[Priority.MEDIUM])
        if task.deadline is None:
            return (-rank, 1, datetime.min)
        return (-rank, 0, task.deadline)

    return sorted(tasks, key=key)


def _window_score(task: TaskSpec, slots: List[TimeSlot], index: int) -> float:
    first = slots[index]
    table = _ENERGY_SCORE_INTENSIVE if task.is_intensive else _ENERGY_SCORE_LIGHT
    score: float = table[first.energy_level]

    if task.priority in (Priority.URGENT, Priority.HIGH):
        score += (len(slots) - index) / len(slots) * 2

    if task.preferred_time is not None and task.preferred_time is time_of_day_bucket(first.start.hour):
        score += 2
    return score


def find_best_window(task: TaskSpec, slots: List[TimeSlot]) -> int:
    """Index of the first slot of the best free window, or -1 if none fits."""
    needed = math.ceil(task.duration_min / SLOT_MINUTES)
    best_index = -1
    best_score = -1.0

    for index in range(len(slots) - needed + 1):
        if any(slot.occupied for slot in slots[index:index + needed]):
            continue
        score = _window_score(task, slots, index)
        if score > best_score:
            best_score = score
            best_index = index
    return best_index


def _insert_buffers(items: List[PlacedItem]) -> List[PlacedItem]:
    ordered = sorted(items, key=lambda item: item.start_time)
    final: List[PlacedItem] = []
    for current, following in zip(ordered, ordered[1:] + [None]):
        final.append(current)
        if following is None:
            continue
        gap = following.start_time - current.end_time
        if BUFFER_MIN_GAP <= gap < BUFFER_MAX_GAP:
            final.append(
                PlacedItem(
                    title=BUFFER_TITLE,
                    type=ItemType.BUFFER,
                    start_time=current.end_time,
                    end_time=following.start_time,
                )
            )
    return final


def allocate_day(tasks: Iterable[TaskSpec], profile: DayProfile, day: date) -> AllocationResult:
    """Place tasks on ``day`` and report the ones that found no free window."""
    slots = build_slot_grid(profile, day)

    lunch_start = datetime.combine(day, LUNCH_START)
    lunch_end = datetime.combine(day, LUNCH_END)
    items: List[PlacedItem] = [
        PlacedItem(title=LUNCH_TITLE, type=ItemType.LUNCH, start_time=lunch_start, end_time=lunch_end)
    ]
    # Off-grid wake times leave slots that only partly overlap lunch; those are taken too.
    for slot in slots:
        if slot.start < lunch_end and slot.end > lunch_start:
            slot.occupied = True

    unplaced: List[TaskSpec] = []
    for task in sort_tasks_for_placement(tasks):
        index = find_best_window(task, slots)
        if index < 0:
            logger.info("No free window for task %s (%s min); leaving it out", task.id, task.duration_min)
            unplaced.append(task)
            continue

        needed = math.ceil(task.duration_min / SLOT_MINUTES)
        for slot in slots[index:index + needed]:
            slot.occupied = True

        start_time = slots[index].start
        end_time = start_time + timedelta(minutes=task.duration_min)
        items.append(
            PlacedItem(
                title=task.title,
                type=ItemType.TASK,
                start_time=start_time,
                end_time=end_time,
                task_id=task.id,
                task=TaskRef(title=task.title, category=task.category, priority=task.priority),
            )
        )

        if task.is_intensive and task.duration_min >= 60:
            after = index + needed
            if after < len(slots) and not slots[after].occupied:
                slots[after].occupied = True
                items.append(
                    PlacedItem(
                        title=BREAK_TITLE,
                        type=ItemType.BREAK,
                        start_time=end_time,
                        end_time=end_time + timedelta(minutes=BREAK_MINUTES),
                    )
                )

    return AllocationResult(items=_insert_buffers(items), unplaced=unplaced)


def optimize_schedule(tasks: Iterable[TaskSpec], profile: DayProfile, day: date) -> List[PlacedItem]:
    return allocate_day(tasks, profile, day).items
