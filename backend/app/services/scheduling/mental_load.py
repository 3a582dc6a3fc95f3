"""Mental load scoring and overload diagnostics for a day's schedule items."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence

from app.services.scheduling.types import (
    RECOVERY_ITEM_TYPES,
    Category,
    CategoryShare,
    ItemType,
    LoadLevel,
    MentalLoadAnalysis,
    PlacedItem,
    Priority,
    Suggestion,
)

CATEGORY_WEIGHTS: Mapping[Category, float] = MappingProxyType(
    {
        Category.WORK: 1.5,
        Category.STUDY: 1.4,
        Category.HOUSEHOLD: 1.0,
        Category.PERSONAL: 0.9,
        Category.SPORT: 0.8,
        Category.SOCIAL: 0.6,
        Category.LEISURE: 0.5,
        Category.REST: 0.2,
    }
)

PRIORITY_MULTIPLIERS: Mapping[Priority, float] = MappingProxyType(
    {
        Priority.URGENT: 1.3,
        Priority.HIGH: 1.2,
        Priority.MEDIUM: 1.0,
        Priority.LOW: 0.8,
    }
)

MAX_PRODUCTIVE_HOURS = 12.0
MAX_SCORE = 10.0
OVERLOAD_THRESHOLD = 7.0

LEVEL_MESSAGES: Mapping[LoadLevel, str] = MappingProxyType(
    {
        LoadLevel.LIGHT: "Very light day. You have room to add activities or enjoy your free time.",
        LoadLevel.BALANCED: "Balanced day. Good mix of activity and rest.",
        LoadLevel.BUSY: "Busy but manageable day. Make sure you take your breaks.",
        LoadLevel.OVERLOADED: "Careful, this day is overloaded. Consider postponing some tasks.",
        LoadLevel.CRITICAL: "Critical overload! This day really needs to be lightened.",
    }
)

# Checked in order; first keyword hit wins.
_TITLE_KEYWORDS = (
    (("repos", "rest"), Category.REST),
    (("sport", "exercise"), Category.SPORT),
    (("loisir", "leisure"), Category.LEISURE),
)

# Buckets used by the time distribution when an item has no task behind it.
OTHER_BUCKET = "OTHER"
_DISTRIBUTION_SKIPPED = frozenset({ItemType.BREAK, ItemType.BUFFER, ItemType.SLEEP})


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


@dataclass(frozen=True)
class LoadWeights:
    category_weights: Mapping[Category, float] = field(default_factory=lambda: CATEGORY_WEIGHTS)
    priority_multipliers: Mapping[Priority, float] = field(default_factory=lambda: PRIORITY_MULTIPLIERS)
    max_productive_hours: float = MAX_PRODUCTIVE_HOURS


def infer_category(item: PlacedItem) -> Category:
    if item.task is not None:
        return item.task.category
    title = (item.title or "").lower()
    for keywords, category in _TITLE_KEYWORDS:
        if any(keyword in title for keyword in keywords):
            return category
    return Category.WORK


def get_mental_load_level(score: float) -> LoadLevel:
    if score <= 3:
        return LoadLevel.LIGHT
    if score <= 5:
        return LoadLevel.BALANCED
    if score <= 7:
        return LoadLevel.BUSY
    if score <= 9:
        return LoadLevel.OVERLOADED
    return LoadLevel.CRITICAL


class MentalLoadScorer:
    """Scores schedule items against a fixed set of weights."""

    def __init__(self, weights: Optional[LoadWeights] = None) -> None:
        self.weights = weights or LoadWeights()

    def item_load(self, item: PlacedItem) -> float:
        if item.type in RECOVERY_ITEM_TYPES:
            return 0.0
        hours = item.duration_minutes / 60
        weight = self.weights.category_weights.get(infer_category(item), 1.0)
        multiplier = 1.0
        if item.task is not None:
            multiplier = self.weights.priority_multipliers.get(item.task.priority, 1.0)
        return hours * weight * multiplier

    def calculate_mental_load(self, items: Optional[Sequence[PlacedItem]]) -> float:
        if not items:
            return 0.0
        total = sum(self.item_load(item) for item in items)
        score = total / self.weights.max_productive_hours * MAX_SCORE
        return min(_round_half_up(score, 1), MAX_SCORE)

    def get_mental_load_level(self, score: float) -> LoadLevel:
        return get_mental_load_level(score)

    def calculate_time_distribution(self, items: Sequence[PlacedItem]) -> Dict[str, CategoryShare]:
        minutes_by_bucket: Dict[str, float] = {}
        total_minutes = 0.0
        for item in items:
            if item.type in _DISTRIBUTION_SKIPPED:
                continue
            if item.task is not None:
                bucket = item.task.category.value
            elif item.type is ItemType.LUNCH:
                bucket = Category.REST.value
            else:
                bucket = OTHER_BUCKET
            minutes = item.duration_minutes
            minutes_by_bucket[bucket] = minutes_by_bucket.get(bucket, 0.0) + minutes
            total_minutes += minutes

        return {
            bucket: CategoryShare(
                minutes=minutes,
                percentage=int(_round_half_up(minutes / total_minutes * 100)) if total_minutes > 0 else 0,
            )
            for bucket, minutes in minutes_by_bucket.items()
        }

    def generate_overload_suggestions(self, score: float, items: Sequence[PlacedItem]) -> List[Suggestion]:
        suggestions: List[Suggestion] = []
        task_items = [item for item in items if item.type is ItemType.TASK and item.task is not None]
        low = [item for item in task_items if item.task.priority is Priority.LOW]
        medium = [item for item in task_items if item.task.priority is Priority.MEDIUM]

        if low:
            suggestions.append(
                Suggestion(
                    type="postpone",
                    message=f"Postpone {len(low)} low-priority task(s) to tomorrow",
                    impact=-0.5 * len(low),
                    tasks=[item.task.title for item in low],
                )
            )

        if medium and score > 8:
            suggestions.append(
                Suggestion(type="shorten", message="Shorten medium-priority tasks by 20%", impact=-0.8)
            )

        break_count = sum(1 for item in items if item.type is ItemType.BREAK)
        if break_count < 3:
            suggestions.append(
                Suggestion(type="breaks", message="Add more breaks to recover", impact=-0.3)
            )

        if score > 9:
            suggestions.append(
                Suggestion(
                    type="reschedule",
                    message="Move at least one important task to tomorrow",
                    impact=-1.5,
                )
            )
        return suggestions

    def analyze_mental_load(self, score: float, items: Sequence[PlacedItem]) -> MentalLoadAnalysis:
        level = self.get_mental_load_level(score)
        suggestions: List[Suggestion] = []
        if score > OVERLOAD_THRESHOLD:
            suggestions = self.generate_overload_suggestions(score, items)
        return MentalLoadAnalysis(
            level=level,
            message=LEVEL_MESSAGES[level],
            suggestions=suggestions,
            distribution=self.calculate_time_distribution(items),
        )


default_scorer = MentalLoadScorer()


def calculate_mental_load(items: Optional[Sequence[PlacedItem]]) -> float:
    return default_scorer.calculate_mental_load(items)


def analyze_mental_load(score: float, items: Sequence[PlacedItem]) -> MentalLoadAnalysis:
    return default_scorer.analyze_mental_load(score, items)


def calculate_time_distribution(items: Sequence[PlacedItem]) -> Dict[str, CategoryShare]:
    return default_scorer.calculate_time_distribution(items)


def generate_overload_suggestions(score: float, items: Sequence[PlacedItem]) -> List[Suggestion]:
    return default_scorer.generate_overload_suggestions(score, items)
