# src/cadence/core/models.py

"""
Domain types shared by the prompt engine, the learning store and the service facade.

Timestamps are UNIX seconds (float), matching the task store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Priority(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_text(cls, raw: object, default: "Priority") -> "Priority":
        if not isinstance(raw, str):
            return default
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return default


class TaskCategory(StrEnum):
    UNCATEGORIZED = "uncategorized"
    WORK = "work"
    PERSONAL = "personal"
    HEALTH = "health"
    FINANCE = "finance"
    SHOPPING = "shopping"
    ERRANDS = "errands"
    LEARNING = "learning"
    HOME = "home"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def builtin_keys(cls) -> list[str]:
        """Category keys offered to the model (the sentinel is not a real choice)."""
        return [c.value for c in cls if c is not cls.UNCATEGORIZED]


class BestTime(StrEnum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    ANYTIME = "anytime"


class Confidence(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class CustomCategory:
    id: str
    name: str
    color_hex: str = "#808080"
    icon_name: str = "tag.fill"


@dataclass(slots=True)
class Task:
    id: str
    title: str
    notes: str | None = None
    due_at: float | None = None
    priority: Priority = Priority.NONE
    category: TaskCategory = TaskCategory.UNCATEGORIZED
    custom_category_id: str | None = None
    estimated_minutes: int | None = None
    is_completed: bool = False
    completed_at: float | None = None
    created_at: float = 0.0


# ---- analysis results ----


@dataclass(frozen=True, slots=True)
class TaskEstimate:
    estimated_minutes: int
    confidence: Confidence
    reasoning: str


@dataclass(frozen=True, slots=True)
class PrioritySuggestion:
    priority: Priority
    reasoning: str


@dataclass(frozen=True, slots=True)
class TaskOrderSuggestion:
    task: Task
    suggested_position: int


@dataclass(frozen=True, slots=True)
class ProposedCategory:
    """A new category the model suggests creating."""

    DEFAULT_COLOR_HEX = "#808080"
    DEFAULT_ICON_NAME = "tag.fill"

    name: str
    color_hex: str = DEFAULT_COLOR_HEX
    icon_name: str = DEFAULT_ICON_NAME


@dataclass(frozen=True, slots=True)
class TaskAnalysis:
    estimated_minutes: int = 30
    suggested_priority: Priority = Priority.MEDIUM
    best_time: BestTime = BestTime.ANYTIME
    suggested_category: TaskCategory = TaskCategory.UNCATEGORIZED
    suggested_custom_category_id: str | None = None
    proposed_new_category: ProposedCategory | None = None
    subtasks: tuple[str, ...] = ()
    tips: str = ""
    refined_title: str | None = None
    suggested_description: str | None = None

    @classmethod
    def default(cls) -> "TaskAnalysis":
        return cls()


# ---- summary / briefing inputs and results ----


@dataclass(frozen=True, slots=True)
class DaySummaryStats:
    tasks_completed: int
    total_planned: int
    top_category: str | None = None
    time_worked: str = "0m"
    current_streak: int = 0
    task_list: str = ""
    is_first_day: bool = False
    time_of_day: str = "evening"


@dataclass(frozen=True, slots=True)
class DailySummary:
    summary: str | None = None
    encouragement: str | None = None


@dataclass(frozen=True, slots=True)
class MorningBriefingStats:
    yesterday_completed: int
    yesterday_planned: int
    today_task_count: int
    yesterday_top_category: str | None = None
    today_high_priority: int = 0
    today_overdue: int = 0
    today_time_estimate: str = "0m"
    weekly_tasks_completed: int = 0
    weekly_completion_rate: str = "0%"
    current_streak: int = 0
    today_task_list: str = ""
    schedule_context: str | None = None
    is_first_day: bool = False
    streak_just_broken: bool = False
    previous_streak: int = 0
    time_of_day: str = "morning"


@dataclass(frozen=True, slots=True)
class MorningBriefing:
    summary: str | None = None
    today_focus: str | None = None
    motivation: str | None = None


@dataclass(slots=True)
class RecentTaskSummary:
    title: str
    category: str
    priority: str
    duration: int | None = None
    completed_at: float | None = None
