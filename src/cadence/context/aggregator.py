# src/cadence/context/aggregator.py

"""
Context aggregation for personalized prompts.

Combines recent completed tasks, learned usage patterns, the correction narratives,
custom category names and the current time into one AIContext, and renders it as a
single text block for verbatim embedding in a prompt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..core.models import RecentTaskSummary, Task
from ..core.ports import CategoryDirectory, SettingsStore, TaskRepo
from ..learning.keywords import extract_keywords
from ..learning.store import CorrectionLearningStore
from .patterns import PATTERNS_KEY, UserPatterns

logger = logging.getLogger(__name__)

RECENT_TASKS_IN_PROMPT = 3
TOP_CATEGORIES_IN_PROMPT = 3
MINIMAL_CONTEXT_QUALITY = 0.2


@dataclass(frozen=True, slots=True)
class TimeContext:
    hour: int
    weekday: int  # ISO: Monday=1 .. Sunday=7
    is_weekend: bool
    time_of_day: str

    @classmethod
    def at(cls, ts: float) -> "TimeContext":
        when = datetime.fromtimestamp(ts)
        hour = when.hour
        if 5 <= hour < 12:
            tod = "morning"
        elif 12 <= hour < 17:
            tod = "afternoon"
        elif 17 <= hour < 21:
            tod = "evening"
        else:
            tod = "night"
        weekday = when.isoweekday()
        return cls(hour=hour, weekday=weekday, is_weekend=weekday >= 6, time_of_day=tod)


@dataclass(frozen=True, slots=True)
class TaskSpecificContext:
    title: str
    notes: str | None
    due_at: float | None
    current_priority: str


@dataclass(slots=True)
class AIContext:
    recent_tasks: list[RecentTaskSummary]
    user_patterns: UserPatterns
    corrections_summary: str
    custom_categories: list[str]
    time_context: TimeContext
    task_context: TaskSpecificContext | None = None

    def to_prompt_string(self) -> str:
        out = f"Current time: {self.time_context.time_of_day}"
        if self.time_context.is_weekend:
            out += " (weekend)"
        out += "\n"

        top = self.user_patterns.top_categories(TOP_CATEGORIES_IN_PROMPT)
        if top:
            out += f"Most used categories: {', '.join(top)}\n"

        if self.task_context is not None:
            for kw in extract_keywords(self.task_context.title):
                preferred = self.user_patterns.preferred_time(kw)
                if preferred is not None:
                    out += f"Tasks with '{kw}' usually done in: {preferred}\n"
                    break

        if self.recent_tasks:
            out += "\nRecent tasks for consistency:\n"
            for t in self.recent_tasks[:RECENT_TASKS_IN_PROMPT]:
                out += f'- "{t.title}" -> {t.category}'
                if t.duration is not None:
                    out += f", {t.duration} min"
                out += "\n"

        if self.corrections_summary:
            out += f"\n{self.corrections_summary}"

        if self.custom_categories:
            out += f"\nUser's custom categories: {', '.join(self.custom_categories)}\n"

        return out.strip()


class ContextAggregator:
    def __init__(
            self,
            settings: SettingsStore,
            learning: CorrectionLearningStore,
            *,
            tasks: TaskRepo | None = None,
            categories: CategoryDirectory | None = None,
            recent_tasks_limit: int = 10,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._learning = learning
        self._tasks = tasks
        self._categories = categories
        self._recent_limit = recent_tasks_limit
        self._clock = clock
        self.user_patterns = UserPatterns.from_json(settings.get(PATTERNS_KEY))

    # ---- patterns ----

    def reset_patterns(self) -> None:
        self.user_patterns = UserPatterns()
        self._save_patterns()

    def _save_patterns(self) -> None:
        self._settings.set(PATTERNS_KEY, self.user_patterns.to_json())

    def effective_category(self, task: Task) -> str:
        if task.custom_category_id and self._categories is not None:
            custom = self._categories.get_category(task.custom_category_id)
            if custom is not None:
                return custom.name
        return task.category.display_name

    def record_task_completion(self, task: Task, *, now: float | None = None) -> None:
        completed_at = task.completed_at or (self._clock() if now is None else now)
        self.user_patterns.record_completion(
            category=self.effective_category(task),
            priority=task.priority.display_name,
            duration=task.estimated_minutes,
            completed_at=completed_at,
        )
        self._save_patterns()

    # ---- collaborators ----

    def fetch_recent_tasks(self) -> list[RecentTaskSummary]:
        if self._tasks is None:
            return []
        try:
            tasks = self._tasks.list_recent_completed(self._recent_limit)
        except Exception:
            logger.exception("Failed to fetch recent tasks")
            return []

        out: list[RecentTaskSummary] = []
        for t in tasks[: self._recent_limit]:
            if not t.title:
                continue
            minutes = t.estimated_minutes if t.estimated_minutes and t.estimated_minutes > 0 else None
            out.append(
                RecentTaskSummary(
                    title=t.title,
                    category=self.effective_category(t),
                    priority=t.priority.display_name,
                    duration=minutes,
                    completed_at=t.completed_at,
                )
            )
        return out

    def fetch_custom_categories(self) -> list[str]:
        if self._categories is None:
            return []
        try:
            return [c.name for c in self._categories.list_categories()]
        except Exception:
            logger.exception("Failed to fetch custom categories")
            return []

    # ---- context ----

    def build_context(self, task: Task | None = None, *, now: float | None = None) -> AIContext:
        ts = self._clock() if now is None else now
        summary = self._learning.get_corrections_context(now=ts) + self._learning.get_duration_accuracy_context(now=ts)

        task_context = None
        if task is not None:
            task_context = TaskSpecificContext(
                title=task.title,
                notes=task.notes,
                due_at=task.due_at,
                current_priority=task.priority.display_name,
            )

        return AIContext(
            recent_tasks=self.fetch_recent_tasks(),
            user_patterns=self.user_patterns,
            corrections_summary=summary,
            custom_categories=self.fetch_custom_categories(),
            time_context=TimeContext.at(ts),
            task_context=task_context,
        )

    def build_context_string(self, task: Task | None = None, *, now: float | None = None) -> str:
        return self.build_context(task, now=now).to_prompt_string()

    # ---- quality ----

    @property
    def context_quality(self) -> float:
        recent = len(self.fetch_recent_tasks())
        score = min(recent / 10.0, 1.0) * 0.3
        score += min(self.user_patterns.entry_count / 20.0, 1.0) * 0.4
        score += min(len(self._learning.corrections) / 10.0, 1.0) * 0.3
        return score

    @property
    def has_minimal_context(self) -> bool:
        return self.context_quality >= MINIMAL_CONTEXT_QUALITY
