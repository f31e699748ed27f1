# src/cadence/service.py

"""
Task analysis facade: the async surface used by callers (CLI, UI layers).

Control flow for every analysis call:
router resolves the active adapter -> context aggregator builds the learned context ->
template renders the prompt -> adapter executes -> template parses/validates the reply.

Bad replies never raise (parsers default). Provider failures are published on
`last_error` and re-raised to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .context.aggregator import ContextAggregator
from .core.errors import LLMError
from .core.models import (
    DailySummary,
    DaySummaryStats,
    MorningBriefing,
    MorningBriefingStats,
    Priority,
    PrioritySuggestion,
    Task,
    TaskAnalysis,
    TaskCategory,
    TaskEstimate,
    TaskOrderSuggestion,
)
from .core.ports import CategoryDirectory, TaskRepo
from .learning.store import CorrectionField, CorrectionLearningStore
from .llm.catalog import ProviderConfig, ProviderDescriptor
from .llm.discovery import AvailableModel, ModelDiscovery
from .llm.router import CompletionRouter
from .prompts import templates as T

logger = logging.getLogger(__name__)


class TaskAnalysisService:
    def __init__(
            self,
            router: CompletionRouter,
            learning: CorrectionLearningStore,
            context: ContextAggregator,
            *,
            tasks: TaskRepo | None = None,
            categories: CategoryDirectory | None = None,
            discovery: ModelDiscovery | None = None,
    ) -> None:
        self._router = router
        self._learning = learning
        self._context = context
        self._tasks = tasks
        self._categories = categories
        self._discovery = discovery or ModelDiscovery()

        # Advisory UI state; concurrent calls may interleave transitions.
        self.is_processing = False
        self.last_error: LLMError | None = None

    # ---- plumbing ----

    @property
    def router(self) -> CompletionRouter:
        return self._router

    @property
    def learning(self) -> CorrectionLearningStore:
        return self._learning

    @property
    def active_provider_id(self) -> str:
        return self._router.active_provider_id

    async def _send(self, prompt: str, system_prompt: str | None = None) -> str:
        self.is_processing = True
        try:
            return await self._router.complete(prompt, system_prompt or T.TASK_ANALYSIS_SYSTEM_PROMPT)
        except LLMError as e:
            self.last_error = e
            raise
        finally:
            self.is_processing = False

    def _custom_categories(self):
        if self._categories is None:
            return []
        try:
            return self._categories.list_categories()
        except Exception:
            logger.exception("Failed to list custom categories")
            return []

    # ---- analysis ----

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        """Raw completion for unstructured callers."""
        return await self._send(prompt, system_prompt)

    async def estimate_duration(self, title: str, notes: str | None = None) -> TaskEstimate:
        learned = self._learning.get_duration_accuracy_context().strip()
        prompt = T.render_duration_prompt(title, notes, learned)
        return T.parse_duration_response(await self._send(prompt))

    async def suggest_priority(
            self,
            title: str,
            notes: str | None = None,
            due_at: float | None = None,
    ) -> PrioritySuggestion:
        learned = self._learning.get_corrections_context().strip()
        prompt = T.render_priority_prompt(title, notes, due_at, learned)
        return T.parse_priority_response(await self._send(prompt))

    async def suggest_order(self, tasks: Sequence[Task]) -> list[TaskOrderSuggestion]:
        if not tasks:
            return []
        reply = await self._send(T.render_ordering_prompt(tasks))
        order = T.parse_ordering_response(reply, len(tasks))
        return [TaskOrderSuggestion(task=tasks[idx], suggested_position=pos) for pos, idx in enumerate(order, start=1)]

    async def analyze(self, task: Task) -> TaskAnalysis:
        custom = self._custom_categories()
        learned = self._context.build_context_string(task)
        prompt = T.render_analysis_prompt(task, learned, [c.name for c in custom])
        return T.parse_analysis_response(await self._send(prompt), custom)

    async def summarize_day(self, stats: DaySummaryStats) -> DailySummary:
        learned = self._learning.get_corrections_context().strip()
        prompt = T.render_daily_summary_prompt(stats, learned)
        return T.parse_daily_summary_response(await self._send(prompt, T.DAILY_SUMMARY_SYSTEM_PROMPT))

    async def morning_briefing(self, stats: MorningBriefingStats) -> MorningBriefing:
        learned = self._learning.get_corrections_context().strip()
        prompt = T.render_morning_briefing_prompt(stats, learned)
        return T.parse_morning_briefing_response(await self._send(prompt, T.MORNING_BRIEFING_SYSTEM_PROMPT))

    # ---- providers ----

    def available_providers(self) -> list[ProviderDescriptor]:
        return self._router.available_providers()

    def set_active(self, provider_id: str) -> bool:
        return self._router.set_active(provider_id)

    def configure_provider(self, config: ProviderConfig) -> None:
        self._router.configure(config)

    def remove_provider(self, provider_id: str) -> None:
        self._router.remove_provider(provider_id)

    async def test_connection(self, config: ProviderConfig) -> bool:
        return await self._router.test_connection(config)

    async def discover_models(self, config: ProviderConfig) -> list[AvailableModel]:
        return await self._discovery.discover(config)

    # ---- learning ----

    def record_correction(
            self,
            field: CorrectionField | str,
            original_suggestion: str,
            user_choice: str,
            source_text: str,
            *,
            task_id: str | None = None,
    ) -> bool:
        """
        Record that the user overrode a suggestion.

        With `task_id` and a task store, the user's choice is also written back to the task.
        """
        recorded = self._learning.record_correction(field, original_suggestion, user_choice, source_text)
        if recorded and task_id and self._tasks is not None:
            self._apply_choice(task_id, CorrectionField(field), user_choice)
        return recorded

    def _apply_choice(self, task_id: str, field: CorrectionField, choice: str) -> None:
        if self._tasks is None or self._tasks.get_task(task_id) is None:
            return

        if field == CorrectionField.PRIORITY:
            self._tasks.update_task_fields(task_id, priority=Priority.from_text(choice, Priority.NONE))
        elif field == CorrectionField.CATEGORY:
            key = choice.strip().lower()
            if key in TaskCategory.builtin_keys():
                self._tasks.update_task_fields(task_id, category=TaskCategory(key), custom_category_id="")
            elif self._categories is not None:
                custom = self._categories.get_category_by_name(choice)
                if custom is not None:
                    self._tasks.update_task_fields(
                        task_id, category=TaskCategory.UNCATEGORIZED, custom_category_id=custom.id
                    )
        elif field == CorrectionField.DURATION:
            try:
                minutes = int(choice)
            except ValueError:
                return
            if minutes > 0:
                self._tasks.update_task_fields(task_id, estimated_minutes=minutes)

    def record_duration_accuracy(self, category: str, estimated_minutes: int, actual_minutes: int) -> bool:
        return self._learning.record_duration_accuracy(category, estimated_minutes, actual_minutes)

    def record_impression(self) -> None:
        self._learning.record_impression()

    def get_correction_rate(self, days: int = 7) -> float:
        return self._learning.get_correction_rate(days)

    def get_suggested_override(self, field: CorrectionField | str, title: str, ai_suggestion: str) -> str | None:
        return self._learning.get_suggested_override(field, title, ai_suggestion)

    def get_duration_accuracy_context(self) -> str:
        return self._learning.get_duration_accuracy_context()

    # ---- context ----

    def record_task_completion(self, task: Task) -> None:
        self._context.record_task_completion(task)

    def effective_category(self, task: Task) -> str:
        """Custom category name when the task has one, else the built-in display name."""
        return self._context.effective_category(task)

    def reset_patterns(self) -> None:
        self._context.reset_patterns()
        logger.info("User patterns reset")

    @property
    def context_quality(self) -> float:
        return self._context.context_quality

    @property
    def has_minimal_context(self) -> bool:
        return self._context.has_minimal_context
