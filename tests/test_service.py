# tests/test_service.py

from __future__ import annotations

import pytest

from cadence.context.aggregator import ContextAggregator
from cadence.context.patterns import PATTERNS_KEY
from cadence.core.errors import CredentialError
from cadence.core.models import (
    Confidence,
    CustomCategory,
    DaySummaryStats,
    MorningBriefingStats,
    Priority,
    Task,
    TaskAnalysis,
    TaskCategory,
)
from cadence.learning.store import CorrectionField
from cadence.prompts import templates as T


@pytest.mark.asyncio
async def test_estimate_duration_embeds_accuracy_context(service, fake_provider, learning) -> None:
    learning.record_duration_accuracy("work", 30, 60)
    learning.record_duration_accuracy("work", 30, 60)
    fake_provider.next_text = '{"estimated_minutes": 40, "confidence": "medium", "reasoning": "r"}'

    est = await service.estimate_duration("Write report", "numbers")

    assert est.estimated_minutes == 40
    assert est.confidence is Confidence.MEDIUM
    prompt, system = fake_provider.calls[-1]
    assert prompt.startswith(T.DURATION_HEADER)
    assert "Work tasks: user takes 2.0x longer than estimated" in prompt
    assert system == T.TASK_ANALYSIS_SYSTEM_PROMPT
    assert service.is_processing is False


@pytest.mark.asyncio
async def test_suggest_priority_embeds_corrections(service, fake_provider, learning) -> None:
    learning.record_correction("priority", "low", "urgent", "Pay rent")
    learning.record_correction("priority", "low", "urgent", "Pay rent")
    fake_provider.next_text = 'Answer: {"priority": "urgent", "reasoning": "Due soon."}'

    sug = await service.suggest_priority("Pay rent", due_at=1_710_331_200.0)

    assert sug.priority is Priority.URGENT
    prompt, _ = fake_provider.calls[-1]
    assert "User often changes low to urgent" in prompt


@pytest.mark.asyncio
async def test_suggest_order_maps_positions(service, fake_provider) -> None:
    tasks = [Task(id="a", title="A"), Task(id="b", title="B"), Task(id="c", title="C")]
    fake_provider.next_text = '{"order": [3, 1]}'

    ordered = await service.suggest_order(tasks)

    assert [(s.task.id, s.suggested_position) for s in ordered] == [("c", 1), ("a", 2), ("b", 3)]


@pytest.mark.asyncio
async def test_suggest_order_empty_input_skips_provider(service, fake_provider) -> None:
    assert await service.suggest_order([]) == []
    assert fake_provider.calls == []


@pytest.mark.asyncio
async def test_analyze_resolves_custom_category(service, fake_provider, repo) -> None:
    repo.categories["c1"] = CustomCategory(id="c1", name="Travel")
    fake_provider.next_text = '{"category": "Travel", "estimated_minutes": 120, "best_time": "morning"}'

    analysis = await service.analyze(Task(id="t", title="Book flights"))

    assert analysis.suggested_custom_category_id == "c1"
    assert analysis.estimated_minutes == 120
    prompt, _ = fake_provider.calls[-1]
    assert prompt.startswith(T.ANALYSIS_HEADER)
    assert "User's custom categories: Travel" in prompt
    assert "Available categories: " in prompt and ", Travel" in prompt


@pytest.mark.asyncio
async def test_garbage_reply_yields_defaults(service, fake_provider) -> None:
    fake_provider.next_text = "I'm not sure."
    analysis = await service.analyze(Task(id="t", title="Something"))
    assert analysis.estimated_minutes == 30
    assert analysis.suggested_priority is Priority.MEDIUM
    assert service.last_error is None


@pytest.mark.asyncio
async def test_deeply_nested_reply_yields_defaults(service, fake_provider) -> None:
    fake_provider.next_text = "Sure! " + '{"a":' * 100_000 + "1" + "}" * 100_000
    analysis = await service.analyze(Task(id="t", title="Something"))
    assert analysis == TaskAnalysis.default()
    est = await service.estimate_duration("Something")
    assert est.estimated_minutes == 30


@pytest.mark.asyncio
async def test_summary_and_briefing_use_their_system_prompts(service, fake_provider) -> None:
    fake_provider.next_text = '{"summary": "s", "encouragement": "e"}'
    summary = await service.summarize_day(DaySummaryStats(tasks_completed=1, total_planned=2))
    assert summary.encouragement == "e"
    assert fake_provider.calls[-1][1] == T.DAILY_SUMMARY_SYSTEM_PROMPT

    fake_provider.next_text = '{"summary": "s", "todayFocus": "f", "motivation": "m"}'
    briefing = await service.morning_briefing(
        MorningBriefingStats(yesterday_completed=1, yesterday_planned=1, today_task_count=2)
    )
    assert briefing.today_focus == "f"
    assert fake_provider.calls[-1][1] == T.MORNING_BRIEFING_SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_provider_error_published_and_reraised(service, fake_provider) -> None:
    fake_provider.error = CredentialError("nope")
    with pytest.raises(CredentialError):
        await service.estimate_duration("x")
    assert isinstance(service.last_error, CredentialError)
    assert service.is_processing is False

    # Sticky until the next failure.
    fake_provider.error = None
    fake_provider.next_text = "{}"
    await service.estimate_duration("x")
    assert isinstance(service.last_error, CredentialError)


def test_record_correction_writes_choice_back(service, repo) -> None:
    task = repo.add("Pay rent", priority=Priority.LOW)
    repo.categories["c1"] = CustomCategory(id="c1", name="Bills")

    assert service.record_correction(CorrectionField.PRIORITY, "low", "high", task.title, task_id=task.id)
    assert repo.get_task(task.id).priority is Priority.HIGH

    service.record_correction("category", "work", "Bills", task.title, task_id=task.id)
    assert repo.get_task(task.id).custom_category_id == "c1"

    service.record_correction("category", "Bills", "Finance", task.title, task_id=task.id)
    t = repo.get_task(task.id)
    assert t.category is TaskCategory.FINANCE
    assert t.custom_category_id is None

    service.record_correction("duration", "30", "45", task.title, task_id=task.id)
    assert repo.get_task(task.id).estimated_minutes == 45

    service.record_correction("duration", "45", "soon", task.title, task_id=task.id)
    assert repo.get_task(task.id).estimated_minutes == 45


def test_record_correction_same_value_is_noop(service, repo, learning) -> None:
    task = repo.add("Pay rent", priority=Priority.LOW)
    assert service.record_correction("priority", "high", "high", task.title, task_id=task.id) is False
    assert repo.get_task(task.id).priority is Priority.LOW
    assert learning.corrections == []


def test_correction_rate_and_override_pass_through(service) -> None:
    for _ in range(2):
        service.record_impression()
        service.record_correction("priority", "medium", "urgent", "File taxes")
    assert service.get_correction_rate() == 1.0
    assert service.get_suggested_override("priority", "Taxes due", "medium") == "urgent"


def test_record_task_completion_feeds_context_quality(service) -> None:
    assert service.context_quality == 0.0
    for i in range(5):
        service.record_task_completion(
            Task(id=str(i), title="t", category=TaskCategory.HEALTH, completed_at=1_710_331_200.0 + i * 3600)
        )
    assert service.context_quality > 0.0


def test_provider_management_delegates(service) -> None:
    assert service.active_provider_id == "custom"
    assert "custom" in [d.id for d in service.available_providers()]
    service.remove_provider("custom")
    assert service.active_provider_id == "on_device"
    assert service.set_active("custom") is False


def test_reset_patterns_clears_and_persists(service, settings_store, learning, repo) -> None:
    service.record_task_completion(
        Task(id="t", title="Run", category=TaskCategory.HEALTH, completed_at=1_710_331_200.0)
    )
    assert settings_store.get(PATTERNS_KEY)["category_usage"] == {"health": 1}

    service.reset_patterns()

    assert settings_store.get(PATTERNS_KEY)["category_usage"] == {}
    again = ContextAggregator(settings_store, learning, tasks=repo, categories=repo)
    assert again.user_patterns.entry_count == 0


def test_effective_category_prefers_custom_name(service, repo) -> None:
    repo.categories["c1"] = CustomCategory(id="c1", name="Travel")
    assert service.effective_category(Task(id="a", title="Fly", custom_category_id="c1")) == "Travel"
    assert service.effective_category(Task(id="b", title="Run", category=TaskCategory.HEALTH)) == "Health"
