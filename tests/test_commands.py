# tests/test_commands.py

from __future__ import annotations

import pytest

from cadence.cli.commands import CommandRegistry, registry
from cadence.core.errors import RateLimitedError
from cadence.llm.catalog import ACTIVE_PROVIDER_KEY, config_key, credential_key


@pytest.mark.asyncio
async def test_command_registry_routes_sync_and_async(state) -> None:
    reg = CommandRegistry()
    called = {"sync": 0, "async": 0}

    def h_sync(state, args):
        called["sync"] += 1
        return f"sync:{','.join(args)}"

    async def h_async(state, args):
        called["async"] += 1
        return "async"

    reg.register("a", h_sync, "a", aliases=["aa"])
    reg.register("b", h_async, "b")

    assert await reg.handle(state, "/a x y") == "sync:x,y"
    assert await reg.handle(state, "/AA") == "sync:"
    assert await reg.handle(state, "/b") == "async"
    assert called == {"sync": 2, "async": 1}
    assert "/a - a" in reg.build_help()
    assert "/aa" not in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_command_registry_reports_llm_errors(state) -> None:
    reg = CommandRegistry()

    async def failing(state, args):
        raise RateLimitedError("slow", provider_id="custom")

    reg.register("x", failing, "x")
    assert await reg.handle(state, "/x") == "[AI] Rate limited. Please try again later."


@pytest.mark.asyncio
async def test_status_and_providers(state) -> None:
    status = await registry.handle(state, "/status")
    assert "On-device (on_device)" in status
    assert "tentative" in status

    providers = await registry.handle(state, "/providers")
    assert "on_device" in providers and "active" in providers
    assert "not configured" in providers


@pytest.mark.asyncio
async def test_configure_use_and_remove(state) -> None:
    reply = await registry.handle(state, "/configure custom http://localhost:8080/v1/responses llama3 sk-1")
    assert "configured" in reply
    assert state.settings_store.get(config_key("custom"))["model"] == "llama3"
    assert state.credentials.get(credential_key("custom")) == "sk-1"

    assert await registry.handle(state, "/use custom") == "Active provider: custom."
    assert state.settings_store.get(ACTIVE_PROVIDER_KEY) == "custom"

    reply = await registry.handle(state, "/remove custom")
    assert "Active: on_device" in reply
    assert state.credentials.get(credential_key("custom")) is None


@pytest.mark.asyncio
async def test_configure_rejects_bad_input(state) -> None:
    assert "Usage" in await registry.handle(state, "/configure custom")
    assert "Cannot configure" in await registry.handle(state, "/configure on_device - m")
    reply = await registry.handle(state, "/configure custom not-a-url m")
    assert reply.startswith("[AI] ")
    assert state.settings_store.get(config_key("custom")) is None


@pytest.mark.asyncio
async def test_use_unavailable_provider(state) -> None:
    reply = await registry.handle(state, "/use openai")
    assert "not available" in reply
    assert state.service.active_provider_id == "on_device"


@pytest.mark.asyncio
async def test_on_device_analysis_commands(state) -> None:
    est = await registry.handle(state, "/estimate Prepare quarterly presentation")
    assert est.startswith("Estimate: 90 min")

    pri = await registry.handle(state, "/priority Pay rent asap")
    assert pri.startswith("Priority: Urgent")

    out = await registry.handle(state, "/analyze Book dentist appointment")
    assert "Category: Health" in out
    assert state.task_store.count_tasks() == 1

    stats = await registry.handle(state, "/stats")
    assert "Impressions: 3" in stats


@pytest.mark.asyncio
async def test_tasks_done_and_correct(state) -> None:
    task = state.task_store.add_task(title="Clean garage", estimated_minutes=60)
    prefix = task.id[:8]

    listing = await registry.handle(state, "/tasks")
    assert prefix in listing and "Clean garage" in listing

    order = await registry.handle(state, "/order")
    assert "1. Clean garage" in order

    assert await registry.handle(state, f"/correct {prefix} priority none high") == "Correction recorded."
    assert state.task_store.get_task(task.id).priority.value == "high"
    assert "same value" in await registry.handle(state, f"/correct {prefix} priority high high")
    assert "Unknown field" in await registry.handle(state, f"/correct {prefix} colour a b")

    done = await registry.handle(state, f"/done {prefix} 90")
    assert done.startswith("Completed: Clean garage")
    assert state.service.learning.accuracy_records[-1].actual_minutes == 90
    assert await registry.handle(state, "/tasks") == "No open tasks."
    assert "No open task" in await registry.handle(state, f"/done {prefix}")


@pytest.mark.asyncio
async def test_models_for_unconfigured_provider(state) -> None:
    assert await registry.handle(state, "/models openai") == "No models found for openai."


@pytest.mark.asyncio
async def test_done_rejects_bad_minutes_before_completing(state) -> None:
    task = state.task_store.add_task(title="Water plants", estimated_minutes=10)
    prefix = task.id[:8]

    assert await registry.handle(state, f"/done {prefix} abc") == "actual_minutes must be an integer."
    assert state.task_store.get_task(task.id).completed_at is None
    assert state.service.learning.accuracy_records == []


@pytest.mark.asyncio
async def test_done_records_accuracy_under_custom_category(state) -> None:
    travel = state.task_store.add_category("Travel")
    task = state.task_store.add_task(title="Book flight", custom_category_id=travel.id, estimated_minutes=30)

    await registry.handle(state, f"/done {task.id[:8]} 45")

    assert state.service.learning.accuracy_records[-1].category == "Travel"


@pytest.mark.asyncio
async def test_forget_clears_patterns(state) -> None:
    task = state.task_store.add_task(title="Stretch")
    await registry.handle(state, f"/done {task.id[:8]}")
    before = state.service.context_quality

    assert await registry.handle(state, "/forget") == "Learned completion patterns cleared."
    # Only the recent-task share of the score is left.
    assert state.service.context_quality < before
    assert state.service.context_quality == pytest.approx(0.03)
