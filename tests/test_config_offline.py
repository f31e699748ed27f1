# tests/test_config_offline.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cadence.config import Settings
from cadence.core.errors import ErrorKind, LLMError, TransportError, friendly_llm_error_message
from cadence.core.models import Task
from cadence.llm.offline import OfflineProvider, guess_category, guess_minutes, guess_priority
from cadence.prompts import templates as T


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CADENCE_DATA_DIR", "/tmp/cadence-x")
    monkeypatch.setenv("CADENCE_HTTP_CONNECT_TIMEOUT_SECONDS", "9")
    monkeypatch.setenv("CADENCE_HTTP_READ_TIMEOUT_SECONDS", "3")
    monkeypatch.setenv("CADENCE_CORRECTION_CAPACITY", "not-a-number")
    monkeypatch.delenv("CADENCE_SETTINGS_PATH", raising=False)

    s = Settings.from_env()
    assert s.data_dir == Path("/tmp/cadence-x")
    assert s.settings_path == Path("/tmp/cadence-x/settings.json")
    assert s.http_read_timeout_seconds == 9.0
    assert s.correction_capacity == 100


def test_error_kinds_and_messages() -> None:
    err = TransportError("x", provider_id="ollama")
    assert err.kind is ErrorKind.TRANSPORT_ERROR
    assert err.retryable
    assert "Network error" in friendly_llm_error_message(err)
    assert friendly_llm_error_message(LLMError("weird")) == "API error: weird"
    assert friendly_llm_error_message(RuntimeError("plain")) == "plain"


def test_keyword_heuristics() -> None:
    assert guess_category("Pay electricity bill") == "finance"
    assert guess_category("Something vague") == "uncategorized"
    assert guess_priority("Submit taxes") == "high"
    assert guess_priority("Maybe browse books") == "low"
    assert guess_minutes("Reply to email") == 15
    assert guess_minutes("Water plants") == T.DEFAULT_ESTIMATE_MINUTES


@pytest.mark.asyncio
async def test_offline_replies_parse_cleanly() -> None:
    p = OfflineProvider()
    assert p.is_available

    est = T.parse_duration_response(await p.complete(T.render_duration_prompt("Clean kitchen")))
    assert est.estimated_minutes == 90
    assert est.reasoning != T.UNPARSEABLE_REASONING

    tasks = [Task(id="a", title="A"), Task(id="b", title="B"), Task(id="c", title="C")]
    order = json.loads(await p.complete(T.render_ordering_prompt(tasks)))["order"]
    assert order == [1, 2, 3]

    analysis = T.parse_analysis_response(await p.complete(T.render_analysis_prompt(Task(id="t", title="Gym workout"))))
    assert analysis.suggested_category.value == "health"

    other = await p.complete("hello there")
    assert T.extract_json(other) is None
