# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from cadence.cli.bootstrap import create_initial_state
from cadence.config import Settings
from cadence.context.aggregator import ContextAggregator
from cadence.core.state import AppState
from cadence.learning.store import CorrectionLearningStore
from cadence.llm.catalog import ProviderConfig, config_key
from cadence.llm.router import CompletionRouter, build_adapter
from cadence.service import TaskAnalysisService

from .fakes import FakeProvider, InMemoryCredentialStore, InMemorySettingsStore, InMemoryTaskRepo

# Fixed "now" used by time-sensitive tests (2024-03-13, a Wednesday).
NOW = 1_710_331_200.0


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Real Settings object pointing every path into tmp_path.

    We build it directly instead of going through from_env() to keep tests
    independent of the developer's environment / .env file.
    """
    data_dir = tmp_path / "data"
    return Settings(
        app_name="cadence-test",
        log_level="DEBUG",
        data_dir=data_dir,
        settings_path=data_dir / "settings.json",
        credentials_path=data_dir / "credentials.json",
        tasks_db_path=data_dir / "tasks.sqlite3",
        default_provider="on_device",
        http_connect_timeout_seconds=1.0,
        http_read_timeout_seconds=2.0,
        correction_capacity=100,
        accuracy_capacity=100,
        impression_capacity=200,
        learning_expiry_days=90,
        recent_tasks_limit=10,
    )


@pytest.fixture()
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture()
def credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def repo() -> InMemoryTaskRepo:
    return InMemoryTaskRepo()


@pytest.fixture()
def fake_provider() -> FakeProvider:
    return FakeProvider("custom", next_text="{}")


def persist_config(store: InMemorySettingsStore, provider_id: str, *, endpoint: str = "http://x", model: str = "m") -> None:
    store.set(config_key(provider_id), ProviderConfig(provider_id, endpoint, model).to_json())


@pytest.fixture()
def router(settings_store, credentials, fake_provider) -> CompletionRouter:
    """
    Router whose "custom" adapter is the FakeProvider; everything else is built normally.

    "custom" is persisted and selected so analysis calls go to the fake.
    """
    persist_config(settings_store, "custom")

    def factory(config: ProviderConfig):
        if config.provider_id == fake_provider.provider_id:
            return fake_provider
        return build_adapter(config)

    r = CompletionRouter(settings_store, credentials, adapter_factory=factory)
    assert r.set_active("custom")
    return r


@pytest.fixture()
def learning(settings_store) -> CorrectionLearningStore:
    return CorrectionLearningStore(settings_store, clock=lambda: NOW)


@pytest.fixture()
def context(settings_store, learning, repo) -> ContextAggregator:
    return ContextAggregator(settings_store, learning, tasks=repo, categories=repo, clock=lambda: NOW)


@pytest.fixture()
def service(router, learning, context, repo) -> TaskAnalysisService:
    return TaskAnalysisService(router, learning, context, tasks=repo, categories=repo)


@pytest.fixture()
def state(settings: Settings) -> AppState:
    """
    AppState from the real composition root.

    NOTE: real JSON/SQLite stores under tmp_path and the on-device provider,
    so no network is involved.
    """
    return create_initial_state(settings=settings)
