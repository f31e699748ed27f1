# src/cadence/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires stores, router, learning store and context aggregator into the analysis service.
"""

from __future__ import annotations

import logging
from functools import partial

from ..config import Settings, get_settings
from ..context.aggregator import ContextAggregator
from ..core.state import AppState
from ..learning.store import CorrectionLearningStore
from ..llm.discovery import ModelDiscovery
from ..llm.open_responses import make_timeout
from ..llm.router import CompletionRouter, build_adapter
from ..service import TaskAnalysisService
from ..storage.credentials import FileCredentialStore
from ..storage.settings_store import JsonSettingsStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings.credentials_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    settings_store = JsonSettingsStore(settings.settings_path)
    credentials = FileCredentialStore(settings.credentials_path)
    task_store = TaskStore(settings.tasks_db_path)

    router = CompletionRouter(
        settings_store,
        credentials,
        default_provider_id=settings.default_provider,
        adapter_factory=partial(
            build_adapter,
            connect_timeout=settings.http_connect_timeout_seconds,
            read_timeout=settings.http_read_timeout_seconds,
        ),
    )
    learning = CorrectionLearningStore(
        settings_store,
        correction_capacity=settings.correction_capacity,
        accuracy_capacity=settings.accuracy_capacity,
        impression_capacity=settings.impression_capacity,
        expiry_days=settings.learning_expiry_days,
    )
    context = ContextAggregator(
        settings_store,
        learning,
        tasks=task_store,
        categories=task_store,
        recent_tasks_limit=settings.recent_tasks_limit,
    )
    service = TaskAnalysisService(
        router,
        learning,
        context,
        tasks=task_store,
        categories=task_store,
        discovery=ModelDiscovery(
            timeout=make_timeout(settings.http_connect_timeout_seconds, settings.http_read_timeout_seconds)
        ),
    )

    logger.info("State ready provider=%s data_dir=%s", router.active_provider_id, settings.data_dir)
    return AppState(
        settings=settings,
        service=service,
        task_store=task_store,
        settings_store=settings_store,
        credentials=credentials,
    )
