# src/cadence/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..config import Settings
from ..service import TaskAnalysisService
from ..storage.credentials import FileCredentialStore
from ..storage.settings_store import JsonSettingsStore
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Keep Settings on the state for easy access in commands.
    settings: Settings

    service: TaskAnalysisService
    task_store: TaskStore
    settings_store: JsonSettingsStore
    credentials: FileCredentialStore
