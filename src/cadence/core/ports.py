# src/cadence/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps providers/storage/task collaborators swappable and makes testing easier.
"""

from typing import Any, Protocol

from .models import CustomCategory, Priority, Task, TaskCategory


class CompletionProvider(Protocol):
    """One backend kind: turns (prompt, system_prompt) into generated text."""

    @property
    def provider_id(self) -> str: ...

    @property
    def is_available(self) -> bool: ...

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str: ...


class CredentialStore(Protocol):
    """Opaque secret storage keyed by name. Missing secrets read back as None."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class SettingsStore(Protocol):
    """Persisted key-value settings holding JSON-compatible values."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


class TaskRepo(Protocol):
    # Context aggregation
    def list_recent_completed(self, limit: int = 10) -> list[Task]: ...

    # Correction bookkeeping
    def get_task(self, task_id: str) -> Task | None: ...
    def update_task_fields(
            self,
            task_id: str,
            *,
            category: TaskCategory | None = None,
            custom_category_id: str | None = None,
            priority: Priority | None = None,
            estimated_minutes: int | None = None,
    ) -> None: ...


class CategoryDirectory(Protocol):
    def list_categories(self) -> list[CustomCategory]: ...
    def get_category(self, category_id: str) -> CustomCategory | None: ...
    def get_category_by_name(self, name: str) -> CustomCategory | None: ...
