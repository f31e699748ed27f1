# tests/fakes.py

from __future__ import annotations

import time
import uuid
from dataclasses import replace
from typing import Any

from cadence.core.errors import LLMError
from cadence.core.models import CustomCategory, Priority, Task, TaskCategory


class InMemorySettingsStore:
    """SettingsStore backed by a dict (no disk)."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class InMemoryCredentialStore:
    def __init__(self, secrets: dict[str, str] | None = None) -> None:
        self.secrets: dict[str, str] = dict(secrets or {})

    def get(self, key: str) -> str | None:
        return self.secrets.get(key)

    def set(self, key: str, value: str) -> None:
        self.secrets[key] = value

    def delete(self, key: str) -> None:
        self.secrets.pop(key, None)


class FakeProvider:
    """
    Deterministic CompletionProvider for unit tests.

    - Captures (prompt, system_prompt) calls for assertions
    - Returns `next_text`, or raises `error` when set
    """

    def __init__(
        self,
        provider_id: str = "fake",
        *,
        next_text: str = "ok",
        error: LLMError | None = None,
        available: bool = True,
    ) -> None:
        self._provider_id = provider_id
        self.next_text = next_text
        self.error = error
        self.available = available
        self.calls: list[tuple[str, str | None]] = []

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def is_available(self) -> bool:
        return self.available

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        self.calls.append((prompt, system_prompt))
        if self.error is not None:
            raise self.error
        return self.next_text


class InMemoryTaskRepo:
    """TaskRepo + CategoryDirectory in memory."""

    def __init__(self, tasks: list[Task] | None = None, categories: list[CustomCategory] | None = None) -> None:
        self.tasks: dict[str, Task] = {t.id: t for t in tasks or []}
        self.categories: dict[str, CustomCategory] = {c.id: c for c in categories or []}

    def add(self, title: str, **fields: Any) -> Task:
        task = Task(id=str(uuid.uuid4()), title=title, created_at=time.time(), **fields)
        self.tasks[task.id] = task
        return task

    def list_recent_completed(self, limit: int = 10) -> list[Task]:
        done = [t for t in self.tasks.values() if t.is_completed]
        done.sort(key=lambda t: t.completed_at or 0.0, reverse=True)
        return done[:limit]

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def update_task_fields(
        self,
        task_id: str,
        *,
        category: TaskCategory | None = None,
        custom_category_id: str | None = None,
        priority: Priority | None = None,
        estimated_minutes: int | None = None,
    ) -> None:
        t = self.tasks[task_id]
        self.tasks[task_id] = replace(
            t,
            category=t.category if category is None else category,
            custom_category_id=t.custom_category_id if custom_category_id is None else (custom_category_id or None),
            priority=t.priority if priority is None else priority,
            estimated_minutes=t.estimated_minutes if estimated_minutes is None else estimated_minutes,
        )

    def list_categories(self) -> list[CustomCategory]:
        return list(self.categories.values())

    def get_category(self, category_id: str) -> CustomCategory | None:
        return self.categories.get(category_id)

    def get_category_by_name(self, name: str) -> CustomCategory | None:
        for c in self.categories.values():
            if c.name == name:
                return c
        return None
