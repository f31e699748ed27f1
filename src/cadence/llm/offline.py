# src/cadence/llm/offline.py

from __future__ import annotations

import json
import re

from ..prompts import templates as T

_TASK_LINE_RE = re.compile(r"^Task:\s*(.+)$", re.MULTILINE)
_ORDER_ITEM_RE = re.compile(r"^(\d+)\.\s", re.MULTILINE)

_CATEGORY_WORDS: dict[str, tuple[str, ...]] = {
    "work": ("meeting", "report", "email", "presentation", "project", "client", "deadline", "review"),
    "personal": ("call", "mom", "dad", "birthday", "friend", "family", "gift"),
    "health": ("doctor", "dentist", "gym", "workout", "run", "yoga", "medicine", "appointment"),
    "finance": ("pay", "bill", "tax", "taxes", "bank", "budget", "invoice", "rent"),
    "shopping": ("buy", "groceries", "order", "shop", "store"),
    "errands": ("pick", "drop", "post", "return", "car", "pharmacy"),
    "learning": ("study", "read", "course", "learn", "homework", "practice", "lesson"),
    "home": ("clean", "laundry", "repair", "fix", "dishes", "garden", "vacuum"),
}

_URGENT_WORDS = ("urgent", "asap", "immediately", "overdue", "today")
_HIGH_WORDS = ("submit", "deadline", "tax", "taxes", "pay", "presentation", "interview")
_LOW_WORDS = ("someday", "maybe", "eventually", "browse")

_SHORT_WORDS = ("call", "email", "text", "reply", "pay", "book")
_LONG_WORDS = ("presentation", "report", "project", "clean", "study", "prepare", "volunteer")


def _words(text: str) -> list[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


def _task_title(prompt: str) -> str:
    m = _TASK_LINE_RE.search(prompt)
    return m.group(1).strip() if m else ""


def guess_category(title: str) -> str:
    words = set(_words(title))
    for key, vocab in _CATEGORY_WORDS.items():
        if words.intersection(vocab):
            return key
    return "uncategorized"


def guess_priority(title: str) -> str:
    words = set(_words(title))
    if words.intersection(_URGENT_WORDS):
        return "urgent"
    if words.intersection(_HIGH_WORDS):
        return "high"
    if words.intersection(_LOW_WORDS):
        return "low"
    return "medium"


def guess_minutes(title: str) -> int:
    words = set(_words(title))
    if words.intersection(_LONG_WORDS):
        return 90
    if words.intersection(_SHORT_WORDS):
        return 15
    return T.DEFAULT_ESTIMATE_MINUTES


class OfflineProvider:
    """
    Deterministic in-process engine. Always available and never touches the network.

    Behavior:
    - Duration / priority / analysis prompts -> schema-valid JSON from keyword heuristics
    - Ordering prompts -> identity order
    - Summary / briefing prompts -> neutral JSON text
    - Anything else -> a short plain-text notice
    """

    def __init__(self, provider_id: str = "on_device") -> None:
        self._provider_id = provider_id

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def is_available(self) -> bool:
        return True

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        text = prompt or ""
        title = _task_title(text)

        if text.startswith(T.DURATION_HEADER):
            minutes = guess_minutes(title)
            return json.dumps(
                {
                    "estimated_minutes": minutes,
                    "confidence": "low",
                    "reasoning": "Estimated on-device from similar tasks.",
                }
            )

        if text.startswith(T.PRIORITY_HEADER):
            return json.dumps(
                {
                    "priority": guess_priority(title),
                    "reasoning": "Suggested on-device from keywords in the title.",
                }
            )

        if text.startswith(T.ORDERING_HEADER):
            count = len(_ORDER_ITEM_RE.findall(text))
            return json.dumps(
                {
                    "order": list(range(1, count + 1)),
                    "reasoning": "Keeping your current order.",
                }
            )

        if text.startswith(T.ANALYSIS_HEADER):
            return json.dumps(
                {
                    "estimated_minutes": guess_minutes(title),
                    "suggested_priority": guess_priority(title),
                    "best_time": "anytime",
                    "category": guess_category(title),
                    "proposed_new_category": None,
                    "refined_title": None,
                    "suggested_description": None,
                    "subtasks": [],
                    "tips": "Start with the smallest next step.",
                }
            )

        if text.startswith(T.DAILY_SUMMARY_HEADER):
            return json.dumps(
                {
                    "summary": "Here is a quick look back at your day.",
                    "encouragement": "Tomorrow is a fresh start.",
                }
            )

        if text.startswith(T.MORNING_BRIEFING_HEADER):
            return json.dumps(
                {
                    "summary": "Good to see you.",
                    "todayFocus": "Pick one important task and start there.",
                    "motivation": "Small steps add up.",
                }
            )

        return "On-device mode: configure a provider with /configure for full responses."
