# src/cadence/learning/store.py

from __future__ import annotations

import logging
import time
import uuid
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import SettingsStore
from .buffer import BoundedBuffer
from .keywords import extract_keywords

logger = logging.getLogger(__name__)

CORRECTIONS_KEY = "ai_corrections"
DURATION_ACCURACY_KEY = "duration_accuracy"
IMPRESSIONS_KEY = "ai_impressions"

SECONDS_PER_DAY = 86400.0

MIN_PATTERN_COUNT = 2
MAX_PAIR_PATTERNS = 3
MAX_PATTERNS_PER_FIELD = 5
MAX_ACCURACY_LINES = 5
ACCEPTANCE_SCALE = 50.0

ACCURATE_LOW = 0.9
ACCURATE_HIGH = 1.1

CORRECTIONS_HEADER = "User preferences learned from past corrections:\n"


class CorrectionField(StrEnum):
    CATEGORY = "category"
    PRIORITY = "priority"
    DURATION = "duration"
    TITLE = "title"


@dataclass(frozen=True, slots=True)
class CorrectionRecord:
    id: str
    field: CorrectionField
    original_suggestion: str
    user_choice: str
    keywords: tuple[str, ...]
    timestamp: float

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field.value,
            "original_suggestion": self.original_suggestion,
            "user_choice": self.user_choice,
            "keywords": list(self.keywords),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_json(cls, data: Any) -> "CorrectionRecord | None":
        try:
            return cls(
                id=str(data["id"]),
                field=CorrectionField(data["field"]),
                original_suggestion=str(data["original_suggestion"]),
                user_choice=str(data["user_choice"]),
                keywords=tuple(str(k) for k in data.get("keywords") or ()),
                timestamp=float(data["timestamp"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            return None


@dataclass(frozen=True, slots=True)
class DurationAccuracyRecord:
    id: str
    category: str
    estimated_minutes: int
    actual_minutes: int
    ratio: float
    timestamp: float

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "estimated_minutes": self.estimated_minutes,
            "actual_minutes": self.actual_minutes,
            "ratio": self.ratio,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_json(cls, data: Any) -> "DurationAccuracyRecord | None":
        try:
            estimated = int(data["estimated_minutes"])
            actual = int(data["actual_minutes"])
            if estimated <= 0 or actual <= 0:
                return None
            return cls(
                id=str(data["id"]),
                category=str(data["category"]),
                estimated_minutes=estimated,
                actual_minutes=actual,
                ratio=float(data.get("ratio", actual / estimated)),
                timestamp=float(data["timestamp"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            return None


def _load_list(settings: SettingsStore, key: str) -> list[Any]:
    raw = settings.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("Ignoring persisted %s: expected a list", key)
        return []
    return raw


def _modal(values: Iterable[str]) -> tuple[str, int] | None:
    # Ties resolve to the value seen first.
    counts = Counter(values)
    if not counts:
        return None
    return counts.most_common(1)[0]


def _accuracy_line(category: str, avg_ratio: float) -> str:
    label = category.capitalize()
    if avg_ratio > ACCURATE_HIGH:
        return f"{label} tasks: user takes {avg_ratio:.1f}x longer than estimated"
    if avg_ratio < ACCURATE_LOW:
        return f"{label} tasks: user takes {avg_ratio:.1f}x of estimated time"
    return f"{label} tasks: estimates are accurate"


class CorrectionLearningStore:
    """
    Bounded, time-decayed memory of how the user overrides AI suggestions.

    Three buffers (corrections, duration accuracy, impressions) share one shape:
    append, trim to the newest N, evict records older than the expiry window.
    Each buffer is persisted as a JSON list in the settings store after every change.

    Single-writer: callers serialize mutation.
    """

    def __init__(
            self,
            settings: SettingsStore,
            *,
            correction_capacity: int = 100,
            accuracy_capacity: int = 100,
            impression_capacity: int = 200,
            expiry_days: int = 90,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._expiry_seconds = float(expiry_days) * SECONDS_PER_DAY

        corrections = [CorrectionRecord.from_json(d) for d in _load_list(settings, CORRECTIONS_KEY)]
        accuracy = [DurationAccuracyRecord.from_json(d) for d in _load_list(settings, DURATION_ACCURACY_KEY)]
        impressions: list[float] = []
        for ts in _load_list(settings, IMPRESSIONS_KEY):
            if isinstance(ts, (int, float)) and not isinstance(ts, bool):
                impressions.append(float(ts))

        self._corrections: BoundedBuffer[CorrectionRecord] = BoundedBuffer(
            correction_capacity, lambda r: r.timestamp, (c for c in corrections if c is not None)
        )
        self._accuracy: BoundedBuffer[DurationAccuracyRecord] = BoundedBuffer(
            accuracy_capacity, lambda r: r.timestamp, (a for a in accuracy if a is not None)
        )
        self._impressions: BoundedBuffer[float] = BoundedBuffer(impression_capacity, lambda ts: ts, impressions)

        self.cleanup()
        logger.info(
            "Learning store ready corrections=%d accuracy=%d impressions=%d",
            len(self._corrections),
            len(self._accuracy),
            len(self._impressions),
        )

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else float(now)

    # ---- persistence ----

    def _save_corrections(self) -> None:
        self._settings.set(CORRECTIONS_KEY, [c.to_json() for c in self._corrections])

    def _save_accuracy(self) -> None:
        self._settings.set(DURATION_ACCURACY_KEY, [a.to_json() for a in self._accuracy])

    def _save_impressions(self) -> None:
        self._settings.set(IMPRESSIONS_KEY, list(self._impressions))

    # ---- corrections ----

    @property
    def corrections(self) -> list[CorrectionRecord]:
        return self._corrections.items()

    def record_correction(
            self,
            field: CorrectionField | str,
            original_suggestion: str,
            user_choice: str,
            source_text: str,
            *,
            now: float | None = None,
    ) -> bool:
        """Append a correction. Identical original and choice is a no-op (returns False)."""
        if original_suggestion == user_choice:
            return False

        record = CorrectionRecord(
            id=str(uuid.uuid4()),
            field=CorrectionField(field),
            original_suggestion=original_suggestion,
            user_choice=user_choice,
            keywords=tuple(extract_keywords(source_text)),
            timestamp=self._now(now),
        )
        self._corrections.append(record)
        self._save_corrections()
        logger.debug("Recorded correction field=%s total=%d", record.field, len(self._corrections))
        return True

    def get_corrections(self, field: CorrectionField | str) -> list[CorrectionRecord]:
        f = CorrectionField(field)
        return [c for c in self._corrections if c.field == f]

    def _live_corrections(self, now: float) -> list[CorrectionRecord]:
        cutoff = now - self._expiry_seconds
        return [c for c in self._corrections if c.timestamp > cutoff]

    @staticmethod
    def _field_patterns(records: list[CorrectionRecord]) -> list[str]:
        patterns: list[str] = []

        pairs = Counter((c.original_suggestion, c.user_choice) for c in records)
        ranked = sorted(pairs.items(), key=lambda kv: kv[1], reverse=True)[:MAX_PAIR_PATTERNS]
        for (original, choice), count in ranked:
            if count >= MIN_PATTERN_COUNT:
                patterns.append(f"User often changes {original} to {choice} (seen {count} times)")

        by_keyword: dict[str, list[str]] = {}
        for c in records:
            for kw in c.keywords:
                by_keyword.setdefault(kw, []).append(c.user_choice)

        for kw, choices in by_keyword.items():
            top = _modal(choices)
            if top is not None and top[1] >= MIN_PATTERN_COUNT:
                patterns.append(f"For tasks with '{kw}', user prefers {top[0]}")

        return patterns[:MAX_PATTERNS_PER_FIELD]

    def get_corrections_context(self, *, now: float | None = None) -> str:
        """
        Narrative of mined correction patterns, grouped by field.

        Empty when nothing repeats often enough to be a pattern.
        """
        live = self._live_corrections(self._now(now))
        if not live:
            return ""

        sections: list[str] = []
        for field in CorrectionField:
            patterns = self._field_patterns([c for c in live if c.field == field])
            if not patterns:
                continue
            body = "".join(f"  - {p}\n" for p in patterns)
            sections.append(f"\n{field.value.capitalize()}:\n{body}")

        if not sections:
            return ""
        return CORRECTIONS_HEADER + "".join(sections)

    def get_suggested_override(
            self,
            field: CorrectionField | str,
            title: str,
            ai_suggestion: str,
            *,
            now: float | None = None,
    ) -> str | None:
        """The user's habitual replacement for `ai_suggestion` on similar titles, if seen at least twice."""
        f = CorrectionField(field)
        keywords = set(extract_keywords(title))
        if not keywords:
            return None

        choices = [
            c.user_choice
            for c in self._live_corrections(self._now(now))
            if c.field == f and c.original_suggestion == ai_suggestion and keywords.intersection(c.keywords)
        ]
        top = _modal(choices)
        if top is not None and top[1] >= MIN_PATTERN_COUNT:
            return top[0]
        return None

    def get_acceptance_rate(self, field: CorrectionField | str) -> float:
        n = len(self.get_corrections(field))
        if n == 0:
            return 1.0
        return max(0.0, 1.0 - n / ACCEPTANCE_SCALE)

    # ---- duration accuracy ----

    @property
    def accuracy_records(self) -> list[DurationAccuracyRecord]:
        return self._accuracy.items()

    def record_duration_accuracy(
            self,
            category: str,
            estimated_minutes: int,
            actual_minutes: int,
            *,
            now: float | None = None,
    ) -> bool:
        if estimated_minutes <= 0 or actual_minutes <= 0:
            return False

        record = DurationAccuracyRecord(
            id=str(uuid.uuid4()),
            category=category.lower(),
            estimated_minutes=int(estimated_minutes),
            actual_minutes=int(actual_minutes),
            ratio=actual_minutes / estimated_minutes,
            timestamp=self._now(now),
        )
        self._accuracy.append(record)
        self._save_accuracy()
        return True

    def get_duration_accuracy_context(self, *, now: float | None = None) -> str:
        cutoff = self._now(now) - self._expiry_seconds
        grouped: dict[str, list[float]] = {}
        for r in self._accuracy:
            if r.timestamp > cutoff:
                grouped.setdefault(r.category, []).append(r.ratio)

        lines: list[str] = []
        for category, ratios in grouped.items():
            if len(ratios) < MIN_PATTERN_COUNT:
                continue
            lines.append(_accuracy_line(category, sum(ratios) / len(ratios)))

        if not lines:
            return ""
        return "\nDuration accuracy patterns:\n" + "".join(f"  - {line}\n" for line in lines[:MAX_ACCURACY_LINES])

    # ---- impressions ----

    def record_impression(self, *, now: float | None = None) -> None:
        self._impressions.append(self._now(now))
        self._save_impressions()

    def _window_cutoff(self, days: int, now: float | None) -> float:
        return self._now(now) - float(days) * SECONDS_PER_DAY

    def get_impression_count(self, days: int = 7, *, now: float | None = None) -> int:
        return self._impressions.count_since(self._window_cutoff(days, now))

    def get_correction_count(self, days: int = 7, *, now: float | None = None) -> int:
        return self._corrections.count_since(self._window_cutoff(days, now))

    def get_correction_rate(self, days: int = 7, *, now: float | None = None) -> float:
        """Corrections per impression in the window, capped at 1.0. Zero impressions -> 0.0."""
        impressions = self.get_impression_count(days, now=now)
        if impressions == 0:
            return 0.0
        return min(1.0, self.get_correction_count(days, now=now) / impressions)

    # ---- maintenance ----

    def cleanup(self, *, now: float | None = None) -> None:
        """Evict expired records from every buffer. Idempotent; persists only what changed."""
        ts = self._now(now)
        if self._corrections.evict_older_than(self._expiry_seconds, now=ts):
            self._save_corrections()
        if self._accuracy.evict_older_than(self._expiry_seconds, now=ts):
            self._save_accuracy()
        if self._impressions.evict_older_than(self._expiry_seconds, now=ts):
            self._save_impressions()

    def clear_all(self) -> None:
        self._corrections.clear()
        self._accuracy.clear()
        self._impressions.clear()
        self._settings.delete(CORRECTIONS_KEY)
        self._settings.delete(DURATION_ACCURACY_KEY)
        self._settings.delete(IMPRESSIONS_KEY)
        logger.info("Learning store cleared")
