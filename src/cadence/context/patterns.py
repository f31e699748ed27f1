# src/cadence/context/patterns.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

PATTERNS_KEY = "user_patterns"

MIN_TIME_PATTERN_COUNT = 3


def hour_bucket(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "anytime"


def _int_map(raw: Any) -> dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    out: dict[str, int] = {}
    for k, v in raw.items():
        if isinstance(k, str) and isinstance(v, int) and not isinstance(v, bool):
            out[k] = v
    return out


def _str_map(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}


@dataclass(slots=True)
class UserPatterns:
    """
    Aggregate counters learned from completed tasks.

    Keys are lowercased category names. Time keys are "<category>_<hour>",
    day keys "<category>_<isoweekday>".
    """

    category_usage: dict[str, int] = field(default_factory=dict)
    category_time_patterns: dict[str, int] = field(default_factory=dict)
    category_day_patterns: dict[str, int] = field(default_factory=dict)
    average_durations: dict[str, int] = field(default_factory=dict)
    category_priority_patterns: dict[str, str] = field(default_factory=dict)
    last_updated: float = 0.0

    @property
    def entry_count(self) -> int:
        return len(self.category_usage) + len(self.category_time_patterns)

    def record_completion(
            self,
            category: str,
            priority: str,
            duration: int | None,
            completed_at: float | None = None,
    ) -> None:
        ts = time.time() if completed_at is None else completed_at
        when = datetime.fromtimestamp(ts)
        key = category.lower()

        self.category_usage[key] = self.category_usage.get(key, 0) + 1

        time_key = f"{key}_{when.hour}"
        self.category_time_patterns[time_key] = self.category_time_patterns.get(time_key, 0) + 1

        day_key = f"{key}_{when.isoweekday()}"
        self.category_day_patterns[day_key] = self.category_day_patterns.get(day_key, 0) + 1

        self.category_priority_patterns[key] = priority

        if duration is not None and duration > 0:
            existing = self.average_durations.get(key, duration)
            self.average_durations[key] = (existing + duration) // 2

        self.last_updated = ts

    def preferred_time(self, key: str) -> str | None:
        """Time-of-day bucket of the most frequent hour for `key`, once seen at least 3 times."""
        prefix = f"{key.lower()}_"
        best_hour: int | None = None
        best_count = 0
        for k, count in self.category_time_patterns.items():
            if not k.startswith(prefix) or count <= best_count:
                continue
            try:
                hour = int(k[len(prefix):])
            except ValueError:
                continue
            best_hour, best_count = hour, count

        if best_hour is None or best_count < MIN_TIME_PATTERN_COUNT:
            return None
        return hour_bucket(best_hour)

    def top_categories(self, limit: int = 5) -> list[str]:
        ranked = sorted(self.category_usage.items(), key=lambda kv: kv[1], reverse=True)
        return [k for k, _ in ranked[:limit]]

    def average_duration(self, category: str) -> int | None:
        return self.average_durations.get(category.lower())

    def to_json(self) -> dict[str, Any]:
        return {
            "category_usage": dict(self.category_usage),
            "category_time_patterns": dict(self.category_time_patterns),
            "category_day_patterns": dict(self.category_day_patterns),
            "average_durations": dict(self.average_durations),
            "category_priority_patterns": dict(self.category_priority_patterns),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_json(cls, data: Any) -> "UserPatterns":
        if not isinstance(data, dict):
            return cls()
        last = data.get("last_updated")
        return cls(
            category_usage=_int_map(data.get("category_usage")),
            category_time_patterns=_int_map(data.get("category_time_patterns")),
            category_day_patterns=_int_map(data.get("category_day_patterns")),
            average_durations=_int_map(data.get("average_durations")),
            category_priority_patterns=_str_map(data.get("category_priority_patterns")),
            last_updated=float(last) if isinstance(last, (int, float)) and not isinstance(last, bool) else 0.0,
        )
