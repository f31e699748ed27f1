# src/cadence/prompts/templates.py

"""
Prompt templates and reply parsers.

Every analysis kind is a pure render/parse pair:
- render_* builds the prompt text (system instruction, task fields, learned context,
  few-shot examples, literal output schema).
- parse_* never raises. It extracts the first JSON object from the reply, validates and clamps
  every field, and falls back to documented defaults on anything it cannot read.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ..core.models import (
    BestTime,
    Confidence,
    CustomCategory,
    DailySummary,
    DaySummaryStats,
    MorningBriefing,
    MorningBriefingStats,
    Priority,
    PrioritySuggestion,
    ProposedCategory,
    Task,
    TaskAnalysis,
    TaskCategory,
    TaskEstimate,
)

logger = logging.getLogger(__name__)

MIN_ESTIMATE_MINUTES = 5
MAX_ESTIMATE_MINUTES = 480
DEFAULT_ESTIMATE_MINUTES = 30
MAX_SUBTASKS = 3
# Replies nested deeper than this are not model output; skip them instead of decoding.
MAX_JSON_DEPTH = 64

UNPARSEABLE_REASONING = "Could not parse response"

# Header lines double as kind markers for the on-device engine.
DURATION_HEADER = "Estimate how long this task will take in minutes."
PRIORITY_HEADER = "Suggest a priority level for this task."
ORDERING_HEADER = "Suggest the best order to complete these tasks today."
ANALYSIS_HEADER = "Analyze this task and provide suggestions."
DAILY_SUMMARY_HEADER = "Generate a brief daily summary for a productivity app user."
MORNING_BRIEFING_HEADER = "Generate a morning briefing for a productivity app user."


TASK_ANALYSIS_SYSTEM_PROMPT = """You are a productivity coach helping users organize tasks effectively.

Guidelines:
- Be concise: explanations should be ONE sentence
- Be practical: suggest realistic time estimates
- Be encouraging: frame suggestions positively
- Respect patterns: consider user's past preferences when provided

DO NOT include personal opinions or unnecessary elaboration.
DO NOT make up facts or reference external information.
NEVER include sensitive, harmful, or inappropriate content.

Respond ONLY in the specified JSON format."""

DAILY_SUMMARY_SYSTEM_PROMPT = """You are a supportive productivity assistant helping users reflect on their day.

Guidelines:
- Be encouraging and positive
- Keep summaries to 2-3 sentences
- Celebrate progress, no matter how small
- Suggest actionable next steps when appropriate

Respond ONLY in the specified JSON format."""

MORNING_BRIEFING_SYSTEM_PROMPT = """You are a supportive productivity assistant helping users start their day.

Guidelines:
- Be warm and energizing
- Generate encouraging, actionable briefings
- Reference yesterday's progress to build momentum
- Highlight priorities and suggest focus areas

Respond ONLY in the specified JSON format."""


def _fmt_date_medium(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%b %d, %Y")


def _fmt_date_short(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%m/%d/%y")


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------


def _scan_objects(text: str):
    """
    Yield every balanced {...} substring, left to right. Braces inside strings are ignored.

    An object nested deeper than MAX_JSON_DEPTH is skipped whole and scanning resumes after it.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        too_deep = False
        in_str = False
        escaped = False
        end = -1
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
                if depth > MAX_JSON_DEPTH:
                    too_deep = True
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end == -1:
            return
        if too_deep:
            start = text.find("{", end + 1)
            continue
        yield text[start : end + 1]
        start = text.find("{", start + 1)


def extract_json(text: str) -> Any | None:
    """
    Return the decoded JSON value embedded in a model reply, or None.

    The whole text is tried first, then each balanced object found by the scanner.
    """
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, TypeError, RecursionError):
        pass

    for candidate in _scan_objects(text):
        try:
            return json.loads(candidate)
        except (ValueError, RecursionError):
            continue
    return None


def _extract_object(text: str) -> dict[str, Any] | None:
    obj = extract_json(text)
    return obj if isinstance(obj, dict) else None


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def clamp_minutes(value: int) -> int:
    return max(MIN_ESTIMATE_MINUTES, min(MAX_ESTIMATE_MINUTES, value))


def _read_minutes(raw: Any) -> int:
    # bool is an int subclass; true/false is not a duration.
    if isinstance(raw, bool):
        minutes = DEFAULT_ESTIMATE_MINUTES
    elif isinstance(raw, int):
        minutes = raw
    elif isinstance(raw, float) and raw == raw and abs(raw) != float("inf"):
        minutes = int(round(raw))
    else:
        minutes = DEFAULT_ESTIMATE_MINUTES
    return clamp_minutes(minutes)


def _read_str(raw: Any, default: str = "") -> str:
    return raw if isinstance(raw, str) else default


def _read_optional_str(raw: Any) -> str | None:
    # JSON null and a missing key both land here as None.
    return raw if isinstance(raw, str) else None


def _read_priority(raw: Any) -> Priority:
    # Missing -> medium; present but unrecognized -> none.
    if raw is None:
        return Priority.MEDIUM
    if not isinstance(raw, str):
        return Priority.NONE
    return Priority.from_text(raw, Priority.NONE)


def _read_best_time(raw: Any) -> BestTime:
    if isinstance(raw, str):
        try:
            return BestTime(raw.strip().lower())
        except ValueError:
            pass
    return BestTime.ANYTIME


def _read_confidence(raw: Any) -> Confidence:
    if isinstance(raw, str):
        try:
            return Confidence(raw.strip().lower())
        except ValueError:
            pass
    return Confidence.LOW


# ---------------------------------------------------------------------------
# Duration estimation
# ---------------------------------------------------------------------------


def render_duration_prompt(title: str, notes: str | None = None, learning_context: str = "") -> str:
    lines = [DURATION_HEADER, "", f"Task: {title}"]
    if notes:
        lines.append(f"Details: {notes}")
    if learning_context:
        lines += ["", "User Preferences:", learning_context]

    lines += [
        "",
        "Example:",
        'Task: "Buy groceries"',
        'Response: {"estimated_minutes": 45, "confidence": "high", "reasoning": "Typical grocery trip including travel."}',
        "",
        "Respond in JSON format with reasoning in one sentence:",
        "{",
        '    "estimated_minutes": <number between 5 and 480>,',
        '    "confidence": "<low|medium|high>",',
        '    "reasoning": "<brief one-sentence explanation>"',
        "}",
    ]
    return "\n".join(lines)


def parse_duration_response(text: str) -> TaskEstimate:
    data = _extract_object(text)
    if data is None:
        logger.debug("Duration reply was not parseable; using defaults.")
        return TaskEstimate(DEFAULT_ESTIMATE_MINUTES, Confidence.LOW, UNPARSEABLE_REASONING)

    return TaskEstimate(
        estimated_minutes=_read_minutes(data.get("estimated_minutes")),
        confidence=_read_confidence(data.get("confidence")),
        reasoning=_read_str(data.get("reasoning")),
    )


# ---------------------------------------------------------------------------
# Priority suggestion
# ---------------------------------------------------------------------------


def render_priority_prompt(
        title: str,
        notes: str | None = None,
        due_at: float | None = None,
        learning_context: str = "",
) -> str:
    lines = [PRIORITY_HEADER, "", f"Task: {title}"]
    if notes:
        lines.append(f"Details: {notes}")
    if due_at is not None:
        lines.append(f"Due: {_fmt_date_medium(due_at)}")
    if learning_context:
        lines += ["", "User Preferences:", learning_context]

    lines += [
        "",
        "Priority levels:",
        "- none: No specific priority",
        "- low: Can be done anytime, not urgent",
        "- medium: Should be done soon",
        "- high: Important, needs attention this week",
        "- urgent: Critical, needs immediate attention",
        "",
        "Example:",
        'Task: "Submit tax forms"',
        "Due: Tomorrow",
        'Response: {"priority": "urgent", "reasoning": "Deadline is tomorrow, cannot be missed."}',
        "",
        "Respond in JSON format with reasoning in one sentence:",
        "{",
        '    "priority": "<none|low|medium|high|urgent>",',
        '    "reasoning": "<brief one-sentence explanation>"',
        "}",
    ]
    return "\n".join(lines)


def parse_priority_response(text: str) -> PrioritySuggestion:
    data = _extract_object(text)
    if data is None:
        logger.debug("Priority reply was not parseable; using defaults.")
        return PrioritySuggestion(Priority.MEDIUM, UNPARSEABLE_REASONING)

    return PrioritySuggestion(
        priority=_read_priority(data.get("priority")),
        reasoning=_read_str(data.get("reasoning")),
    )


# ---------------------------------------------------------------------------
# Task ordering
# ---------------------------------------------------------------------------


def render_ordering_prompt(tasks: Sequence[Task]) -> str:
    items: list[str] = []
    for idx, t in enumerate(tasks, start=1):
        item = f"{idx}. {t.title}"
        if t.due_at is not None:
            item += f" (Due: {_fmt_date_short(t.due_at)})"
        item += f" [Priority: {t.priority.display_name}]"
        items.append(item)

    return "\n".join(
        [
            ORDERING_HEADER,
            "",
            "Tasks:",
            *items,
            "",
            "Consider: due dates first, then priority, then quick wins (short tasks).",
            "",
            "Respond in JSON format:",
            "{",
            '    "order": [<task numbers in suggested order>],',
            '    "reasoning": "<brief one-sentence explanation>"',
            "}",
        ]
    )


def parse_ordering_response(text: str, count: int) -> list[int]:
    """
    Return zero-based indices in suggested order.

    Out-of-range and duplicate entries are dropped. Tasks the model left out keep their
    relative order at the end. An unreadable reply yields the input order.
    """
    identity = list(range(count))
    data = _extract_object(text)
    if data is None:
        return identity

    raw = data.get("order")
    if not isinstance(raw, list):
        return identity

    seen: set[int] = set()
    order: list[int] = []
    for item in raw:
        if isinstance(item, bool):
            continue
        if isinstance(item, float) and item.is_integer():
            item = int(item)
        if not isinstance(item, int):
            continue
        idx = item - 1
        if 0 <= idx < count and idx not in seen:
            seen.add(idx)
            order.append(idx)

    if not order:
        return identity

    order.extend(i for i in identity if i not in seen)
    return order


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------

_ANALYSIS_EXAMPLES = (
    'Task: "Call mom"\n'
    'Response: {"estimated_minutes": 15, "suggested_priority": "medium", "best_time": "evening", '
    '"category": "personal", "proposed_new_category": null, "refined_title": null, '
    '"suggested_description": null, "subtasks": [], "tips": "Find a quiet spot."}\n'
    "\n"
    'Task: "Prepare presentation for Monday meeting"\n'
    'Response: {"estimated_minutes": 90, "suggested_priority": "high", "best_time": "morning", '
    '"category": "work", "proposed_new_category": null, "refined_title": null, '
    '"suggested_description": "Create slides and rehearse key points", '
    '"subtasks": ["Outline main points", "Create slides", "Practice delivery"], '
    '"tips": "Start with the conclusion."}\n'
    "\n"
    'Task: "Volunteer at food bank"\n'
    'Response: {"estimated_minutes": 180, "suggested_priority": "medium", "best_time": "morning", '
    '"category": "uncategorized", "proposed_new_category": {"name": "Volunteering", '
    '"color_hex": "#4CAF50", "icon_name": "heart.fill"}, "refined_title": null, '
    '"suggested_description": null, "subtasks": [], "tips": "Wear comfortable shoes."}'
)

_ANALYSIS_SCHEMA = """{
    "estimated_minutes": <number between 5 and 480>,
    "suggested_priority": "<none|low|medium|high|urgent>",
    "best_time": "<morning|afternoon|evening|anytime>",
    "category": "<one of the available categories, or 'uncategorized' if proposing new>",
    "proposed_new_category": <null, or {"name": "...", "color_hex": "#RRGGBB", "icon_name": "sf.symbol.name"} if suggesting new category>,
    "refined_title": "<improved title or null if original is good>",
    "suggested_description": "<helpful description or null if not needed>",
    "subtasks": [<empty array for simple tasks, up to 3 items for complex tasks>],
    "tips": "<one brief productivity tip, 10 words or less>"
}"""


def render_analysis_prompt(task: Task, learning_context: str = "", custom_category_names: Sequence[str] = ()) -> str:
    categories = ", ".join([*TaskCategory.builtin_keys(), *custom_category_names])

    lines = [ANALYSIS_HEADER, "", f"Task: {task.title}"]
    if task.notes:
        lines.append(f"Details: {task.notes}")
    if task.due_at is not None:
        lines.append(f"Due: {_fmt_date_medium(task.due_at)}")
    lines.append(f"Current Priority: {task.priority.display_name}")

    if learning_context:
        lines += ["", "User Preferences:", learning_context]

    lines += [
        "",
        f"Available categories: {categories}",
        "",
        "If no existing category fits well, you may propose creating a new one.",
        "",
        "Examples:",
        _ANALYSIS_EXAMPLES,
        "",
        "Provide analysis. Only include subtasks for complex tasks that benefit from breakdown:",
        _ANALYSIS_SCHEMA,
    ]
    return "\n".join(lines)


def _find_custom(name: str, custom_categories: Sequence[CustomCategory]) -> CustomCategory | None:
    # Exact, case-sensitive name match.
    for c in custom_categories:
        if c.name == name:
            return c
    return None


def _read_subtasks(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(s for s in raw if isinstance(s, str))[:MAX_SUBTASKS]


def _read_proposed(raw: Any) -> ProposedCategory | None:
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    return ProposedCategory(
        name=name.strip(),
        color_hex=_read_str(raw.get("color_hex"), ProposedCategory.DEFAULT_COLOR_HEX),
        icon_name=_read_str(raw.get("icon_name"), ProposedCategory.DEFAULT_ICON_NAME),
    )


def parse_analysis_response(text: str, custom_categories: Sequence[CustomCategory] = ()) -> TaskAnalysis:
    data = _extract_object(text)
    if data is None:
        logger.debug("Analysis reply was not parseable; using defaults.")
        return TaskAnalysis.default()

    category = TaskCategory.UNCATEGORIZED
    custom_id: str | None = None

    raw_category = _read_str(data.get("category"), TaskCategory.UNCATEGORIZED.value)
    key = raw_category.lower()
    if key in TaskCategory.builtin_keys():
        category = TaskCategory(key)
    else:
        match = _find_custom(raw_category, custom_categories)
        if match is not None:
            custom_id = match.id

    proposed = None
    if category is TaskCategory.UNCATEGORIZED and custom_id is None:
        proposed = _read_proposed(data.get("proposed_new_category"))

    return TaskAnalysis(
        estimated_minutes=_read_minutes(data.get("estimated_minutes")),
        suggested_priority=_read_priority(data.get("suggested_priority")),
        best_time=_read_best_time(data.get("best_time")),
        suggested_category=category,
        suggested_custom_category_id=custom_id,
        proposed_new_category=proposed,
        subtasks=_read_subtasks(data.get("subtasks")),
        tips=_read_str(data.get("tips")),
        refined_title=_read_optional_str(data.get("refined_title")),
        suggested_description=_read_optional_str(data.get("suggested_description")),
    )


# ---------------------------------------------------------------------------
# Daily summary / morning briefing
# ---------------------------------------------------------------------------

_TONE_RULE = (
    "- Adjust greeting and tone for {tod}: morning=energizing, afternoon=encouraging, "
    "evening=reflective and wind-down, night=brief and restful"
)


def _context_section(learning_context: str) -> list[str]:
    if not learning_context:
        return []
    return ["", "User Learning Context:", learning_context, ""]


def render_daily_summary_prompt(stats: DaySummaryStats, learning_context: str = "") -> str:
    guidance: list[str] = []
    if stats.tasks_completed == 0:
        guidance += [
            "",
            "IMPORTANT - Zero tasks completed scenario:",
            '- Do NOT say "positive start" or "great progress" - be honest',
            "- Acknowledge the day without accomplishments gently",
            "- Focus on tomorrow being a fresh start",
            "- Suggest starting with one small task tomorrow",
            "",
        ]
    elif stats.total_planned > 0 and stats.tasks_completed >= stats.total_planned:
        guidance += [
            "",
            "IMPORTANT - All tasks completed scenario:",
            "- Celebrate this genuine achievement",
            f"- Reference the specific completion rate ({stats.tasks_completed}/{stats.total_planned})",
            "- Acknowledge the effort",
            "",
        ]
    if stats.is_first_day:
        guidance += [
            "",
            "IMPORTANT - First day user:",
            "- Welcome them warmly",
            "- Don't reference \"yesterday\" or past performance",
            "- Focus on starting their productivity journey",
            "",
        ]

    lines = [
        DAILY_SUMMARY_HEADER,
        "",
        f"Time of day: {stats.time_of_day}",
        "",
        "Today's Stats:",
        f"- Tasks completed: {stats.tasks_completed} of {stats.total_planned} planned",
        f"- Top category: {stats.top_category or 'Various'}",
        f"- Time worked: {stats.time_worked}",
        f"- Current streak: {stats.current_streak} days",
        "",
        "Completed tasks:",
        stats.task_list or "No tasks completed",
        *guidance,
        *_context_section(learning_context),
        "CRITICAL RULES:",
        "- Your message MUST match the actual data above",
        '- If tasks completed is 0, do NOT use positive words like "great", "awesome", "positive start"',
        "- If tasks completed is 0, acknowledge it honestly and kindly",
        '- Never say someone made "progress" if they completed zero tasks',
        "- Be encouraging about FUTURE potential, not false praise for the past",
        "",
        "PERSONALIZATION RULES:",
        "- Reference 1-2 specific task names from the completed tasks list above if available",
        "- Mention the top category by name if available",
        _TONE_RULE.format(tod=stats.time_of_day),
        "",
        "Provide:",
        "1. A 2-3 sentence summary that honestly reflects their day, mentioning specific task names when available",
        "2. One sentence of encouragement focused on tomorrow or their potential",
        "",
        "Respond in JSON format only:",
        "{",
        '    "summary": "<honest recap of day matching the stats>",',
        '    "encouragement": "<forward-looking motivating message>"',
        "}",
        "",
        "Keep tone warm, honest, and supportive.",
    ]
    return "\n".join(lines)


def parse_daily_summary_response(text: str) -> DailySummary:
    data = _extract_object(text)
    if data is None:
        return DailySummary()
    return DailySummary(
        summary=_read_optional_str(data.get("summary")),
        encouragement=_read_optional_str(data.get("encouragement")),
    )


def render_morning_briefing_prompt(stats: MorningBriefingStats, learning_context: str = "") -> str:
    has_calendar = stats.schedule_context is not None

    guidance: list[str] = []
    if stats.yesterday_completed == 0 and stats.yesterday_planned > 0:
        guidance += [
            "",
            "IMPORTANT - Yesterday had zero completions:",
            '- Do NOT say "positive start", "great progress", or celebrate yesterday',
            "- Acknowledge yesterday briefly and pivot to today's fresh start",
            "- Focus on today's opportunities, not yesterday's shortcomings",
            "",
        ]
    elif stats.yesterday_completed == 0 and stats.yesterday_planned == 0:
        guidance += [
            "",
            "IMPORTANT - No tasks were planned yesterday:",
            "- Skip mentioning yesterday entirely",
            "- Focus on welcoming the new day and today's plan",
            "",
        ]
    elif stats.yesterday_planned > 0 and stats.yesterday_completed >= stats.yesterday_planned:
        guidance += [
            "",
            "IMPORTANT - Yesterday was fully productive:",
            "- Genuinely celebrate completing all planned tasks",
            "- Reference the achievement to build momentum",
            "",
        ]
    if stats.is_first_day:
        guidance += [
            "",
            "IMPORTANT - First day user:",
            "- Welcome them warmly to the app",
            "- Don't reference \"yesterday\" at all",
            "- Focus on starting their productivity journey today",
            "",
        ]
    if stats.streak_just_broken and stats.previous_streak > 0:
        guidance += [
            "",
            f"IMPORTANT - Streak was recently broken (was {stats.previous_streak} days):",
            "- Be empathetic, not guilt-inducing",
            "- Streaks reset but progress and habits remain",
            "- Focus on rebuilding, not what was lost",
            "",
        ]
    if stats.today_overdue > 0:
        guidance += [
            "",
            f"IMPORTANT - Has {stats.today_overdue} overdue tasks:",
            "- Acknowledge overdue items without judgment",
            "- Suggest prioritizing them today",
            "- Frame as opportunity to clear the backlog",
            "",
        ]

    estimate_line = f"- Estimated time: {stats.today_time_estimate}"
    if has_calendar:
        estimate_line += f"\n\nToday's Calendar:\n{stats.schedule_context}"

    schedule_hint = " and today's schedule" if has_calendar else ""
    time_hint = " and available time" if has_calendar else ""

    lines = [
        MORNING_BRIEFING_HEADER,
        "",
        f"Time of day: {stats.time_of_day}",
        "",
        "Yesterday's Results:",
        f"- Completed: {stats.yesterday_completed} of {stats.yesterday_planned} tasks",
        f"- Top category: {stats.yesterday_top_category or 'Various'}",
        "",
        "Today's Plan:",
        f"- Total tasks: {stats.today_task_count}",
        f"- High priority: {stats.today_high_priority}",
        f"- Overdue: {stats.today_overdue}",
        estimate_line,
        "",
        "Weekly Progress:",
        f"- Tasks completed this week: {stats.weekly_tasks_completed}",
        f"- Completion rate: {stats.weekly_completion_rate}",
        f"- Current streak: {stats.current_streak} days",
        "",
        "Today's Top Priorities:",
        stats.today_task_list or "No tasks scheduled yet",
        *guidance,
        *_context_section(learning_context),
        "CRITICAL RULES:",
        "- Your message MUST accurately reflect the data above",
        '- If yesterday had 0 completions, do NOT use words like "great start", "positive", "awesome"',
        "- If yesterday had 0 completions, acknowledge it honestly then pivot to today",
        '- Never claim someone made "progress" when they completed zero tasks',
        "- Match your enthusiasm level to the actual metrics",
        "- Be encouraging about TODAY and the future, not falsely positive about poor past results",
        "",
        "PERSONALIZATION RULES:",
        "- Reference specific task names from the priorities list above if available",
        "- Mention the top category by name when relevant",
        _TONE_RULE.format(tod=stats.time_of_day),
        "",
        "Provide:",
        f"1. A 2-3 sentence greeting that honestly reflects yesterday{schedule_hint}, "
        "referencing specific task names when available",
        f"2. One sentence highlighting today's focus areas based on priorities{time_hint}, "
        "naming specific tasks when available",
        "3. A brief motivational message about today's potential",
        "",
        "Respond in JSON format only:",
        "{",
        '    "summary": "<honest greeting matching the stats>",',
        '    "todayFocus": "<today\'s priorities and focus>",',
        '    "motivation": "<forward-looking encouraging message>"',
        "}",
        "",
        "Keep tone warm, honest, and action-oriented.",
    ]
    return "\n".join(lines)


def parse_morning_briefing_response(text: str) -> MorningBriefing:
    data = _extract_object(text)
    if data is None:
        return MorningBriefing()
    return MorningBriefing(
        summary=_read_optional_str(data.get("summary")),
        today_focus=_read_optional_str(data.get("todayFocus")),
        motivation=_read_optional_str(data.get("motivation")),
    )
