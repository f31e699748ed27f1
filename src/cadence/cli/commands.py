# src/cadence/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..core.errors import LLMError, friendly_llm_error_message
from ..core.state import AppState
from ..learning.store import CorrectionField
from ..llm.catalog import CATALOG, ON_DEVICE, default_config, get_descriptor

CommandResult = str | Awaitable[str]
CommandHandler = Callable[[AppState, list[str]], CommandResult]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /use, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            result = handler(state, args)
            if inspect.isawaitable(result):
                result = await result
        except LLMError as e:
            logger.info("Command /%s failed: kind=%s provider=%s", name, e.kind, e.provider_id)
            return f"[AI] {friendly_llm_error_message(e)}"
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    svc = state.service
    active = svc.active_provider_id
    desc = get_descriptor(active)
    err = svc.last_error
    last = friendly_llm_error_message(err) if err is not None else "none"
    return (
        "Status:\n"
        f"  Provider: {desc.display_name if desc else active} ({active})\n"
        f"  Context quality: {svc.context_quality:.2f}"
        f" ({'personalized' if svc.has_minimal_context else 'tentative'})\n"
        f"  Last AI error: {last}\n"
        f"  Data dir: {state.settings.data_dir}"
    )


def cmd_providers(state: AppState, args: list[str]) -> str:
    svc = state.service
    available = {d.id for d in svc.available_providers()}
    lines = ["Providers:"]
    for d in CATALOG:
        marks = []
        if d.id == svc.active_provider_id:
            marks.append("active")
        marks.append("available" if d.id in available else "not configured")
        if d.is_external:
            marks.append("external")
        lines.append(f"  {d.id:<10} {d.display_name} - {d.description} [{', '.join(marks)}]")
    return "\n".join(lines)


def cmd_use(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /use <provider_id>"
    pid = args[0].lower()
    if state.service.set_active(pid):
        return f"Active provider: {pid}."
    return f"Provider {pid!r} is not available. Using {state.service.active_provider_id}."


def cmd_configure(state: AppState, args: list[str]) -> str:
    """
    /configure <id> <endpoint|-> <model> [api_key]

    "-" keeps the provider's default endpoint.
    """
    if len(args) < 3:
        return "Usage: /configure <provider_id> <endpoint|-> <model> [api_key]"

    pid = args[0].lower()
    if get_descriptor(pid) is None or pid == ON_DEVICE:
        return f"Cannot configure provider {pid!r}."

    config = default_config(pid)
    if args[1] != "-":
        config.endpoint = args[1]
    config.model = args[2]
    config.api_key = args[3] if len(args) > 3 else None

    state.service.configure_provider(config)
    return f"Provider {pid} configured (model={config.model}). Use /use {pid} to activate it."


def cmd_remove(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /remove <provider_id>"
    pid = args[0].lower()
    state.service.remove_provider(pid)
    return f"Provider {pid} removed. Active: {state.service.active_provider_id}."


async def cmd_test(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /test <provider_id>"
    pid = args[0].lower()
    config = state.service.router.load_config(pid)
    if config is None:
        return f"Provider {pid!r} is not configured."
    ok = await state.service.test_connection(config)
    return f"Connection test for {pid}: {'OK' if ok else 'FAILED'}"


async def cmd_models(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /models <provider_id>"
    pid = args[0].lower()
    config = state.service.router.load_config(pid) or default_config(pid)
    models = await state.service.discover_models(config)
    if not models:
        return f"No models found for {pid}."
    lines = [f"Models for {pid}:"]
    for m in models:
        extra = f" ({m.description})" if m.description else ""
        free = " [free]" if m.is_free else ""
        lines.append(f"  {m.id} - {m.display_name}{extra}{free}")
    return "\n".join(lines)


async def cmd_estimate(state: AppState, args: list[str]) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /estimate <task title>"
    est = await state.service.estimate_duration(title)
    state.service.record_impression()
    return f"Estimate: {est.estimated_minutes} min (confidence: {est.confidence}). {est.reasoning}".strip()


async def cmd_priority(state: AppState, args: list[str]) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /priority <task title>"
    svc = state.service
    sug = await svc.suggest_priority(title)
    svc.record_impression()
    out = f"Priority: {sug.priority.display_name}. {sug.reasoning}".strip()
    override = svc.get_suggested_override(CorrectionField.PRIORITY, title, sug.priority.value)
    if override is not None:
        out += f"\n  (you usually change this to: {override})"
    return out


async def cmd_analyze(state: AppState, args: list[str]) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /analyze <task title>"

    task = state.task_store.add_task(title=title)
    svc = state.service
    a = await svc.analyze(task)
    svc.record_impression()

    category = a.suggested_category.display_name
    if a.suggested_custom_category_id:
        custom = state.task_store.get_category(a.suggested_custom_category_id)
        category = custom.name if custom else category

    lines = [
        f"Analysis for {task.title!r} (id={task.id}):",
        f"  Estimate: {a.estimated_minutes} min",
        f"  Priority: {a.suggested_priority.display_name}",
        f"  Best time: {a.best_time}",
        f"  Category: {category}",
    ]
    if a.proposed_new_category is not None:
        lines.append(f"  Proposed new category: {a.proposed_new_category.name}")
    if a.refined_title:
        lines.append(f"  Refined title: {a.refined_title}")
    if a.suggested_description:
        lines.append(f"  Description: {a.suggested_description}")
    for s in a.subtasks:
        lines.append(f"  - {s}")
    if a.tips:
        lines.append(f"  Tip: {a.tips}")
    return "\n".join(lines)


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.list_open_tasks()
    if not tasks:
        return "No open tasks."
    lines = ["Open tasks:"]
    for t in tasks:
        est = f"{t.estimated_minutes} min" if t.estimated_minutes else "-"
        lines.append(f"  {t.id[:8]}  {t.title}  [{t.priority.display_name}, {t.category.display_name}, {est}]")
    return "\n".join(lines)


async def cmd_order(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.list_open_tasks()
    if not tasks:
        return "No open tasks."
    ordered = await state.service.suggest_order(tasks)
    lines = ["Suggested order:"]
    for s in ordered:
        lines.append(f"  {s.suggested_position}. {s.task.title}")
    return "\n".join(lines)


def _find_open_task(state: AppState, prefix: str):
    for t in state.task_store.list_open_tasks(limit=500):
        if t.id.startswith(prefix):
            return t
    return None


def cmd_done(state: AppState, args: list[str]) -> str:
    """
    /done <id-prefix> [actual_minutes]
    """
    if not args:
        return "Usage: /done <task_id_prefix> [actual_minutes]"

    actual: int | None = None
    if len(args) > 1:
        try:
            actual = int(args[1])
        except ValueError:
            return "actual_minutes must be an integer."

    task = _find_open_task(state, args[0])
    if task is None:
        return f"No open task matches {args[0]!r}."

    done = state.task_store.complete_task(task.id)
    if done is None:
        return f"Task {task.id} disappeared."
    state.service.record_task_completion(done)

    if actual is not None and done.estimated_minutes:
        category = state.service.effective_category(done)
        state.service.record_duration_accuracy(category, done.estimated_minutes, actual)
    return f"Completed: {done.title} ({_fmt_ts(done.completed_at)})"


def cmd_forget(state: AppState, args: list[str]) -> str:
    state.service.reset_patterns()
    return "Learned completion patterns cleared."


def cmd_correct(state: AppState, args: list[str]) -> str:
    """
    /correct <task_id_prefix> <field> <original> <choice>
    """
    if len(args) < 4:
        return "Usage: /correct <task_id_prefix> <category|priority|duration|title> <original> <choice>"
    task = _find_open_task(state, args[0])
    if task is None:
        return f"No open task matches {args[0]!r}."
    try:
        field = CorrectionField(args[1].lower())
    except ValueError:
        return f"Unknown field {args[1]!r}."

    recorded = state.service.record_correction(field, args[2], args[3], task.title, task_id=task.id)
    return "Correction recorded." if recorded else "Nothing to record (same value)."


def cmd_stats(state: AppState, args: list[str]) -> str:
    svc = state.service
    learning = svc.learning
    days = 7
    if args:
        try:
            days = max(1, int(args[0]))
        except ValueError:
            return "Usage: /stats [days]"
    return (
        f"AI quality (last {days} days):\n"
        f"  Impressions: {learning.get_impression_count(days)}\n"
        f"  Corrections: {learning.get_correction_count(days)}\n"
        f"  Correction rate: {svc.get_correction_rate(days):.0%}\n"
        f"  Context quality: {svc.context_quality:.2f}"
    )


def cmd_exit(state: AppState, args: list[str]) -> str:
    # Handled by the console loop; registered for /help.
    return "Use /exit at the prompt to quit."


registry.register("help", cmd_help, "Show this help", aliases=["h", "?"])
registry.register("status", cmd_status, "Show active provider and context quality")
registry.register("providers", cmd_providers, "List providers and their availability")
registry.register("use", cmd_use, "Select the active provider: /use <id>")
registry.register("configure", cmd_configure, "Configure: /configure <id> <endpoint|-> <model> [key]")
registry.register("remove", cmd_remove, "Remove a provider configuration: /remove <id>")
registry.register("test", cmd_test, "Test a configured provider: /test <id>")
registry.register("models", cmd_models, "List models offered by a provider: /models <id>")
registry.register("estimate", cmd_estimate, "Estimate duration: /estimate <title>")
registry.register("priority", cmd_priority, "Suggest priority: /priority <title>")
registry.register("analyze", cmd_analyze, "Add a task and analyze it: /analyze <title>")
registry.register("tasks", cmd_tasks, "List open tasks")
registry.register("order", cmd_order, "Suggest an order for open tasks")
registry.register("done", cmd_done, "Complete a task: /done <id> [actual_minutes]")
registry.register("correct", cmd_correct, "Record a correction: /correct <id> <field> <original> <choice>")
registry.register("stats", cmd_stats, "Show correction statistics: /stats [days]")
registry.register("forget", cmd_forget, "Clear learned completion patterns")
registry.register("exit", cmd_exit, "Quit", aliases=["quit"])
