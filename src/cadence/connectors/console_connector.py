# src/cadence/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import LLMError, friendly_llm_error_message
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (provider=%s).", state.service.active_provider_id)
    _print_ts("[CONSOLE] Type a prompt or use /help for commands. Use /exit to quit.\n")

    app_name = state.settings.app_name

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> You: ")).strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            cmd_response = await command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        # Plain text goes to the active provider as a raw completion.
        try:
            reply = await state.service.complete(user_input)
        except LLMError as e:
            logger.info("LLM error: kind=%s provider=%s", e.kind, e.provider_id)
            _print_ts(f"[AI] {friendly_llm_error_message(e)}")
            continue
        except Exception:
            logger.exception("Console completion crashed.")
            _print_ts("Internal error while generating a reply.")
            continue

        _print_ts(f"<<< {app_name}: {reply.strip()}\n")

    logger.info("Console connector finished.")
