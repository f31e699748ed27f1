# src/cadence/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL on an asyncio loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run_console_loop(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        state.task_store.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
