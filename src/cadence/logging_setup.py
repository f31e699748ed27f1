# src/cadence/logging_setup.py

"""
Logging for the cadence console.

The terminal shows cadence's own records at the chosen level and only errors from
everything else, so provider chatter does not interleave with REPL output.
The log file under the data dir keeps the full DEBUG trail.

Transport loggers stay at WARNING everywhere: request and response bodies carry task
titles and notes, which must not reach either sink.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

APP_LOGGER = "cadence"
LOG_FILE_NAME = "cadence.log"

# Loggers that may see request/response payloads.
TRANSPORT_LOGGERS = ("httpx", "httpcore", "openai")


class _ConsoleNoiseFilter(logging.Filter):
    """Pass every cadence record; anything else reaches the terminal only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == APP_LOGGER or name.startswith(APP_LOGGER + "."):
            return True
        # Covers py.warnings and the transport loggers too.
        return record.levelno >= logging.ERROR


def _formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging(
    *,
    log_dir: str | Path = ".local/cadence",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console and file handlers on the root logger and return the log file path.

    Replaces any handlers already installed, so calling it twice does not duplicate output.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_formatter())
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    to_file = logging.FileHandler(str(log_file), encoding="utf-8")
    to_file.setLevel(file_level)
    to_file.setFormatter(_formatter())
    root.addHandler(to_file)

    logging.captureWarnings(True)

    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
