# src/cadence/storage/settings_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _atomic_write_json(path: Path, data: Any, *, private: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
    os.replace(tmp, path)
    if private:
        with contextlib.suppress(Exception):
            os.chmod(path, 0o600)


def _read_json_object(path: Path) -> dict[str, Any]:
    """Load a JSON object file. Missing or corrupt files read back as empty state."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError):
        logger.exception("Failed to read %s; starting empty", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top-level value is not an object", path)
        return {}
    return data


class JsonSettingsStore:
    """
    Key-value settings persisted as one JSON object file.

    Writes are synchronous and whole-file (tmp + os.replace). Values must be JSON-compatible.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data = _read_json_object(self._path)
        logger.info("SettingsStore ready path=%s keys=%d", self._path, len(self._data))

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def keys(self) -> list[str]:
        return sorted(self._data)

    def _flush(self) -> None:
        try:
            _atomic_write_json(self._path, self._data)
        except OSError:
            logger.exception("Failed to write settings to %s", self._path)
