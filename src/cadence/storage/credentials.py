# src/cadence/storage/credentials.py

from __future__ import annotations

import logging
from pathlib import Path

from .settings_store import _atomic_write_json, _read_json_object

logger = logging.getLogger(__name__)


class FileCredentialStore:
    """
    Opaque secret storage in a private (0600) JSON file kept apart from settings.

    Secret values are never logged; only key names are.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        raw = _read_json_object(self._path)
        self._secrets = {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._secrets.get(key)

    def set(self, key: str, value: str) -> None:
        self._secrets[key] = value
        self._flush()
        logger.info("Credential stored key=%s", key)

    def delete(self, key: str) -> None:
        if self._secrets.pop(key, None) is not None:
            self._flush()
            logger.info("Credential deleted key=%s", key)

    def _flush(self) -> None:
        try:
            _atomic_write_json(self._path, self._secrets, private=True)
        except OSError:
            logger.exception("Failed to write credentials to %s", self._path)
