# src/cadence/llm/discovery.py

"""
Advisory model discovery for the configuration UI.

Queries a backend-native "list local models" endpoint (Ollama /api/tags) and falls back to a
generic /v1/models listing. Any failure yields an empty list; discovery never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .catalog import CUSTOM, OLLAMA, ProviderConfig
from .open_responses import make_timeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AvailableModel:
    id: str
    name: str
    provider: str | None = None
    description: str | None = None
    is_free: bool = False

    @property
    def display_name(self) -> str:
        """Name without the "Provider:" prefix ("OpenAI: GPT-5" -> "GPT-5")."""
        if self.provider and self.name.startswith(f"{self.provider}:"):
            return self.name[len(self.provider) + 1:].strip()
        return self.name

    @classmethod
    def parse(cls, id: str, name: str, description: str | None = None, is_free: bool = False) -> "AvailableModel":
        head, sep, _ = name.partition(":")
        provider = head.strip() if sep else None
        return cls(id=id, name=name, provider=provider, description=description, is_free=is_free)


def format_model_size(size_bytes: int) -> str:
    gb = size_bytes / 1_000_000_000
    if gb >= 1:
        return f"{gb:.1f} GB"
    return f"{size_bytes / 1_000_000:.0f} MB"


def ollama_tags_url(endpoint: str) -> str:
    return endpoint.replace("/v1/responses", "/api/tags").replace("/v1/chat/completions", "/api/tags")


def models_list_url(endpoint: str) -> str:
    if "/models" in endpoint:
        return endpoint
    return endpoint.replace("/v1/responses", "/v1/models")


def _parse_ollama(body: Any) -> list[AvailableModel]:
    out: list[AvailableModel] = []
    for m in body["models"]:
        name = m["name"]
        out.append(
            AvailableModel(
                id=name,
                name=name,
                provider="Ollama",
                description=format_model_size(int(m["size"])),
                is_free=True,
            )
        )
    return out


def _parse_models_list(body: Any) -> list[AvailableModel]:
    out: list[AvailableModel] = []
    for m in body["data"]:
        model_id = m["id"]
        pricing = m.get("pricing") or {}
        is_free = pricing.get("prompt") == "0" and pricing.get("completion") == "0"
        out.append(
            AvailableModel.parse(
                id=model_id,
                name=m.get("name") or model_id,
                description=m.get("description"),
                is_free=is_free,
            )
        )
    return out


class ModelDiscovery:
    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout: httpx.Timeout | None = None) -> None:
        self._client = client
        self._timeout = timeout or make_timeout(5.0, 15.0)

    async def _get_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        if self._client is not None:
            resp = await self._client.get(url, headers=headers, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def fetch_ollama(self, endpoint: str) -> list[AvailableModel]:
        return _parse_ollama(await self._get_json(ollama_tags_url(endpoint)))

    async def fetch_standard(self, endpoint: str, api_key: str | None) -> list[AvailableModel]:
        headers = {}
        if api_key and api_key.strip():
            headers["Authorization"] = f"Bearer {api_key.strip()}"
        return _parse_models_list(await self._get_json(models_list_url(endpoint), headers))

    async def discover(self, config: ProviderConfig) -> list[AvailableModel]:
        pid = config.provider_id
        endpoint = config.endpoint.strip()
        if pid not in (OLLAMA, CUSTOM) or not endpoint:
            return []

        try:
            if pid == OLLAMA:
                return await self.fetch_ollama(endpoint)

            try:
                models = await self.fetch_ollama(endpoint)
            except Exception:
                models = []
            if models:
                return models
            return await self.fetch_standard(endpoint, config.api_key)
        except Exception as e:
            logger.info("Model discovery failed for provider=%s (%s)", pid, e.__class__.__name__)
            return []
