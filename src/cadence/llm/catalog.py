# src/cadence/llm/catalog.py

"""Static provider catalog and the per-provider configuration record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ON_DEVICE = "on_device"
OLLAMA = "ollama"
CUSTOM = "custom"
OPENAI = "openai"

CONFIG_KEY_PREFIX = "provider_config."
CREDENTIAL_KEY_PREFIX = "llm_apikey."
ACTIVE_PROVIDER_KEY = "llm_provider"


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    id: str
    display_name: str
    description: str
    requires_credential: bool
    is_external: bool


CATALOG: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(ON_DEVICE, "On-device", "Runs in-process, free, private", False, False),
    ProviderDescriptor(OLLAMA, "Ollama (Local)", "Run local models on your machine", False, False),
    ProviderDescriptor(CUSTOM, "Custom Endpoint", "Connect to any Open Responses API", False, True),
    ProviderDescriptor(OPENAI, "OpenAI GPT", "OpenAI chat completions (API key required)", True, True),
)

_BY_ID = {d.id: d for d in CATALOG}


def get_descriptor(provider_id: str) -> ProviderDescriptor | None:
    return _BY_ID.get(provider_id)


def config_key(provider_id: str) -> str:
    return f"{CONFIG_KEY_PREFIX}{provider_id}"


def credential_key(provider_id: str) -> str:
    return f"{CREDENTIAL_KEY_PREFIX}{provider_id}"


@dataclass(slots=True)
class ProviderConfig:
    """
    Endpoint + model for one provider.

    api_key is carried in memory only. to_json() never includes it: the credential
    lives in the credential store under credential_key(provider_id).
    """

    provider_id: str
    endpoint: str = ""
    model: str = ""
    api_key: str | None = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def to_json(self) -> dict[str, Any]:
        return {"endpoint": self.endpoint, "model": self.model}

    @classmethod
    def from_json(cls, provider_id: str, data: Any, api_key: str | None = None) -> "ProviderConfig | None":
        if not isinstance(data, dict):
            return None
        endpoint = data.get("endpoint")
        model = data.get("model")
        return cls(
            provider_id=provider_id,
            endpoint=endpoint if isinstance(endpoint, str) else "",
            model=model if isinstance(model, str) else "",
            api_key=api_key,
        )

    def __repr__(self) -> str:
        key = "set" if self.has_api_key else "unset"
        return f"ProviderConfig(provider_id={self.provider_id!r}, endpoint={self.endpoint!r}, model={self.model!r}, api_key={key})"


def default_config(provider_id: str) -> ProviderConfig:
    if provider_id == OLLAMA:
        return ProviderConfig(OLLAMA, endpoint="http://localhost:11434/v1/responses", model="gemma2:2b")
    if provider_id == OPENAI:
        return ProviderConfig(OPENAI, endpoint="", model="gpt-4.1-mini")
    return ProviderConfig(provider_id)
