# tests/test_router.py

from __future__ import annotations

import pytest

from cadence.core.errors import ConfigurationError, RateLimitedError
from cadence.llm.catalog import (
    ACTIVE_PROVIDER_KEY,
    CUSTOM,
    OLLAMA,
    ON_DEVICE,
    OPENAI,
    ProviderConfig,
    config_key,
    credential_key,
    default_config,
)
from cadence.llm.offline import OfflineProvider
from cadence.llm.open_responses import OpenResponsesProvider
from cadence.llm.openai_chat import OpenAIChatProvider
from cadence.llm.router import CompletionRouter, build_adapter

from .conftest import persist_config
from .fakes import FakeProvider, InMemoryCredentialStore, InMemorySettingsStore


def _router(settings=None, credentials=None, providers=None, **kw) -> CompletionRouter:
    providers = providers or {}

    def factory(config: ProviderConfig):
        fake = providers.get(config.provider_id)
        return fake if fake is not None else build_adapter(config)

    return CompletionRouter(
        settings if settings is not None else InMemorySettingsStore(),
        credentials if credentials is not None else InMemoryCredentialStore(),
        adapter_factory=factory,
        **kw,
    )


def test_build_adapter_kinds() -> None:
    assert isinstance(build_adapter(ProviderConfig(ON_DEVICE)), OfflineProvider)
    assert isinstance(build_adapter(default_config(OLLAMA)), OpenResponsesProvider)
    assert isinstance(build_adapter(ProviderConfig(CUSTOM, "https://x", "m")), OpenResponsesProvider)
    assert isinstance(build_adapter(default_config(OPENAI)), OpenAIChatProvider)


def test_default_is_on_device_and_only_it_is_available() -> None:
    r = _router()
    assert r.active_provider_id == ON_DEVICE
    assert [d.id for d in r.available_providers()] == [ON_DEVICE]
    assert r.is_configured(ON_DEVICE)
    assert not r.is_configured(OLLAMA)


def test_unavailable_default_falls_back_to_on_device() -> None:
    r = _router(default_provider_id=OLLAMA)
    assert r.default_provider_id == ON_DEVICE


def test_saved_unavailable_selection_reverts_on_start() -> None:
    settings = InMemorySettingsStore({ACTIVE_PROVIDER_KEY: OPENAI})
    r = _router(settings)
    assert r.active_provider_id == ON_DEVICE
    assert settings.get(ACTIVE_PROVIDER_KEY) == ON_DEVICE


def test_saved_available_selection_is_restored() -> None:
    settings = InMemorySettingsStore({ACTIVE_PROVIDER_KEY: CUSTOM})
    persist_config(settings, CUSTOM)
    r = _router(settings, providers={CUSTOM: FakeProvider(CUSTOM)})
    assert r.active_provider_id == CUSTOM


def test_set_active_unavailable_reverts_to_default() -> None:
    settings = InMemorySettingsStore()
    persist_config(settings, CUSTOM)
    r = _router(settings, providers={CUSTOM: FakeProvider(CUSTOM)})

    assert r.set_active(CUSTOM) is True
    assert settings.get(ACTIVE_PROVIDER_KEY) == CUSTOM

    assert r.set_active(OPENAI) is False
    assert r.active_provider_id == ON_DEVICE
    assert settings.get(ACTIVE_PROVIDER_KEY) == ON_DEVICE

    assert r.set_active("nope") is False


@pytest.mark.asyncio
async def test_active_adapter_falls_back_when_provider_becomes_unusable() -> None:
    settings = InMemorySettingsStore()
    persist_config(settings, CUSTOM)
    fake = FakeProvider(CUSTOM, next_text="remote")
    r = _router(settings, providers={CUSTOM: fake})
    assert r.set_active(CUSTOM)

    assert await r.complete("hello") == "remote"

    fake.available = False
    reply = await r.complete("hello")
    assert reply.startswith("On-device mode")
    assert r.active_provider_id == ON_DEVICE


@pytest.mark.asyncio
async def test_complete_publishes_last_error_and_reraises() -> None:
    settings = InMemorySettingsStore()
    persist_config(settings, CUSTOM)
    fake = FakeProvider(CUSTOM, error=RateLimitedError("slow down"))
    r = _router(settings, providers={CUSTOM: fake})
    r.set_active(CUSTOM)

    with pytest.raises(RateLimitedError):
        await r.complete("p", "sys")

    assert isinstance(r.last_error, RateLimitedError)
    assert r.last_error.provider_id == CUSTOM
    assert fake.calls == [("p", "sys")]
    # No silent cross-provider retry.
    assert r.active_provider_id == CUSTOM


def test_configure_persists_config_and_credential_separately() -> None:
    settings = InMemorySettingsStore()
    creds = InMemoryCredentialStore()
    r = _router(settings, creds)

    r.configure(ProviderConfig(CUSTOM, " https://api.example.com/v1/responses ", "llama3", api_key=" sk-1 "))

    assert settings.get(config_key(CUSTOM)) == {"endpoint": "https://api.example.com/v1/responses", "model": "llama3"}
    assert creds.get(credential_key(CUSTOM)) == "sk-1"
    assert "sk-1" not in repr(settings.data)

    loaded = r.load_config(CUSTOM)
    assert loaded is not None and loaded.api_key == "sk-1"
    assert CUSTOM in [d.id for d in r.available_providers()]


def test_configure_with_empty_key_removes_stale_credential() -> None:
    creds = InMemoryCredentialStore({credential_key(CUSTOM): "old"})
    r = _router(credentials=creds)
    r.configure(ProviderConfig(CUSTOM, "http://localhost:8080/v1/responses", "m", api_key="  "))
    assert creds.get(credential_key(CUSTOM)) is None


@pytest.mark.parametrize(
    "config",
    [
        ProviderConfig("unknown", "https://x", "m"),
        ProviderConfig(ON_DEVICE, "https://x", "m"),
        ProviderConfig(CUSTOM, "https://x", " "),
        ProviderConfig(CUSTOM, "ftp://x", "m"),
        ProviderConfig(OLLAMA, "localhost:11434", "m"),
    ],
)
def test_configure_rejects_invalid(config: ProviderConfig) -> None:
    settings = InMemorySettingsStore()
    r = _router(settings)
    with pytest.raises(ConfigurationError):
        r.configure(config)
    assert config_key(config.provider_id) not in settings.data


def test_openai_allows_empty_endpoint() -> None:
    settings = InMemorySettingsStore()
    creds = InMemoryCredentialStore()
    r = _router(settings, creds)
    r.configure(ProviderConfig(OPENAI, "", "gpt-4.1-mini", api_key="sk"))
    assert OPENAI in [d.id for d in r.available_providers()]


def test_remove_active_provider_reverts_selection() -> None:
    settings = InMemorySettingsStore()
    creds = InMemoryCredentialStore()
    persist_config(settings, CUSTOM)
    creds.set(credential_key(CUSTOM), "k")
    r = _router(settings, creds, providers={CUSTOM: FakeProvider(CUSTOM)})
    r.set_active(CUSTOM)

    r.remove_provider(CUSTOM)
    assert r.active_provider_id == ON_DEVICE
    assert config_key(CUSTOM) not in settings.data
    assert creds.get(credential_key(CUSTOM)) is None
    assert r.load_config(CUSTOM) is None


@pytest.mark.asyncio
async def test_test_connection_does_not_persist() -> None:
    settings = InMemorySettingsStore()
    ok = FakeProvider(CUSTOM, next_text="OK")
    r = _router(settings, providers={CUSTOM: ok})

    assert await r.test_connection(ProviderConfig(CUSTOM, "https://x", "m")) is True
    assert config_key(CUSTOM) not in settings.data
    assert ok.calls and ok.calls[0][1] is None

    ok.error = RateLimitedError("x")
    assert await r.test_connection(ProviderConfig(CUSTOM, "https://x", "m")) is False
    assert await r.test_connection(ProviderConfig(CUSTOM, "not a url", "m")) is False
    assert await r.test_connection(ProviderConfig(ON_DEVICE)) is True


@pytest.mark.asyncio
async def test_validation_leaves_callers_config_untouched() -> None:
    r = _router(providers={CUSTOM: FakeProvider(CUSTOM, next_text="OK")})
    config = ProviderConfig(CUSTOM, "  https://api.example.com/v1/responses  ", "m")

    assert await r.test_connection(config) is True
    r.configure(config)

    assert config.endpoint == "  https://api.example.com/v1/responses  "
    assert r.load_config(CUSTOM).endpoint == "https://api.example.com/v1/responses"
