# src/cadence/llm/router.py

"""
Completion router: owns the configured adapters and the active selection.

- Configuration is persisted per provider id in the settings store (never with the key).
- Credentials live only in the credential store.
- An unusable active selection silently reverts to the always-available default.
- No cross-provider retry: a failing call surfaces its error to the caller.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable

import httpx

from ..core.errors import ConfigurationError, LLMError
from ..core.ports import CompletionProvider, CredentialStore, SettingsStore
from .catalog import (
    ACTIVE_PROVIDER_KEY,
    CATALOG,
    ON_DEVICE,
    OPENAI,
    ProviderConfig,
    ProviderDescriptor,
    config_key,
    credential_key,
    get_descriptor,
)
from .offline import OfflineProvider
from .open_responses import OpenResponsesProvider, make_timeout, validate_endpoint
from .openai_chat import OpenAIChatProvider

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ProviderConfig], CompletionProvider]

TEST_PROMPT = "Reply with the single word OK."


def build_adapter(
        config: ProviderConfig,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
) -> CompletionProvider:
    pid = config.provider_id
    if pid == ON_DEVICE:
        return OfflineProvider(pid)
    if pid == OPENAI:
        return OpenAIChatProvider(config, connect_timeout=connect_timeout, read_timeout=read_timeout)
    return OpenResponsesProvider(
        config,
        client=http_client,
        timeout=make_timeout(connect_timeout, read_timeout),
    )


class CompletionRouter:
    def __init__(
            self,
            settings_store: SettingsStore,
            credentials: CredentialStore,
            *,
            default_provider_id: str = ON_DEVICE,
            adapter_factory: AdapterFactory | None = None,
    ) -> None:
        self._settings = settings_store
        self._credentials = credentials
        self._factory: AdapterFactory = adapter_factory or build_adapter
        self._adapters: dict[str, CompletionProvider] = {}
        self.last_error: LLMError | None = None

        self._default_id = ON_DEVICE
        if default_provider_id != ON_DEVICE:
            if self._is_available(default_provider_id):
                self._default_id = default_provider_id
            else:
                logger.warning("Default provider %r is not available; using %s", default_provider_id, ON_DEVICE)

        saved = self._settings.get(ACTIVE_PROVIDER_KEY)
        self._active_id = self._default_id
        if isinstance(saved, str) and saved:
            if self._is_available(saved):
                self._active_id = saved
            else:
                logger.info("Saved provider %r is not available; reverting to %s", saved, self._default_id)
                self._settings.set(ACTIVE_PROVIDER_KEY, self._default_id)

        logger.info("CompletionRouter ready active=%s default=%s", self._active_id, self._default_id)

    # ---- configuration lookup ----

    def load_config(self, provider_id: str) -> ProviderConfig | None:
        """Persisted configuration joined with its credential (None if never configured)."""
        if provider_id == ON_DEVICE:
            return ProviderConfig(ON_DEVICE)
        raw = self._settings.get(config_key(provider_id))
        return ProviderConfig.from_json(provider_id, raw, self._credentials.get(credential_key(provider_id)))

    def _adapter(self, provider_id: str) -> CompletionProvider | None:
        cached = self._adapters.get(provider_id)
        if cached is not None:
            return cached
        if get_descriptor(provider_id) is None:
            return None
        config = self.load_config(provider_id)
        if config is None:
            return None
        adapter = self._factory(config)
        self._adapters[provider_id] = adapter
        return adapter

    def _is_available(self, provider_id: str) -> bool:
        adapter = self._adapter(provider_id)
        return adapter is not None and adapter.is_available

    # ---- selection ----

    @property
    def default_provider_id(self) -> str:
        return self._default_id

    @property
    def active_provider_id(self) -> str:
        return self._active_id

    def available_providers(self) -> list[ProviderDescriptor]:
        return [d for d in CATALOG if self._is_available(d.id)]

    def is_configured(self, provider_id: str) -> bool:
        return provider_id == ON_DEVICE or self._settings.get(config_key(provider_id)) is not None

    def set_active(self, provider_id: str) -> bool:
        """Select a provider. Unavailable ids revert the selection to the default and return False."""
        if self._is_available(provider_id):
            self._active_id = provider_id
            self._settings.set(ACTIVE_PROVIDER_KEY, provider_id)
            logger.info("Active provider set to %s", provider_id)
            return True

        logger.info("Provider %r is not available; active reverts to %s", provider_id, self._default_id)
        self._active_id = self._default_id
        self._settings.set(ACTIVE_PROVIDER_KEY, self._default_id)
        return False

    def active_adapter(self) -> CompletionProvider:
        adapter = self._adapter(self._active_id)
        if adapter is None or not adapter.is_available:
            if self._active_id != self._default_id:
                logger.info("Active provider %s became unusable; reverting to %s", self._active_id, self._default_id)
                self._active_id = self._default_id
                self._settings.set(ACTIVE_PROVIDER_KEY, self._default_id)
            adapter = self._adapter(self._default_id)
        if adapter is None:
            adapter = OfflineProvider(ON_DEVICE)
            self._adapters[ON_DEVICE] = adapter
        return adapter

    # ---- calls ----

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        adapter = self.active_adapter()
        try:
            return await adapter.complete(prompt, system_prompt)
        except LLMError as e:
            if e.provider_id is None:
                e.provider_id = adapter.provider_id
            self.last_error = e
            logger.warning(
                "Completion failed provider=%s status=%s kind=%s",
                e.provider_id,
                e.status_code,
                e.kind,
            )
            raise

    # ---- configuration ----

    def _validate(self, config: ProviderConfig) -> ProviderConfig:
        """Checked copy of `config` with a normalized endpoint. The argument is left untouched."""
        pid = config.provider_id
        if get_descriptor(pid) is None:
            raise ConfigurationError(f"Unknown provider: {pid}", provider_id=pid)
        if pid == ON_DEVICE:
            raise ConfigurationError("The on-device provider has no configuration", provider_id=pid)
        if not config.model.strip():
            raise ConfigurationError("Model id is empty", provider_id=pid)
        if pid != OPENAI or config.endpoint.strip():
            return dataclasses.replace(config, endpoint=validate_endpoint(config.endpoint, pid))
        return dataclasses.replace(config)

    def configure(self, config: ProviderConfig) -> None:
        """Persist endpoint/model and the credential separately, then rebuild the adapter."""
        config = self._validate(config)
        pid = config.provider_id

        self._settings.set(config_key(pid), config.to_json())
        if config.has_api_key:
            self._credentials.set(credential_key(pid), str(config.api_key).strip())
        else:
            # Clearing the key must not leave a stale secret behind.
            self._credentials.delete(credential_key(pid))

        self._adapters.pop(pid, None)
        logger.info("Provider configured id=%s model=%s", pid, config.model)

    def remove_provider(self, provider_id: str) -> None:
        if provider_id == ON_DEVICE:
            return
        self._settings.delete(config_key(provider_id))
        self._credentials.delete(credential_key(provider_id))
        self._adapters.pop(provider_id, None)
        logger.info("Provider removed id=%s", provider_id)

        if self._active_id == provider_id:
            self._active_id = self._default_id
            self._settings.set(ACTIVE_PROVIDER_KEY, self._default_id)

    async def test_connection(self, config: ProviderConfig) -> bool:
        """One trivial round trip on a throwaway adapter. Nothing is persisted."""
        try:
            if config.provider_id != ON_DEVICE:
                config = self._validate(config)
            adapter = self._factory(config)
            if not adapter.is_available:
                return False
            await adapter.complete(TEST_PROMPT)
        except LLMError as e:
            logger.info(
                "Connection test failed provider=%s status=%s kind=%s",
                config.provider_id,
                e.status_code,
                e.kind,
            )
            return False
        return True
