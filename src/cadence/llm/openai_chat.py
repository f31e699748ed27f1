# src/cadence/llm/openai_chat.py

from __future__ import annotations

import logging
from typing import Any

import openai
from openai import AsyncOpenAI

from ..core.errors import (
    ApiError,
    ConfigurationError,
    CredentialError,
    LLMError,
    MalformedResponseError,
    ModelUnavailableError,
    RateLimitedError,
    TransportError,
)
from .catalog import ProviderConfig
from .open_responses import make_timeout

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "AuthenticationError",
        "PermissionDeniedError",
        "UnauthorizedError",
    }


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
    }


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible SDK uses NotFoundError for HTTP 404 (unknown model)
    return exc.__class__.__name__ in {"NotFoundError"}


def classify_sdk_error(exc: Exception, provider_id: str) -> LLMError:
    """Map an SDK exception onto the provider error taxonomy."""
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        status = None

    if _is_auth_error(exc):
        return CredentialError("Authentication failed", provider_id=provider_id, status_code=status)
    if _is_rate_limit_error(exc):
        return RateLimitedError("Rate limited", provider_id=provider_id, status_code=status)
    if _is_not_found_error(exc) or status == 503:
        return ModelUnavailableError("Model unavailable", provider_id=provider_id, status_code=status)
    if _is_connection_error(exc):
        return TransportError("Network error", provider_id=provider_id)

    message = getattr(exc, "message", None)
    if not isinstance(message, str) or not message.strip():
        message = f"HTTP {status}" if status is not None else exc.__class__.__name__
    return ApiError(message, provider_id=provider_id, status_code=status)


class OpenAIChatProvider:
    """
    Chat-completions adapter on the official SDK.

    The client is created lazily with automatic retries disabled: the router never
    retries on its own and neither should the transport underneath it.
    """

    def __init__(
            self,
            config: ProviderConfig,
            *,
            client: Any | None = None,
            connect_timeout: float = 5.0,
            read_timeout: float = 60.0,
    ) -> None:
        self._config = config
        self._client = client
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout

    @property
    def provider_id(self) -> str:
        return self._config.provider_id

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def is_available(self) -> bool:
        return self._config.has_api_key and bool(self._config.model.strip())

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        if not self._config.has_api_key:
            raise CredentialError("API key is not set", provider_id=self.provider_id)

        kwargs: dict[str, Any] = {
            "api_key": str(self._config.api_key).strip(),
            "timeout": make_timeout(self._connect_timeout, self._read_timeout),
            "max_retries": 0,
        }
        base_url = self._config.endpoint.strip()
        if base_url:
            kwargs["base_url"] = base_url

        self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        pid = self.provider_id
        if not self._config.model.strip():
            raise ConfigurationError("Model id is empty", provider_id=pid)

        client = self._get_client()

        messages: list[dict[str, str]] = []
        if system_prompt is not None:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.info("LLM: request provider=%s model=%s", pid, self._config.model)
        try:
            resp = await client.chat.completions.create(model=self._config.model, messages=messages)
        except Exception as e:
            err = classify_sdk_error(e, pid)
            logger.warning(
                "LLM: error provider=%s status=%s kind=%s (%s)",
                pid,
                err.status_code,
                err.kind,
                e.__class__.__name__,
            )
            raise err from e

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None

        if not isinstance(content, str) or not content:
            logger.warning("LLM: empty completion provider=%s", pid)
            raise MalformedResponseError("Empty completion", provider_id=pid)
        return content
