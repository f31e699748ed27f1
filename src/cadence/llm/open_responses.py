# src/cadence/llm/open_responses.py

"""
Generic networked adapter speaking the Open Responses wire format.

Request:  {"model": ..., "input": "<prompt>"}  or  {"model": ..., "input": [system msg, user msg]}
Success:  {"output": [{"type": "message", "content": [{"type": "output_text", "text": "..."}]}]}
Error:    {"error": {"message": "..."}}
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from ..core.errors import (
    ApiError,
    ConfigurationError,
    CredentialError,
    MalformedResponseError,
    ModelUnavailableError,
    RateLimitedError,
    TransportError,
)
from .catalog import ProviderConfig

logger = logging.getLogger(__name__)


def make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def validate_endpoint(endpoint: str, provider_id: str) -> str:
    """Return the stripped endpoint, or raise ConfigurationError if it is not an absolute http(s) URL."""
    url = (endpoint or "").strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError("Invalid endpoint URL", provider_id=provider_id)
    return url


def build_payload(model: str, prompt: str, system_prompt: str | None) -> dict[str, Any]:
    if system_prompt is None:
        return {"model": model, "input": prompt}
    return {
        "model": model,
        "input": [
            {"type": "message", "role": "system", "content": system_prompt},
            {"type": "message", "role": "user", "content": prompt},
        ],
    }


def build_headers(api_key: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key and api_key.strip():
        headers["Authorization"] = f"Bearer {api_key.strip()}"
    return headers


def _error_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    err = body.get("error")
    if not isinstance(err, dict):
        return None
    msg = err.get("message")
    return msg if isinstance(msg, str) else None


def extract_output_text(body: Any) -> str:
    """
    Concatenate every output_text block of every message item.

    Raises MalformedResponseError when the envelope is missing, empty or yields no text.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError("Response is not a JSON object")
    output = body.get("output")
    if not isinstance(output, list) or not output:
        raise MalformedResponseError("Response has no output items")

    parts: list[str] = []
    for item in output:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        content = item.get("content")
        if not isinstance(content, list):
            continue
        for block in content:
            if isinstance(block, dict) and block.get("type") == "output_text":
                text = block.get("text")
                if isinstance(text, str):
                    parts.append(text)

    text = "".join(parts)
    if not text:
        raise MalformedResponseError("Response contained no output_text")
    return text


class OpenResponsesProvider:
    """
    POSTs to the configured endpoint with httpx.

    A caller-supplied AsyncClient is reused (tests pass one built on httpx.MockTransport);
    otherwise a short-lived client is opened per call.
    """

    def __init__(
            self,
            config: ProviderConfig,
            *,
            client: httpx.AsyncClient | None = None,
            timeout: httpx.Timeout | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._timeout = timeout or make_timeout(5.0, 60.0)

    @property
    def provider_id(self) -> str:
        return self._config.provider_id

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def is_available(self) -> bool:
        return bool(self._config.endpoint.strip() and self._config.model.strip())

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        pid = self.provider_id
        url = validate_endpoint(self._config.endpoint, pid)
        if not self._config.model.strip():
            raise ConfigurationError("Model id is empty", provider_id=pid)

        payload = build_payload(self._config.model, prompt, system_prompt)
        headers = build_headers(self._config.api_key)

        try:
            if self._client is not None:
                resp = await self._client.post(url, json=payload, headers=headers, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("LLM: timeout provider=%s (%s)", pid, e.__class__.__name__)
            raise TransportError("Request timed out", provider_id=pid) from e
        except httpx.HTTPError as e:
            logger.warning("LLM: transport error provider=%s (%s)", pid, e.__class__.__name__)
            raise TransportError("Network error", provider_id=pid) from e

        return self._handle_response(resp)

    def _handle_response(self, resp: httpx.Response) -> str:
        pid = self.provider_id
        status = resp.status_code

        try:
            body: Any = resp.json()
        except ValueError:
            body = None

        if 200 <= status < 300:
            api_msg = _error_message(body)
            if api_msg is not None:
                logger.warning("LLM: error envelope in 2xx reply provider=%s status=%s", pid, status)
                raise ApiError(api_msg, provider_id=pid, status_code=status)
            try:
                text = extract_output_text(body)
            except MalformedResponseError as e:
                logger.warning("LLM: malformed reply provider=%s status=%s", pid, status)
                e.provider_id = pid
                e.status_code = status
                raise
            logger.debug("LLM: reply ok provider=%s status=%s chars=%d", pid, status, len(text))
            return text

        logger.warning("LLM: HTTP error provider=%s status=%s", pid, status)
        if status == 401:
            raise CredentialError("Unauthorized", provider_id=pid, status_code=status)
        if status == 429:
            raise RateLimitedError("Rate limited", provider_id=pid, status_code=status)
        if status == 503:
            raise ModelUnavailableError("Model unavailable", provider_id=pid, status_code=status)
        raise ApiError(_error_message(body) or f"HTTP {status}", provider_id=pid, status_code=status)
