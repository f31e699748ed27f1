# tests/test_openai_chat.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from cadence.core.errors import (
    ApiError,
    CredentialError,
    MalformedResponseError,
    ModelUnavailableError,
    RateLimitedError,
    TransportError,
)
from cadence.llm.catalog import ProviderConfig
from cadence.llm.openai_chat import OpenAIChatProvider, classify_sdk_error


# Stand-ins named like the SDK's exception classes (classification is by class name).
class AuthenticationError(Exception):
    status_code = 401


class RateLimitError(Exception):
    status_code = 429


class NotFoundError(Exception):
    status_code = 404


class APIConnectionError(Exception):
    pass


class InternalServerError(Exception):
    status_code = 500
    message = "server exploded"


class _Completions:
    def __init__(self, reply=None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.reply


def _client(content: str | None = "hi", error: Exception | None = None):
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    completions = _Completions(reply, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def _config(api_key: str | None = "sk") -> ProviderConfig:
    return ProviderConfig("openai", "", "gpt-4.1-mini", api_key=api_key)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (AuthenticationError(), CredentialError),
        (RateLimitError(), RateLimitedError),
        (NotFoundError(), ModelUnavailableError),
        (APIConnectionError(), TransportError),
        (InternalServerError(), ApiError),
    ],
)
def test_classify_sdk_error(exc, expected) -> None:
    err = classify_sdk_error(exc, "openai")
    assert isinstance(err, expected)
    assert err.provider_id == "openai"


def test_classify_uses_sdk_message_for_api_errors() -> None:
    err = classify_sdk_error(InternalServerError(), "openai")
    assert err.message == "server exploded"
    assert err.status_code == 500


@pytest.mark.asyncio
async def test_complete_builds_messages() -> None:
    client, completions = _client("answer")
    p = OpenAIChatProvider(_config(), client=client)

    assert await p.complete("question", "be short") == "answer"
    call = completions.calls[0]
    assert call["model"] == "gpt-4.1-mini"
    assert call["messages"] == [
        {"role": "system", "content": "be short"},
        {"role": "user", "content": "question"},
    ]


@pytest.mark.asyncio
async def test_complete_maps_sdk_errors() -> None:
    client, _ = _client(error=RateLimitError())
    with pytest.raises(RateLimitedError):
        await OpenAIChatProvider(_config(), client=client).complete("q")


@pytest.mark.asyncio
async def test_empty_content_is_malformed() -> None:
    client, _ = _client(content="")
    with pytest.raises(MalformedResponseError):
        await OpenAIChatProvider(_config(), client=client).complete("q")


@pytest.mark.asyncio
async def test_missing_key_raises_credential_error() -> None:
    p = OpenAIChatProvider(_config(api_key=None))
    assert not p.is_available
    with pytest.raises(CredentialError):
        await p.complete("q")
