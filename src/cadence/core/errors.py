# src/cadence/core/errors.py

"""
Provider error taxonomy.

Every adapter failure surfaces as an LLMError subclass with a stable ErrorKind, the provider id
and (when known) the HTTP status. Messages never include prompt or reply text.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_ENDPOINT = "invalid_endpoint"
    NO_CREDENTIAL = "no_credential"
    RATE_LIMITED = "rate_limited"
    MODEL_UNAVAILABLE = "model_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    TRANSPORT_ERROR = "transport_error"
    API_ERROR = "api_error"


class LLMError(Exception):
    kind: ErrorKind = ErrorKind.API_ERROR

    def __init__(
        self,
        message: str = "",
        *,
        provider_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value
        self.provider_id = provider_id
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in {ErrorKind.RATE_LIMITED, ErrorKind.MODEL_UNAVAILABLE, ErrorKind.TRANSPORT_ERROR}


class ConfigurationError(LLMError):
    kind = ErrorKind.INVALID_ENDPOINT


class CredentialError(LLMError):
    kind = ErrorKind.NO_CREDENTIAL


class RateLimitedError(LLMError):
    kind = ErrorKind.RATE_LIMITED


class ModelUnavailableError(LLMError):
    kind = ErrorKind.MODEL_UNAVAILABLE


class MalformedResponseError(LLMError):
    kind = ErrorKind.MALFORMED_RESPONSE


class TransportError(LLMError):
    kind = ErrorKind.TRANSPORT_ERROR


class ApiError(LLMError):
    kind = ErrorKind.API_ERROR


def friendly_llm_error_message(err: Exception) -> str:
    """User-facing text for a provider failure (actionable, no payloads)."""
    if not isinstance(err, LLMError):
        return str(err).strip() or "AI error."

    kind = err.kind
    if kind == ErrorKind.INVALID_ENDPOINT:
        return "The AI provider is not configured correctly. Check the endpoint URL and model id."
    if kind == ErrorKind.NO_CREDENTIAL:
        return "API key missing or rejected. Please re-enter your API key in Settings."
    if kind == ErrorKind.RATE_LIMITED:
        return "Rate limited. Please try again later."
    if kind == ErrorKind.MODEL_UNAVAILABLE:
        return "The AI model is currently unavailable. Please try again later."
    if kind == ErrorKind.MALFORMED_RESPONSE:
        return "Received an invalid response from the AI service."
    if kind == ErrorKind.TRANSPORT_ERROR:
        return "Network error while contacting the AI service. Try again later."
    return f"API error: {err.message}"
