"""Groq-powered transcript summarization client."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx

from ..errors import ErrorKind, SummarizationError
from ..models import GeneratedSummary, SummaryRequest
from .prompt import build_messages

logger = logging.getLogger(__name__)

# Provider error codes and types, checked before any message text.
_QUOTA_CODES = {"insufficient_quota", "quota_exceeded", "billing_hard_limit_reached"}
_INVALID_KEY_CODES = {"invalid_api_key", "invalid_authentication"}
_RATE_LIMIT_CODES = {"rate_limit_exceeded", "rate_limit_error"}

# Fallback for providers that only report free text; the longest match wins.
_TEXT_PATTERNS: tuple[tuple[str, ErrorKind], ...] = (
    ("invalid api key", ErrorKind.INVALID_CREDENTIAL),
    ("rate limit", ErrorKind.RATE_LIMITED),
    ("api key", ErrorKind.INVALID_CREDENTIAL),
    ("quota", ErrorKind.QUOTA_EXCEEDED),
)


@dataclass(slots=True)
class GroqSummarizationConfig:
    """Configuration for invoking the Groq chat completion API."""

    api_key: str | None
    model: str = "llama3-70b-8192"
    base_url: str = "https://api.groq.com/openai/v1"
    temperature: float = 0.3
    max_output_tokens: int = 2048
    top_p: float = 1.0
    request_timeout_seconds: float | None = None
    user_agent: str | None = "MeetingSummarizer/0.1"

    def __post_init__(self) -> None:
        if self.max_output_tokens <= 0:
            raise ValueError("max_output_tokens must be positive.")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be between 0 and 2.")
        if (
            self.request_timeout_seconds is not None
            and self.request_timeout_seconds <= 0
        ):
            raise ValueError("request_timeout_seconds must be positive when provided.")


class CompletionRequestFn(Protocol):  # pragma: no cover - Protocol runtime helper
    async def __call__(
        self, *, payload: Mapping[str, Any], config: GroqSummarizationConfig
    ) -> Mapping[str, Any]: ...


def build_completion_payload(
    request: SummaryRequest, config: GroqSummarizationConfig
) -> dict[str, Any]:
    """Assemble the single non-streaming chat completion request body."""
    return {
        "model": config.model,
        "messages": build_messages(
            transcript=request.transcript, instructions=request.instructions
        ),
        "temperature": config.temperature,
        "max_tokens": config.max_output_tokens,
        "top_p": config.top_p,
        "stream": False,
    }


class SummaryClient:
    """Turns a transcript and instructions into a :class:`GeneratedSummary`."""

    def __init__(
        self,
        config: GroqSummarizationConfig,
        *,
        request_fn: CompletionRequestFn | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._request_fn = request_fn
        self._transport = transport

    @property
    def config(self) -> GroqSummarizationConfig:
        return self._config

    async def generate_summary(
        self, transcript: str, instructions: str
    ) -> GeneratedSummary:
        """Request a summary; raises :class:`SummarizationError` on failure.

        Inputs are expected to be validated by the caller. Only transport
        preconditions, such as the presence of an API key, are checked here.
        """
        if not self._config.api_key:
            raise SummarizationError(ErrorKind.MISSING_CREDENTIAL)

        request = SummaryRequest(transcript=transcript, instructions=instructions)
        payload = build_completion_payload(request, self._config)
        caller = self._request_fn or self._post_completion

        try:
            data = await caller(payload=payload, config=self._config)
        except SummarizationError:
            raise
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            body = _decode_error_body(exc.response)
            kind = classify_provider_error(status_code=status, body=body)
            logger.error(
                "Groq completion failed with status %s (%s): %s",
                status,
                kind.value,
                _error_text(body) or exc,
            )
            raise SummarizationError(kind, status_code=status) from exc
        except httpx.RequestError as exc:
            logger.error("Groq completion request failed: %s", exc)
            raise SummarizationError(
                classify_provider_error(status_code=None, body=None, text=str(exc))
            ) from exc
        except Exception as exc:  # pragma: no cover
            logger.exception("Unexpected error while generating summary")
            raise SummarizationError(ErrorKind.GENERATION_FAILED) from exc

        content = _extract_message_content(data)
        if not content or not content.strip():
            raise SummarizationError(ErrorKind.EMPTY_RESPONSE)

        return GeneratedSummary.create(content=content, prompt=instructions)

    async def _post_completion(
        self, *, payload: Mapping[str, Any], config: GroqSummarizationConfig
    ) -> Mapping[str, Any]:
        url = f"{config.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {config.api_key}"}
        if config.user_agent:
            headers["User-Agent"] = config.user_agent

        client_kwargs: dict[str, Any] = {"transport": self._transport}
        if config.request_timeout_seconds is not None:
            client_kwargs["timeout"] = config.request_timeout_seconds

        async with httpx.AsyncClient(**client_kwargs) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise SummarizationError(ErrorKind.GENERATION_FAILED) from exc
        if not isinstance(data, Mapping):
            raise SummarizationError(ErrorKind.GENERATION_FAILED)
        return data


def classify_provider_error(
    *,
    status_code: int | None,
    body: Mapping[str, Any] | None,
    text: str | None = None,
) -> ErrorKind:
    """Map a provider failure onto an :class:`ErrorKind`."""
    error = body.get("error") if isinstance(body, Mapping) else None
    code = ""
    error_type = ""
    if isinstance(error, Mapping):
        code = str(error.get("code") or "").lower()
        error_type = str(error.get("type") or "").lower()

    if code in _QUOTA_CODES or "quota" in error_type:
        return ErrorKind.QUOTA_EXCEEDED
    if code in _INVALID_KEY_CODES or status_code == 401:
        return ErrorKind.INVALID_CREDENTIAL
    if code in _RATE_LIMIT_CODES or "rate_limit" in error_type or status_code == 429:
        return ErrorKind.RATE_LIMITED

    message = (text or _error_text(body) or "").lower()
    matches = [(needle, kind) for needle, kind in _TEXT_PATTERNS if needle in message]
    if matches:
        return max(matches, key=lambda item: len(item[0]))[1]
    return ErrorKind.GENERATION_FAILED


def _decode_error_body(response: httpx.Response) -> Mapping[str, Any] | None:
    try:
        decoded = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        text = response.text
        return {"error": {"message": text}} if text else None
    return decoded if isinstance(decoded, Mapping) else None


def _error_text(body: Mapping[str, Any] | None) -> str | None:
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if isinstance(error, Mapping):
        message = error.get("message")
        return str(message) if message else None
    if isinstance(error, str):
        return error
    message = body.get("message")
    return str(message) if message else None


def _extract_message_content(payload: Mapping[str, Any]) -> str | None:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    first = choices[0]
    if not isinstance(first, Mapping):
        return None
    message = first.get("message")
    if isinstance(message, Mapping):
        content = message.get("content")
        if isinstance(content, str):
            return content
    return None


__all__ = [
    "CompletionRequestFn",
    "GroqSummarizationConfig",
    "SummaryClient",
    "build_completion_payload",
    "classify_provider_error",
]
