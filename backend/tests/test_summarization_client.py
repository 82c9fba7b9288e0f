from __future__ import annotations

import json
from typing import Any, Mapping

import httpx
import pytest

from summarizer_backend.errors import ErrorKind, SummarizationError
from summarizer_backend.summarization import (
    SYSTEM_PROMPT,
    GroqSummarizationConfig,
    SummaryClient,
    build_summary_config,
    build_user_prompt,
    classify_provider_error,
)
from summarizer_backend.settings import Settings

TRANSCRIPT = "Alice: Let's ship on Friday.\nBob: I'll update the changelog."
INSTRUCTIONS = "Highlight only action items and deadlines"


def _completion(content: str | None) -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "model": "llama3-70b-8192",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


def _client_with_transport(handler) -> SummaryClient:
    config = GroqSummarizationConfig(api_key="test-key")
    return SummaryClient(config, transport=httpx.MockTransport(handler))


def test_build_user_prompt_embeds_instructions_and_transcript() -> None:
    prompt = build_user_prompt(transcript=TRANSCRIPT, instructions=INSTRUCTIONS)

    assert f'"{INSTRUCTIONS}"' in prompt
    assert TRANSCRIPT in prompt
    assert "markdown" in prompt


def test_build_summary_config_uses_settings() -> None:
    settings = Settings(groq_api_key="key", llm_model="other-model", llm_temperature=0.1)
    config = build_summary_config(settings)

    assert config.api_key == "key"
    assert config.model == "other-model"
    assert config.temperature == pytest.approx(0.1)
    assert config.max_output_tokens == 2048


def test_config_rejects_non_positive_max_tokens() -> None:
    with pytest.raises(ValueError):
        GroqSummarizationConfig(api_key="key", max_output_tokens=0)


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_request() -> None:
    calls: list[Mapping[str, Any]] = []

    async def request_fn(*, payload, config):
        calls.append(payload)
        return _completion("unused")

    client = SummaryClient(GroqSummarizationConfig(api_key=None), request_fn=request_fn)

    with pytest.raises(SummarizationError) as excinfo:
        await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert excinfo.value.kind is ErrorKind.MISSING_CREDENTIAL
    assert calls == []


@pytest.mark.asyncio
async def test_generate_summary_normalizes_result() -> None:
    captured: dict[str, Any] = {}

    async def request_fn(*, payload, config):
        captured.update(payload)
        return _completion("\n\n# Action Items\n- Bob: update changelog\n  ")

    client = SummaryClient(
        GroqSummarizationConfig(api_key="test-key"), request_fn=request_fn
    )
    summary = await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert summary.content == "# Action Items\n- Bob: update changelog"
    assert summary.prompt == INSTRUCTIONS
    assert summary.is_edited is False
    assert len(summary.summary_id) == 32
    assert summary.generated_at.tzinfo is not None

    assert captured["model"] == "llama3-70b-8192"
    assert captured["temperature"] == pytest.approx(0.3)
    assert captured["max_tokens"] == 2048
    assert captured["stream"] is False
    system, user = captured["messages"]
    assert system == {"role": "system", "content": SYSTEM_PROMPT}
    assert user["role"] == "user"
    assert TRANSCRIPT in user["content"]
    assert INSTRUCTIONS in user["content"]


@pytest.mark.asyncio
async def test_each_summary_gets_a_fresh_identifier() -> None:
    async def request_fn(*, payload, config):
        return _completion("Summary")

    client = SummaryClient(
        GroqSummarizationConfig(api_key="test-key"), request_fn=request_fn
    )
    first = await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)
    second = await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert first.summary_id != second.summary_id


@pytest.mark.parametrize("content", [None, "", "   \n"])
@pytest.mark.asyncio
async def test_blank_completion_is_empty_response(content: str | None) -> None:
    async def request_fn(*, payload, config):
        return _completion(content)

    client = SummaryClient(
        GroqSummarizationConfig(api_key="test-key"), request_fn=request_fn
    )
    with pytest.raises(SummarizationError) as excinfo:
        await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert excinfo.value.kind is ErrorKind.EMPTY_RESPONSE


@pytest.mark.asyncio
async def test_no_choices_is_empty_response() -> None:
    async def request_fn(*, payload, config):
        return {"choices": []}

    client = SummaryClient(
        GroqSummarizationConfig(api_key="test-key"), request_fn=request_fn
    )
    with pytest.raises(SummarizationError) as excinfo:
        await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert excinfo.value.kind is ErrorKind.EMPTY_RESPONSE


@pytest.mark.asyncio
async def test_http_request_carries_credentials_and_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion("## Summary"))

    client = _client_with_transport(handler)
    summary = await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert summary.content == "## Summary"
    assert len(seen) == 1
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.groq.com/openai/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["top_p"] == 1.0
    assert body["messages"][0]["content"] == SYSTEM_PROMPT


@pytest.mark.parametrize(
    ("status_code", "body", "expected"),
    [
        (
            401,
            {"error": {"message": "Invalid API Key", "code": "invalid_api_key"}},
            ErrorKind.INVALID_CREDENTIAL,
        ),
        (
            429,
            {
                "error": {
                    "message": "Rate limit reached for model",
                    "type": "tokens",
                    "code": "rate_limit_exceeded",
                }
            },
            ErrorKind.RATE_LIMITED,
        ),
        (
            429,
            {
                "error": {
                    "message": "You exceeded your current quota",
                    "type": "insufficient_quota",
                    "code": "insufficient_quota",
                }
            },
            ErrorKind.QUOTA_EXCEEDED,
        ),
        (
            400,
            {"error": {"message": "Organization rate limit hit, slow down"}},
            ErrorKind.RATE_LIMITED,
        ),
        (
            500,
            {"error": {"message": "upstream exploded at node 7"}},
            ErrorKind.GENERATION_FAILED,
        ),
    ],
)
@pytest.mark.asyncio
async def test_provider_errors_are_mapped(
    status_code: int, body: dict[str, Any], expected: ErrorKind
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    client = _client_with_transport(handler)
    with pytest.raises(SummarizationError) as excinfo:
        await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert excinfo.value.kind is expected
    assert excinfo.value.status_code == status_code
    assert "exploded" not in str(excinfo.value)


@pytest.mark.asyncio
async def test_rate_limit_message_differs_from_generic_fallback() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "rate limit reached"}})

    client = _client_with_transport(handler)
    with pytest.raises(SummarizationError) as excinfo:
        await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    generic = SummarizationError(ErrorKind.GENERATION_FAILED)
    assert excinfo.value.kind is ErrorKind.RATE_LIMITED
    assert str(excinfo.value) != str(generic)
    assert "Rate limit" in str(excinfo.value)


@pytest.mark.asyncio
async def test_network_error_is_generation_failed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client_with_transport(handler)
    with pytest.raises(SummarizationError) as excinfo:
        await client.generate_summary(TRANSCRIPT, INSTRUCTIONS)

    assert excinfo.value.kind is ErrorKind.GENERATION_FAILED
    assert str(excinfo.value) == "Failed to generate summary. Please try again."


def test_text_fallback_prefers_longest_match() -> None:
    kind = classify_provider_error(
        status_code=400,
        body={"error": {"message": "Invalid API key for quota project"}},
    )
    assert kind is ErrorKind.INVALID_CREDENTIAL

    kind = classify_provider_error(
        status_code=None, body=None, text="monthly quota exhausted"
    )
    assert kind is ErrorKind.QUOTA_EXCEEDED
