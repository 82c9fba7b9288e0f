"""Transcript summarization helpers."""

from ..settings import Settings
from .groq import (
    CompletionRequestFn,
    GroqSummarizationConfig,
    SummaryClient,
    build_completion_payload,
    classify_provider_error,
)
from .prompt import PROMPT_TEMPLATES, SYSTEM_PROMPT, build_messages, build_user_prompt


def build_summary_config(settings: Settings) -> GroqSummarizationConfig:
    """Translate application settings into the summarization client config."""
    return GroqSummarizationConfig(
        api_key=settings.groq_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        temperature=settings.llm_temperature,
        max_output_tokens=settings.llm_max_output_tokens,
        request_timeout_seconds=settings.request_timeout_seconds,
    )


__all__ = [
    "CompletionRequestFn",
    "GroqSummarizationConfig",
    "PROMPT_TEMPLATES",
    "SYSTEM_PROMPT",
    "SummaryClient",
    "build_completion_payload",
    "build_messages",
    "build_summary_config",
    "build_user_prompt",
    "classify_provider_error",
]
