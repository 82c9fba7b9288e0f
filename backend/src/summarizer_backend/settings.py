# Application-wide configuration helpers.

from __future__ import annotations

import os
from dataclasses import dataclass

_SETTINGS_CACHE: Settings | None = None

EMAIL_BACKEND_EMAILJS = "emailjs"
EMAIL_BACKEND_RELAY = "relay"
_EMAIL_BACKENDS = (EMAIL_BACKEND_EMAILJS, EMAIL_BACKEND_RELAY)


@dataclass(slots=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    groq_api_key: str | None = None
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama3-70b-8192"
    llm_temperature: float = 0.3
    llm_max_output_tokens: int = 2048
    request_timeout_seconds: float | None = None
    email_backend: str = EMAIL_BACKEND_EMAILJS
    emailjs_service_id: str | None = None
    emailjs_template_id: str | None = None
    emailjs_public_key: str | None = None
    emailjs_private_key: str | None = None
    emailjs_base_url: str = "https://api.emailjs.com"
    email_relay_url: str | None = None
    email_relay_api_key: str | None = None
    sender_name: str = "AI Meeting Summarizer"
    cors_origins: tuple[str, ...] = ()
    max_workflows: int = 1000
    workflow_idle_timeout_seconds: float = 3600.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables with sensible defaults."""
        groq_api_key = os.getenv("GROQ_API_KEY") or None
        llm_base_url = os.getenv(
            "SUMMARIZER_LLM_BASE_URL", "https://api.groq.com/openai/v1"
        )
        llm_model = os.getenv("SUMMARIZER_LLM_MODEL", "llama3-70b-8192")
        temperature_raw = os.getenv("SUMMARIZER_LLM_TEMPERATURE", "0.3")
        max_tokens_raw = os.getenv("SUMMARIZER_LLM_MAX_OUTPUT_TOKENS", "2048")
        timeout_raw = os.getenv("SUMMARIZER_REQUEST_TIMEOUT")

        try:
            llm_temperature = float(temperature_raw)
        except ValueError as exc:
            raise ValueError("SUMMARIZER_LLM_TEMPERATURE must be numeric.") from exc

        try:
            llm_max_output_tokens = int(max_tokens_raw)
        except ValueError as exc:
            raise ValueError(
                "SUMMARIZER_LLM_MAX_OUTPUT_TOKENS must be an integer."
            ) from exc

        # Unset means the transport default applies.
        request_timeout_seconds: float | None
        if timeout_raw in (None, "", "none", "None"):
            request_timeout_seconds = None
        else:
            try:
                request_timeout_seconds = float(timeout_raw)
            except ValueError as exc:
                raise ValueError(
                    "SUMMARIZER_REQUEST_TIMEOUT must be numeric or empty."
                ) from exc

        email_backend = (
            os.getenv("SUMMARIZER_EMAIL_BACKEND", EMAIL_BACKEND_EMAILJS).strip().lower()
        )
        if email_backend not in _EMAIL_BACKENDS:
            raise ValueError(
                "SUMMARIZER_EMAIL_BACKEND must be one of: " + ", ".join(_EMAIL_BACKENDS)
            )

        max_workflows_raw = os.getenv("SUMMARIZER_MAX_WORKFLOWS", "1000")
        idle_timeout_raw = os.getenv("SUMMARIZER_WORKFLOW_IDLE_TIMEOUT", "3600")

        try:
            max_workflows = int(max_workflows_raw)
        except ValueError as exc:
            raise ValueError("SUMMARIZER_MAX_WORKFLOWS must be an integer.") from exc
        if max_workflows <= 0:
            raise ValueError("SUMMARIZER_MAX_WORKFLOWS must be positive.")

        try:
            workflow_idle_timeout_seconds = float(idle_timeout_raw)
        except ValueError as exc:
            raise ValueError(
                "SUMMARIZER_WORKFLOW_IDLE_TIMEOUT must be numeric."
            ) from exc
        if workflow_idle_timeout_seconds <= 0:
            raise ValueError("SUMMARIZER_WORKFLOW_IDLE_TIMEOUT must be positive.")

        cors_raw = os.getenv("SUMMARIZER_CORS_ORIGINS", "")
        cors_origins = tuple(
            origin.strip() for origin in cors_raw.split(",") if origin.strip()
        )

        return cls(
            groq_api_key=groq_api_key,
            llm_base_url=llm_base_url,
            llm_model=llm_model,
            llm_temperature=llm_temperature,
            llm_max_output_tokens=llm_max_output_tokens,
            request_timeout_seconds=request_timeout_seconds,
            email_backend=email_backend,
            emailjs_service_id=os.getenv("EMAILJS_SERVICE_ID") or None,
            emailjs_template_id=os.getenv("EMAILJS_TEMPLATE_ID") or None,
            emailjs_public_key=os.getenv("EMAILJS_PUBLIC_KEY") or None,
            emailjs_private_key=os.getenv("EMAILJS_PRIVATE_KEY") or None,
            emailjs_base_url=os.getenv("EMAILJS_BASE_URL", "https://api.emailjs.com"),
            email_relay_url=os.getenv("SUMMARIZER_EMAIL_RELAY_URL") or None,
            email_relay_api_key=os.getenv("SUMMARIZER_EMAIL_RELAY_API_KEY") or None,
            sender_name=os.getenv("SUMMARIZER_SENDER_NAME", "AI Meeting Summarizer"),
            cors_origins=cors_origins,
            max_workflows=max_workflows,
            workflow_idle_timeout_seconds=workflow_idle_timeout_seconds,
        )


def get_settings() -> Settings:
    """Return cached settings instance, constructing it on first access."""
    global _SETTINGS_CACHE

    if _SETTINGS_CACHE is None:
        _SETTINGS_CACHE = Settings.from_env()

    return _SETTINGS_CACHE


def set_settings(settings: Settings | None) -> None:
    """Override the cached settings value (mainly intended for tests)."""
    global _SETTINGS_CACHE
    _SETTINGS_CACHE = settings


__all__ = [
    "EMAIL_BACKEND_EMAILJS",
    "EMAIL_BACKEND_RELAY",
    "Settings",
    "get_settings",
    "set_settings",
]
