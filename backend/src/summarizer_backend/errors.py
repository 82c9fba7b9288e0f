"""Error taxonomy shared by the summarization and delivery adapters."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced to the user."""

    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    EMPTY_RESPONSE = "empty_response"
    GENERATION_FAILED = "generation_failed"
    MISSING_CONFIGURATION = "missing_configuration"
    NO_RECIPIENTS = "no_recipients"
    INVALID_SERVICE = "invalid_service"
    INVALID_TEMPLATE = "invalid_template"
    SERVICE_UNAVAILABLE = "service_unavailable"
    AUTHENTICATION_FAILED = "authentication_failed"
    DELIVERY_FAILED = "delivery_failed"


_SUMMARY_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MISSING_CREDENTIAL: (
        "Groq API key not configured. Please add your API key to the environment."
    ),
    ErrorKind.INVALID_CREDENTIAL: (
        "Invalid Groq API key. Please check your API key configuration."
    ),
    ErrorKind.RATE_LIMITED: "Rate limit exceeded. Please try again in a moment.",
    ErrorKind.QUOTA_EXCEEDED: "API quota exceeded. Please check your Groq account.",
    ErrorKind.EMPTY_RESPONSE: "No response generated from Groq API.",
    ErrorKind.GENERATION_FAILED: "Failed to generate summary. Please try again.",
}

_DELIVERY_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MISSING_CONFIGURATION: (
        "Email delivery configuration missing. Please add your email service "
        "credentials to the environment."
    ),
    ErrorKind.NO_RECIPIENTS: "Please add at least one recipient email address.",
    ErrorKind.INVALID_SERVICE: (
        "Invalid EmailJS service ID. Please check your configuration."
    ),
    ErrorKind.INVALID_TEMPLATE: (
        "Invalid EmailJS template ID. Please check your configuration."
    ),
    ErrorKind.INVALID_CREDENTIAL: (
        "Invalid EmailJS public key. Please check your configuration."
    ),
    ErrorKind.RATE_LIMITED: "Email rate limit exceeded. Please try again later.",
    ErrorKind.SERVICE_UNAVAILABLE: (
        "Email service unavailable. Please try again later."
    ),
    ErrorKind.AUTHENTICATION_FAILED: (
        "Email service authentication failed. Please check API key."
    ),
    ErrorKind.DELIVERY_FAILED: "Failed to send email. Please try again.",
}


class ServiceError(RuntimeError):
    """Base class for failures raised by the external-service adapters."""

    default_kind: ErrorKind = ErrorKind.GENERATION_FAILED
    messages: dict[ErrorKind, str] = {}

    def __init__(
        self,
        kind: ErrorKind | None = None,
        message: str | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind or self.default_kind
        self.status_code = status_code
        super().__init__(message or self.messages.get(self.kind, "Request failed."))

    @property
    def message(self) -> str:
        return str(self)


class SummarizationError(ServiceError):
    """Raised when a summary could not be generated."""

    default_kind = ErrorKind.GENERATION_FAILED
    messages = _SUMMARY_MESSAGES


class EmailDeliveryError(ServiceError):
    """Raised when a summary could not be delivered by email."""

    default_kind = ErrorKind.DELIVERY_FAILED
    messages = _DELIVERY_MESSAGES


__all__ = ["EmailDeliveryError", "ErrorKind", "ServiceError", "SummarizationError"]
