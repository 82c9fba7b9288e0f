"""Email delivery adapters."""

import httpx

from ..settings import EMAIL_BACKEND_RELAY, Settings
from .base import DEFAULT_SENDER_NAME, REPLY_TO_ADDRESS, EmailClient, require_recipients
from .emailjs import EmailJSClient, EmailJSConfig, classify_emailjs_error
from .relay import RelayConfig, RelayEmailClient


def build_email_client(
    settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
) -> EmailClient:
    """Return the single delivery backend selected by configuration."""
    if settings.email_backend == EMAIL_BACKEND_RELAY:
        return RelayEmailClient(
            RelayConfig(
                url=settings.email_relay_url,
                api_key=settings.email_relay_api_key,
                request_timeout_seconds=settings.request_timeout_seconds,
            ),
            transport=transport,
        )

    return EmailJSClient(
        EmailJSConfig(
            service_id=settings.emailjs_service_id,
            template_id=settings.emailjs_template_id,
            public_key=settings.emailjs_public_key,
            private_key=settings.emailjs_private_key,
            base_url=settings.emailjs_base_url,
            request_timeout_seconds=settings.request_timeout_seconds,
        ),
        transport=transport,
    )


__all__ = [
    "DEFAULT_SENDER_NAME",
    "EmailClient",
    "EmailJSClient",
    "EmailJSConfig",
    "REPLY_TO_ADDRESS",
    "RelayConfig",
    "RelayEmailClient",
    "build_email_client",
    "classify_emailjs_error",
    "require_recipients",
]
