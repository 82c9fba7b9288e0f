"""Delivery through a self-hosted email relay service."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from ..errors import EmailDeliveryError, ErrorKind
from ..models import EmailRecipient
from .base import DEFAULT_SENDER_NAME, require_recipients

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RelayConfig:
    """Location and bearer token of the relay endpoint."""

    url: str | None
    api_key: str | None = None
    request_timeout_seconds: float | None = None


class RelayEmailClient:
    """Posts every recipient to the relay in a single request."""

    def __init__(
        self,
        config: RelayConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def send_summary(
        self,
        recipients: Sequence[EmailRecipient],
        *,
        subject: str,
        message: str,
        summary_content: str,
        sender_name: str | None = None,
    ) -> bool:
        if not self._config.url:
            raise EmailDeliveryError(ErrorKind.MISSING_CONFIGURATION)

        valid = require_recipients(recipients)
        payload = {
            "recipients": [recipient.email.strip() for recipient in valid],
            "subject": subject,
            "message": message,
            "summary": summary_content,
            "senderName": sender_name or DEFAULT_SENDER_NAME,
        }
        headers = {"Authorization": f"Bearer {self._config.api_key or ''}"}

        client_kwargs: dict[str, Any] = {"transport": self._transport}
        if self._config.request_timeout_seconds is not None:
            client_kwargs["timeout"] = self._config.request_timeout_seconds

        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                response = await client.post(
                    self._config.url, headers=headers, json=payload
                )
        except httpx.RequestError as exc:
            logger.error("Email relay unreachable at %s: %s", self._config.url, exc)
            raise EmailDeliveryError(ErrorKind.SERVICE_UNAVAILABLE) from exc

        body = _decode_body(response)
        if not response.is_success:
            raise _relay_error(response.status_code, body)

        if body is None or body.get("success") is not True:
            logger.error("Email relay reported an unsuccessful delivery: %s", body)
            raise EmailDeliveryError(ErrorKind.DELIVERY_FAILED)

        logger.info("Summary delivered via relay to %d recipient(s)", len(valid))
        return True


def _relay_error(status_code: int, body: Mapping[str, Any] | None) -> EmailDeliveryError:
    logger.error("Email relay failed with status %s: %s", status_code, body)
    if status_code == 401:
        return EmailDeliveryError(
            ErrorKind.AUTHENTICATION_FAILED, status_code=status_code
        )
    if status_code == 429:
        return EmailDeliveryError(ErrorKind.RATE_LIMITED, status_code=status_code)

    server_message = body.get("message") if body else None
    return EmailDeliveryError(
        ErrorKind.DELIVERY_FAILED,
        str(server_message) if server_message else None,
        status_code=status_code,
    )


def _decode_body(response: httpx.Response) -> Mapping[str, Any] | None:
    try:
        decoded = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return decoded if isinstance(decoded, Mapping) else None


__all__ = ["RelayConfig", "RelayEmailClient"]
