"""Direct delivery through the EmailJS REST API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from ..errors import EmailDeliveryError, ErrorKind
from ..models import EmailRecipient
from .base import DEFAULT_SENDER_NAME, REPLY_TO_ADDRESS, require_recipients

logger = logging.getLogger(__name__)

_SEND_PATH = "/api/v1.0/email/send"

# EmailJS answers with plain-text reasons rather than error codes.
_TEXT_PATTERNS: tuple[tuple[str, ErrorKind], ...] = (
    ("service id", ErrorKind.INVALID_SERVICE),
    ("template id", ErrorKind.INVALID_TEMPLATE),
    ("public key", ErrorKind.INVALID_CREDENTIAL),
    ("user id", ErrorKind.INVALID_CREDENTIAL),
    ("rate limit", ErrorKind.RATE_LIMITED),
)


@dataclass(slots=True)
class EmailJSConfig:
    """Credentials identifying the EmailJS service and template."""

    service_id: str | None
    template_id: str | None
    public_key: str | None
    private_key: str | None = None
    base_url: str = "https://api.emailjs.com"
    request_timeout_seconds: float | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.service_id and self.template_id and self.public_key)


class EmailJSClient:
    """Sends one templated email per recipient, concurrently."""

    def __init__(
        self,
        config: EmailJSConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._settling: set[asyncio.Task[None]] = set()

    async def send_summary(
        self,
        recipients: Sequence[EmailRecipient],
        *,
        subject: str,
        message: str,
        summary_content: str,
        sender_name: str | None = None,
    ) -> bool:
        if not self._config.is_complete:
            raise EmailDeliveryError(ErrorKind.MISSING_CONFIGURATION)

        valid = require_recipients(recipients)

        client_kwargs: dict[str, Any] = {"transport": self._transport}
        if self._config.request_timeout_seconds is not None:
            client_kwargs["timeout"] = self._config.request_timeout_seconds

        client = httpx.AsyncClient(**client_kwargs)
        sends = [
            asyncio.create_task(
                self._send_one(
                    client,
                    recipient=recipient,
                    subject=subject,
                    message=message,
                    summary_content=summary_content,
                    sender_name=sender_name,
                )
            )
            for recipient in valid
        ]
        done, pending = await asyncio.wait(
            sends, return_when=asyncio.FIRST_EXCEPTION
        )

        if pending:
            # The first failure is reported now; the remaining sends run to
            # completion and the client closes once they settle.
            settle = asyncio.create_task(self._settle(client, pending))
            self._settling.add(settle)
            settle.add_done_callback(self._settling.discard)
        else:
            await client.aclose()

        failures = [task.exception() for task in sends if task in done]
        for failure in failures:
            if failure is not None:
                raise failure

        logger.info("Summary delivered via EmailJS to %d recipient(s)", len(valid))
        return True

    async def drain(self) -> None:
        """Wait for sends still running after an earlier failure was reported."""
        if self._settling:
            await asyncio.gather(*self._settling)

    async def _settle(
        self, client: httpx.AsyncClient, pending: set[asyncio.Task[None]]
    ) -> None:
        try:
            outcomes = await asyncio.gather(*pending, return_exceptions=True)
        finally:
            await client.aclose()
        unreported = sum(
            1 for outcome in outcomes if isinstance(outcome, BaseException)
        )
        if unreported:
            logger.warning(
                "%d EmailJS send(s) failed after the first failure was reported",
                unreported,
            )

    def build_payload(
        self,
        *,
        recipient: EmailRecipient,
        subject: str,
        message: str,
        summary_content: str,
        sender_name: str | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "service_id": self._config.service_id,
            "template_id": self._config.template_id,
            "user_id": self._config.public_key,
            "template_params": {
                "to_email": recipient.email.strip(),
                "subject": subject,
                "message": message,
                "summary_content": summary_content,
                "sender_name": sender_name or DEFAULT_SENDER_NAME,
                "reply_to": REPLY_TO_ADDRESS,
            },
        }
        if self._config.private_key:
            payload["accessToken"] = self._config.private_key
        return payload

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        *,
        recipient: EmailRecipient,
        subject: str,
        message: str,
        summary_content: str,
        sender_name: str | None,
    ) -> None:
        url = f"{self._config.base_url.rstrip('/')}{_SEND_PATH}"
        payload = self.build_payload(
            recipient=recipient,
            subject=subject,
            message=message,
            summary_content=summary_content,
            sender_name=sender_name,
        )
        try:
            response = await client.post(url, json=payload)
        except httpx.RequestError as exc:
            logger.error("EmailJS request failed: %s", exc)
            raise EmailDeliveryError(ErrorKind.DELIVERY_FAILED) from exc

        if response.is_success:
            return

        kind = classify_emailjs_error(response.status_code, response.text)
        logger.error(
            "EmailJS rejected delivery with status %s (%s): %s",
            response.status_code,
            kind.value,
            response.text,
        )
        raise EmailDeliveryError(kind, status_code=response.status_code)


def classify_emailjs_error(status_code: int, text: str) -> ErrorKind:
    if status_code == 429:
        return ErrorKind.RATE_LIMITED

    lowered = (text or "").lower()
    for needle, kind in _TEXT_PATTERNS:
        if needle in lowered:
            return kind
    return ErrorKind.DELIVERY_FAILED


__all__ = ["EmailJSClient", "EmailJSConfig", "classify_emailjs_error"]
