"""Shared pieces of the email delivery adapters."""

from __future__ import annotations

from typing import Protocol, Sequence

from ..errors import EmailDeliveryError, ErrorKind
from ..models import EmailRecipient, filter_recipients

DEFAULT_SENDER_NAME = "Meeting Summarizer"
REPLY_TO_ADDRESS = "noreply@meetingsummarizer.com"


class EmailClient(Protocol):
    """Delivers a summary to a list of recipients."""

    async def send_summary(
        self,
        recipients: Sequence[EmailRecipient],
        *,
        subject: str,
        message: str,
        summary_content: str,
        sender_name: str | None = None,
    ) -> bool:  # pragma: no cover - Protocol stub
        ...


def require_recipients(recipients: Sequence[EmailRecipient]) -> list[EmailRecipient]:
    """Return the deliverable recipients or refuse the send outright."""
    valid = filter_recipients(recipients)
    if not valid:
        raise EmailDeliveryError(ErrorKind.NO_RECIPIENTS)
    return valid


__all__ = [
    "DEFAULT_SENDER_NAME",
    "EmailClient",
    "REPLY_TO_ADDRESS",
    "require_recipients",
]
