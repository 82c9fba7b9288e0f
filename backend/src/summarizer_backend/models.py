"""Dataclasses describing transcripts, summaries and share requests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

_PREVIEW_LENGTH = 500


def _generate_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Transcript:
    """Uploaded meeting text held for the lifetime of one workflow run."""

    content: str
    filename: str = ""
    uploaded_at: datetime = field(default_factory=_utcnow)

    @property
    def preview(self) -> str:
        if len(self.content) > _PREVIEW_LENGTH:
            return f"{self.content[:_PREVIEW_LENGTH]}..."
        return self.content

    @property
    def word_count(self) -> int:
        return len(self.content.split(" "))

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "uploaded_at": self.uploaded_at.isoformat(),
            "preview": self.preview,
            "word_count": self.word_count,
            "character_count": len(self.content),
        }


@dataclass(slots=True)
class SummaryRequest:
    """Transcript text paired with the user's summarization instructions."""

    transcript: str
    instructions: str


@dataclass(slots=True)
class GeneratedSummary:
    """Summary returned by the LLM, optionally edited afterwards."""

    summary_id: str
    content: str
    prompt: str
    generated_at: datetime
    is_edited: bool = False

    @classmethod
    def create(cls, *, content: str, prompt: str) -> "GeneratedSummary":
        return cls(
            summary_id=_generate_id(),
            content=content.strip(),
            prompt=prompt,
            generated_at=_utcnow(),
            is_edited=False,
        )

    def apply_edit(self, content: str) -> None:
        self.content = content
        self.is_edited = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary_id": self.summary_id,
            "content": self.content,
            "prompt": self.prompt,
            "generated_at": self.generated_at.isoformat(),
            "is_edited": self.is_edited,
        }


@dataclass(slots=True)
class EmailRecipient:
    """Single addressee of a shared summary."""

    email: str
    name: str | None = None

    @property
    def is_blank(self) -> bool:
        return not self.email.strip()


@dataclass(slots=True)
class ShareRequest:
    """Recipients, subject and message bundled for the email adapter."""

    recipients: list[EmailRecipient]
    subject: str
    message: str
    summary_content: str = ""

    def valid_recipients(self) -> list[EmailRecipient]:
        return filter_recipients(self.recipients)


def filter_recipients(recipients: Iterable[EmailRecipient]) -> list[EmailRecipient]:
    """Drop recipients whose address is empty once whitespace is removed."""
    return [recipient for recipient in recipients if not recipient.is_blank]


__all__ = [
    "EmailRecipient",
    "GeneratedSummary",
    "ShareRequest",
    "SummaryRequest",
    "Transcript",
    "filter_recipients",
]
