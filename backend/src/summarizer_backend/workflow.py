"""State machine driving the upload, instructions, generation and summary flow."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Protocol, Sequence

from .delivery import EmailClient
from .errors import EmailDeliveryError, ErrorKind, ServiceError, SummarizationError
from .models import EmailRecipient, GeneratedSummary, ShareRequest, Transcript

logger = logging.getLogger(__name__)

DEFAULT_SHARE_MESSAGE = "Please find the meeting summary attached below."
DEFAULT_SENDER_NAME = "AI Meeting Summarizer"


class WorkflowStage(str, Enum):
    """Stages of a single workflow run."""

    UPLOAD = "upload"
    INSTRUCTIONS = "instructions"
    GENERATING = "generating"
    SUMMARY = "summary"


class WorkflowError(RuntimeError):
    """Raised when a command is not allowed in the current stage."""


class SummaryGenerator(Protocol):
    async def generate_summary(
        self, transcript: str, instructions: str
    ) -> GeneratedSummary:  # pragma: no cover - Protocol stub
        ...


def default_share_subject(today: date | None = None) -> str:
    today = today or date.today()
    return f"Meeting Summary - {today.month}/{today.day}/{today.year}"


@dataclass(slots=True)
class ShareDraft:
    """Recipients, subject and message as entered in the share dialog."""

    recipients: list[EmailRecipient] = field(
        default_factory=lambda: [EmailRecipient(email="", name="")]
    )
    subject: str = field(default_factory=default_share_subject)
    message: str = DEFAULT_SHARE_MESSAGE


class WorkflowController:
    """Owns all state of one workflow run and mediates the two adapters.

    Commands are plain methods so the flow can be driven without any
    rendering layer. ``generate`` and ``share`` are the only coroutines; the
    stage and sending guards keep at most one of them in flight.
    """

    def __init__(
        self,
        *,
        summary_client: SummaryGenerator,
        email_client: EmailClient,
        sender_name: str = DEFAULT_SENDER_NAME,
        workflow_id: str | None = None,
    ) -> None:
        self.workflow_id = workflow_id or uuid.uuid4().hex
        self._summary_client = summary_client
        self._email_client = email_client
        self._sender_name = sender_name
        self._run = 0
        # Owned by ``share`` and never cleared by a reset.
        self._sending = False
        self._clear()

    def _clear(self) -> None:
        self._stage = WorkflowStage.UPLOAD
        self._transcript: Transcript | None = None
        self._instructions = ""
        self._summary: GeneratedSummary | None = None
        self._last_error: str | None = None
        self._last_error_kind: ErrorKind | None = None
        self._editing = False
        self._edit_draft = ""
        self._share_dialog_open = False
        self._share_draft = ShareDraft()
        self._share_error: str | None = None

    # State accessors -------------------------------------------------------

    @property
    def stage(self) -> WorkflowStage:
        return self._stage

    @property
    def transcript(self) -> Transcript | None:
        return self._transcript

    @property
    def filename(self) -> str:
        return self._transcript.filename if self._transcript else ""

    @property
    def instructions(self) -> str:
        return self._instructions

    @property
    def summary(self) -> GeneratedSummary | None:
        return self._summary

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def last_error_kind(self) -> ErrorKind | None:
        return self._last_error_kind

    @property
    def is_editing(self) -> bool:
        return self._editing

    @property
    def edit_draft(self) -> str:
        return self._edit_draft

    @property
    def share_dialog_open(self) -> bool:
        return self._share_dialog_open

    @property
    def share_draft(self) -> ShareDraft:
        return self._share_draft

    @property
    def share_error(self) -> str | None:
        return self._share_error

    @property
    def is_sending(self) -> bool:
        return self._sending

    @property
    def is_busy(self) -> bool:
        return self._sending or self._stage == WorkflowStage.GENERATING

    @property
    def can_generate(self) -> bool:
        return (
            self._stage == WorkflowStage.INSTRUCTIONS
            and self._transcript is not None
            and bool(self._transcript.content.strip())
            and bool(self._instructions.strip())
        )

    # Upload and instructions -----------------------------------------------

    def submit_transcript(self, content: str, filename: str = "") -> WorkflowStage:
        """Store uploaded text; blank content returns the run to the upload stage."""
        if self._stage not in (WorkflowStage.UPLOAD, WorkflowStage.INSTRUCTIONS):
            raise WorkflowError(
                f"Cannot replace the transcript while in the {self._stage.value} stage."
            )

        if not content.strip():
            self._transcript = None
            self._stage = WorkflowStage.UPLOAD
            return self._stage

        self._transcript = Transcript(content=content, filename=filename)
        self._stage = WorkflowStage.INSTRUCTIONS
        logger.info(
            "Workflow %s received transcript %r (%d characters)",
            self.workflow_id,
            filename,
            len(content),
        )
        return self._stage

    def set_instructions(self, text: str) -> None:
        if self._stage == WorkflowStage.GENERATING:
            raise WorkflowError("Instructions cannot change while generating.")
        self._instructions = text

    def submit_instructions(self, text: str | None = None) -> bool:
        """Enter the generating stage; a no-op returning False for blank input."""
        if self._stage != WorkflowStage.INSTRUCTIONS:
            return False
        if text is not None:
            self._instructions = text
        if not self.can_generate:
            return False

        self._run += 1
        self._stage = WorkflowStage.GENERATING
        self._last_error = None
        self._last_error_kind = None
        return True

    # Generation outcome ----------------------------------------------------

    def generation_succeeded(
        self, summary: GeneratedSummary, *, run: int | None = None
    ) -> bool:
        if not self._accepts_result(run):
            logger.info(
                "Workflow %s discarded a summary from a superseded run",
                self.workflow_id,
            )
            return False

        summary.is_edited = False
        self._summary = summary
        self._editing = False
        self._edit_draft = summary.content
        self._stage = WorkflowStage.SUMMARY
        return True

    def generation_failed(
        self, error: BaseException | str, *, run: int | None = None
    ) -> bool:
        if not self._accepts_result(run):
            return False

        if isinstance(error, ServiceError):
            kind = error.kind
            message = error.message
        else:
            fallback = SummarizationError(ErrorKind.GENERATION_FAILED)
            kind = fallback.kind
            message = error if isinstance(error, str) and error else fallback.message

        self._last_error = message
        self._last_error_kind = kind
        self._stage = WorkflowStage.INSTRUCTIONS
        return True

    def _accepts_result(self, run: int | None) -> bool:
        if self._stage != WorkflowStage.GENERATING:
            return False
        return run is None or run == self._run

    async def generate(self) -> GeneratedSummary | None:
        """Run one generation cycle.

        Returns ``None`` without contacting the provider when generation
        cannot start, and when the run was reset before the provider
        answered. Provider failures move the run back to the instructions
        stage before the :class:`SummarizationError` is re-raised for the
        caller to display.
        """
        if not self.submit_instructions():
            return None

        run = self._run
        transcript = self._transcript.content if self._transcript else ""
        try:
            summary = await self._summary_client.generate_summary(
                transcript, self._instructions
            )
        except SummarizationError as exc:
            logger.warning(
                "Workflow %s generation failed (%s): %s",
                self.workflow_id,
                exc.kind.value,
                exc,
            )
            if not self.generation_failed(exc, run=run):
                return None
            raise
        except Exception as exc:
            logger.exception("Workflow %s generation crashed", self.workflow_id)
            if not self.generation_failed(exc, run=run):
                return None
            raise SummarizationError(ErrorKind.GENERATION_FAILED) from exc

        if not self.generation_succeeded(summary, run=run):
            return None
        return summary

    # Editing ---------------------------------------------------------------

    def _require_summary(self) -> GeneratedSummary:
        if self._stage != WorkflowStage.SUMMARY or self._summary is None:
            raise WorkflowError("No summary is available in the current stage.")
        return self._summary

    def edit_summary(self, content: str) -> GeneratedSummary:
        summary = self._require_summary()
        summary.apply_edit(content)
        self._edit_draft = content
        return summary

    def begin_edit(self) -> str:
        summary = self._require_summary()
        self._editing = True
        self._edit_draft = summary.content
        return self._edit_draft

    def update_edit_draft(self, text: str) -> None:
        self._require_summary()
        if not self._editing:
            raise WorkflowError("Start editing before changing the draft.")
        self._edit_draft = text

    def save_edit(self) -> GeneratedSummary:
        if not self._editing:
            raise WorkflowError("There is no edit in progress.")
        summary = self.edit_summary(self._edit_draft)
        self._editing = False
        return summary

    def cancel_edit(self) -> GeneratedSummary:
        summary = self._require_summary()
        self._edit_draft = summary.content
        self._editing = False
        return summary

    # Sharing ---------------------------------------------------------------

    def open_share_dialog(self) -> None:
        self._require_summary()
        self._share_dialog_open = True

    def close_share_dialog(self) -> None:
        if self._sending:
            raise WorkflowError("Cannot close the share dialog while sending.")
        self._share_dialog_open = False
        self._share_error = None

    async def share(
        self,
        recipients: Sequence[EmailRecipient],
        subject: str,
        message: str,
    ) -> bool:
        """Email the current summary.

        On failure the dialog stays open with the error recorded and the
        entered recipients, subject and message kept for a retry.
        """
        summary = self._require_summary()
        if self._sending:
            raise WorkflowError("A summary is already being sent.")

        self._share_dialog_open = True
        self._share_draft = ShareDraft(
            recipients=list(recipients), subject=subject, message=message
        )
        self._share_error = None

        request = ShareRequest(
            recipients=list(recipients),
            subject=subject,
            message=message,
            summary_content=summary.content,
        )
        valid = request.valid_recipients()
        if not valid:
            error = EmailDeliveryError(ErrorKind.NO_RECIPIENTS)
            self._share_error = error.message
            raise error

        run = self._run
        self._sending = True
        try:
            await self._email_client.send_summary(
                valid,
                subject=request.subject,
                message=request.message,
                summary_content=request.summary_content,
                sender_name=self._sender_name,
            )
        except EmailDeliveryError as exc:
            logger.warning(
                "Workflow %s share failed (%s): %s",
                self.workflow_id,
                exc.kind.value,
                exc,
            )
            if self._is_current_share(run, summary):
                self._share_error = exc.message
            raise
        except Exception as exc:
            logger.exception("Workflow %s share crashed", self.workflow_id)
            error = EmailDeliveryError(ErrorKind.DELIVERY_FAILED)
            if self._is_current_share(run, summary):
                self._share_error = error.message
            raise error from exc
        finally:
            self._sending = False

        if self._is_current_share(run, summary):
            self._share_dialog_open = False
            self._share_draft = ShareDraft()
        logger.info(
            "Workflow %s shared summary %s with %d recipient(s)",
            self.workflow_id,
            summary.summary_id,
            len(valid),
        )
        return True

    def _is_current_share(self, run: int, summary: GeneratedSummary) -> bool:
        return run == self._run and self._summary is summary

    # Reset -----------------------------------------------------------------

    def reset(self) -> None:
        """Discard the transcript, instructions and summary of this run.

        Refused while a share is in flight so that a send never overlaps
        the next run.
        """
        if self._sending:
            raise WorkflowError("Cannot reset while a summary is being sent.")
        self._run += 1
        self._clear()


class WorkflowRegistry:
    """In-memory mapping of workflow ids to controllers, one per session.

    Workflows untouched for ``idle_timeout_seconds`` are dropped, and once
    ``max_workflows`` is reached the least recently used idle workflow makes
    room for a new one. Workflows with a generation or send in flight are
    never evicted.
    """

    def __init__(
        self,
        factory: Callable[[], WorkflowController],
        *,
        max_workflows: int | None = 1000,
        idle_timeout_seconds: float | None = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_workflows is not None and max_workflows <= 0:
            raise ValueError("max_workflows must be positive when provided.")
        if idle_timeout_seconds is not None and idle_timeout_seconds <= 0:
            raise ValueError("idle_timeout_seconds must be positive when provided.")
        self._factory = factory
        self._max_workflows = max_workflows
        self._idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock
        # Insertion order doubles as least-recently-used order.
        self._workflows: dict[str, WorkflowController] = {}
        self._last_seen: dict[str, float] = {}

    def create(self) -> WorkflowController:
        self._evict_idle()
        self._evict_overflow()
        controller = self._factory()
        self._workflows[controller.workflow_id] = controller
        self._touch(controller.workflow_id)
        return controller

    def get(self, workflow_id: str) -> WorkflowController:
        controller = self._workflows[workflow_id]
        if self._is_expired(workflow_id) and not controller.is_busy:
            self.discard(workflow_id)
            raise KeyError(workflow_id)
        self._workflows[workflow_id] = self._workflows.pop(workflow_id)
        self._touch(workflow_id)
        return controller

    def discard(self, workflow_id: str) -> bool:
        self._last_seen.pop(workflow_id, None)
        return self._workflows.pop(workflow_id, None) is not None

    def _touch(self, workflow_id: str) -> None:
        self._last_seen[workflow_id] = self._clock()

    def _is_expired(self, workflow_id: str) -> bool:
        if self._idle_timeout_seconds is None:
            return False
        idle = self._clock() - self._last_seen.get(workflow_id, 0.0)
        return idle >= self._idle_timeout_seconds

    def _evict_idle(self) -> None:
        expired = [
            workflow_id
            for workflow_id, controller in self._workflows.items()
            if not controller.is_busy and self._is_expired(workflow_id)
        ]
        for workflow_id in expired:
            self.discard(workflow_id)
        if expired:
            logger.info("Evicted %d idle workflow(s)", len(expired))

    def _evict_overflow(self) -> None:
        if self._max_workflows is None:
            return
        candidates = [
            workflow_id
            for workflow_id, controller in self._workflows.items()
            if not controller.is_busy
        ]
        excess = len(self._workflows) - self._max_workflows + 1
        for workflow_id in candidates[: max(excess, 0)]:
            logger.info("Evicted workflow %s to stay within capacity", workflow_id)
            self.discard(workflow_id)

    def __len__(self) -> int:
        return len(self._workflows)


__all__ = [
    "DEFAULT_SHARE_MESSAGE",
    "ShareDraft",
    "SummaryGenerator",
    "WorkflowController",
    "WorkflowError",
    "WorkflowRegistry",
    "WorkflowStage",
    "default_share_subject",
]
