"""Endpoints driving a summarization workflow run."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from fastapi import (
    APIRouter,
    Body,
    Depends,
    File,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from pydantic import BaseModel, Field

from ..errors import EmailDeliveryError, ErrorKind, ServiceError, SummarizationError
from ..models import EmailRecipient
from ..workflow import (
    WorkflowController,
    WorkflowError,
    WorkflowRegistry,
    WorkflowStage,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflows", tags=["workflows"])

_TEXT_CONTENT_TYPES = {"text/plain"}
_TEXT_EXTENSIONS = {".txt"}

_ERROR_STATUS = {
    ErrorKind.MISSING_CREDENTIAL: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.MISSING_CONFIGURATION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.NO_RECIPIENTS: 422,
}


class RecipientModel(BaseModel):
    email: str = Field("", description="Recipient address; blank entries are skipped.")
    name: str | None = Field(None, description="Optional display name.")

    @classmethod
    def from_recipient(cls, recipient: EmailRecipient) -> "RecipientModel":
        return cls(email=recipient.email, name=recipient.name)

    def to_recipient(self) -> EmailRecipient:
        return EmailRecipient(email=self.email, name=self.name or None)


class TranscriptResponse(BaseModel):
    filename: str
    uploaded_at: datetime
    preview: str = Field(..., description="First 500 characters of the transcript.")
    word_count: int
    character_count: int


class SummaryResponse(BaseModel):
    summary_id: str
    content: str
    prompt: str
    generated_at: datetime
    is_edited: bool


class ShareDraftResponse(BaseModel):
    recipients: list[RecipientModel]
    subject: str
    message: str


class WorkflowResponse(BaseModel):
    """Snapshot of everything the browser needs to render the current stage."""

    workflow_id: str
    stage: WorkflowStage
    transcript: TranscriptResponse | None = None
    instructions: str = ""
    can_generate: bool = False
    summary: SummaryResponse | None = None
    last_error: str | None = None
    last_error_kind: ErrorKind | None = None
    is_editing: bool = False
    edit_draft: str = ""
    share_dialog_open: bool = False
    share_draft: ShareDraftResponse
    share_error: str | None = None
    is_sending: bool = False

    @classmethod
    def from_controller(cls, controller: WorkflowController) -> "WorkflowResponse":
        transcript = controller.transcript
        summary = controller.summary
        draft = controller.share_draft
        return cls(
            workflow_id=controller.workflow_id,
            stage=controller.stage,
            transcript=(
                TranscriptResponse(**transcript.to_dict()) if transcript else None
            ),
            instructions=controller.instructions,
            can_generate=controller.can_generate,
            summary=SummaryResponse(**summary.to_dict()) if summary else None,
            last_error=controller.last_error,
            last_error_kind=controller.last_error_kind,
            is_editing=controller.is_editing,
            edit_draft=controller.edit_draft,
            share_dialog_open=controller.share_dialog_open,
            share_draft=ShareDraftResponse(
                recipients=[RecipientModel.from_recipient(r) for r in draft.recipients],
                subject=draft.subject,
                message=draft.message,
            ),
            share_error=controller.share_error,
            is_sending=controller.is_sending,
        )


class InstructionsRequest(BaseModel):
    instructions: str


class GenerateRequest(BaseModel):
    instructions: str | None = None


class SummaryContentRequest(BaseModel):
    content: str


class ShareRequestBody(BaseModel):
    recipients: list[RecipientModel] = Field(default_factory=list)
    subject: str
    message: str = ""


def get_registry(request: Request) -> WorkflowRegistry:
    return request.app.state.workflows


def get_workflow(
    workflow_id: str, registry: WorkflowRegistry = Depends(get_registry)
) -> WorkflowController:
    try:
        return registry.get(workflow_id)
    except KeyError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "workflow not found") from None


def _service_http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(
        _ERROR_STATUS.get(exc.kind, status.HTTP_502_BAD_GATEWAY),
        detail={"kind": exc.kind.value, "message": exc.message},
    )


def _conflict(exc: WorkflowError) -> HTTPException:
    return HTTPException(status.HTTP_409_CONFLICT, detail=str(exc))


def _is_plain_text(file: UploadFile) -> bool:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type in _TEXT_CONTENT_TYPES:
        return True
    return Path(file.filename or "").suffix.lower() in _TEXT_EXTENSIONS


@router.post(
    "", status_code=status.HTTP_201_CREATED, response_model=WorkflowResponse
)
def create_workflow(
    registry: WorkflowRegistry = Depends(get_registry),
) -> WorkflowResponse:
    """Start a new workflow run in the upload stage."""
    controller = registry.create()
    return WorkflowResponse.from_controller(controller)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
def read_workflow(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    return WorkflowResponse.from_controller(controller)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workflow(
    workflow_id: str, registry: WorkflowRegistry = Depends(get_registry)
) -> None:
    """Forget a workflow and everything it holds."""
    if not registry.discard(workflow_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "workflow not found")


@router.post("/{workflow_id}/transcript", response_model=WorkflowResponse)
async def upload_transcript(
    file: UploadFile = File(...),
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    """Accept a plain-text transcript; the file is read fully into memory."""
    try:
        if not _is_plain_text(file):
            logger.info(
                "Rejected transcript upload %r with content type %s",
                file.filename,
                file.content_type,
            )
            raise HTTPException(
                status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=(
                    "Unsupported file type. "
                    "Please upload a plain-text (.txt) transcript."
                ),
            )
        raw = await file.read()
    finally:
        await file.close()

    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail="Transcript must be UTF-8 encoded text.",
        ) from exc

    try:
        controller.submit_transcript(content, Path(file.filename or "").name)
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.delete("/{workflow_id}/transcript", response_model=WorkflowResponse)
def clear_transcript(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.submit_transcript("", "")
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.put("/{workflow_id}/instructions", response_model=WorkflowResponse)
def update_instructions(
    body: InstructionsRequest,
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.set_instructions(body.instructions)
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/generate", response_model=WorkflowResponse)
async def generate_summary(
    body: GenerateRequest | None = Body(None),
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    """Run one generation cycle and return the resulting snapshot."""
    if controller.stage == WorkflowStage.GENERATING:
        raise HTTPException(
            status.HTTP_409_CONFLICT, detail="A summary is already being generated."
        )
    if body is not None and body.instructions is not None:
        try:
            controller.set_instructions(body.instructions)
        except WorkflowError as exc:
            raise _conflict(exc) from exc
    if not controller.can_generate:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            detail="A transcript and instructions are required before generating.",
        )

    try:
        summary = await controller.generate()
    except SummarizationError as exc:
        raise _service_http_error(exc) from exc

    if summary is None:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            detail="The workflow was reset before generation finished.",
        )
    return WorkflowResponse.from_controller(controller)


@router.put("/{workflow_id}/summary", response_model=WorkflowResponse)
def replace_summary(
    body: SummaryContentRequest,
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.edit_summary(body.content)
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/summary/edit", response_model=WorkflowResponse)
def begin_summary_edit(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.begin_edit()
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.put("/{workflow_id}/summary/edit", response_model=WorkflowResponse)
def update_summary_edit(
    body: SummaryContentRequest,
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.update_edit_draft(body.content)
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/summary/edit/save", response_model=WorkflowResponse)
def save_summary_edit(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.save_edit()
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/summary/edit/cancel", response_model=WorkflowResponse)
def cancel_summary_edit(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.cancel_edit()
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/share/open", response_model=WorkflowResponse)
def open_share_dialog(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.open_share_dialog()
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/share/close", response_model=WorkflowResponse)
def close_share_dialog(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    try:
        controller.close_share_dialog()
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/share", response_model=WorkflowResponse)
async def share_summary(
    body: ShareRequestBody,
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    """Email the current summary to the listed recipients."""
    try:
        await controller.share(
            [recipient.to_recipient() for recipient in body.recipients],
            body.subject,
            body.message,
        )
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    except EmailDeliveryError as exc:
        raise _service_http_error(exc) from exc
    return WorkflowResponse.from_controller(controller)


@router.post("/{workflow_id}/reset", response_model=WorkflowResponse)
def reset_workflow(
    controller: WorkflowController = Depends(get_workflow),
) -> WorkflowResponse:
    """Discard the current run and return to the upload stage."""
    try:
        controller.reset()
    except WorkflowError as exc:
        raise _conflict(exc) from exc
    return WorkflowResponse.from_controller(controller)


__all__ = ["router", "WorkflowResponse", "get_registry", "get_workflow"]
