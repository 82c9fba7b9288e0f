# Instruction suggestions shown next to the instruction editor.

from fastapi import APIRouter

from ..summarization import PROMPT_TEMPLATES

router = APIRouter(prefix="/api/prompt-templates", tags=["templates"])


@router.get("")
async def list_prompt_templates() -> dict[str, list[str]]:
    """Return the canned summarization instructions."""
    return {"templates": list(PROMPT_TEMPLATES)}
