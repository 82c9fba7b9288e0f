"""Prompt construction for transcript summarization."""

from __future__ import annotations

SYSTEM_PROMPT = """You are an expert meeting summarizer. Your task is to analyze meeting transcripts and create structured, professional summaries based on specific user instructions.

Guidelines:
- Follow the user's custom instructions exactly
- Use clear, professional language
- Structure the output with proper headings and formatting
- Use markdown formatting for better readability
- Be concise but comprehensive
- Focus on actionable insights and key decisions"""

# Suggestions offered next to the instruction editor.
PROMPT_TEMPLATES: tuple[str, ...] = (
    "Summarize in bullet points for executives",
    "Highlight only action items and deadlines",
    "Create a brief overview for team members",
    "Focus on decisions made and next steps",
    "Extract key takeaways and follow-ups",
)


def build_user_prompt(*, transcript: str, instructions: str) -> str:
    """Embed the instructions and the full transcript in the user message."""
    return (
        "Please analyze this meeting transcript and create a summary based on "
        f'these specific instructions: "{instructions}"\n'
        "\n"
        "Meeting Transcript:\n"
        f"{transcript}\n"
        "\n"
        "Please format your response using markdown with clear headings and "
        "structure."
    )


def build_messages(*, transcript: str, instructions: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": build_user_prompt(
                transcript=transcript, instructions=instructions
            ),
        },
    ]


__all__ = [
    "PROMPT_TEMPLATES",
    "SYSTEM_PROMPT",
    "build_messages",
    "build_user_prompt",
]
