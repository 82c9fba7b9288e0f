# Health-check endpoints.

from fastapi import APIRouter, Depends, Request, status

from ..settings import EMAIL_BACKEND_RELAY, Settings

router = APIRouter(prefix="/health", tags=["health"])


def _app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _email_configured(settings: Settings) -> bool:
    if settings.email_backend == EMAIL_BACKEND_RELAY:
        return bool(settings.email_relay_url)
    return bool(
        settings.emailjs_service_id
        and settings.emailjs_template_id
        and settings.emailjs_public_key
    )


@router.get("", status_code=status.HTTP_200_OK)
async def read_health(settings: Settings = Depends(_app_settings)) -> dict[str, object]:
    """Readiness probe reporting which external services are configured."""
    return {
        "status": "ok",
        "llm_configured": bool(settings.groq_api_key),
        "email_backend": settings.email_backend,
        "email_configured": _email_configured(settings),
    }
