# Application factory and FastAPI setup.

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .delivery import EmailClient, build_email_client
from .routers import health, templates, workflows
from .settings import Settings, get_settings
from .summarization import SummaryClient, build_summary_config
from .workflow import SummaryGenerator, WorkflowController, WorkflowRegistry


def create_app(
    *,
    settings: Settings | None = None,
    summary_client: SummaryGenerator | None = None,
    email_client: EmailClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Adapters are built once from the settings and shared by every workflow;
    callers may pass their own to replace the external services.
    """
    app = FastAPI(title="Meeting Summarizer Backend", version="0.1.0")

    settings = settings or get_settings()
    app.state.settings = settings

    summarizer = summary_client or SummaryClient(build_summary_config(settings))
    mailer = email_client or build_email_client(settings)

    def _new_workflow() -> WorkflowController:
        return WorkflowController(
            summary_client=summarizer,
            email_client=mailer,
            sender_name=settings.sender_name,
        )

    app.state.workflows = WorkflowRegistry(
        _new_workflow,
        max_workflows=settings.max_workflows,
        idle_timeout_seconds=settings.workflow_idle_timeout_seconds,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health.router)
    app.include_router(templates.router)
    app.include_router(workflows.router)
    return app
