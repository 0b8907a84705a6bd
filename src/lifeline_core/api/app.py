"""
FastAPI application for the Lifeline investigation service.

``create_app(services)`` serves pre-built services (tests, embedding);
``create_app()`` builds the default Redis, LLM and HTTP-client wiring from
the environment during startup.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from lifeline_core import __version__
from lifeline_core.api.dependencies import LifelineServices
from lifeline_core.api.errors import register_error_handlers
from lifeline_core.api.routes import router
from lifeline_core.clients import AccessServiceClient, NotificationServiceClient, PaymentLedgerClient
from lifeline_core.config import LifelineSettings, get_settings
from lifeline_core.core.interview import IntakeAnalyzer, IntakeInterviewer
from lifeline_core.core.monitoring import ProgressMonitor
from lifeline_core.core.refinement import DiagnosticRefinementEngine
from lifeline_core.core.review import CaseReviewer
from lifeline_core.core.workflow import InvestigationWorkflow
from lifeline_core.infrastructure.llm import LLMInferenceClient, get_registry
from lifeline_core.infrastructure.logging_config import configure_logging
from lifeline_core.infrastructure.persistence import RedisInvestigationStore
from lifeline_core.infrastructure.redis_setup import get_redis_client

logger = logging.getLogger(__name__)


async def build_default_services(settings: Optional[LifelineSettings] = None) -> LifelineServices:
    """Wire the production collaborators from settings"""
    settings = settings or get_settings()

    redis_client = await get_redis_client(settings.redis)
    store = RedisInvestigationStore(redis_client)

    registry = get_registry(settings.llm)
    inference = LLMInferenceClient(registry)

    timeout = settings.services.timeout
    access = AccessServiceClient(base_url=settings.services.access_url, timeout=timeout)
    notifier = NotificationServiceClient(base_url=settings.services.notification_url, timeout=timeout)
    ledger = PaymentLedgerClient(base_url=settings.services.ledger_url, timeout=timeout)

    workflow = InvestigationWorkflow(
        store=store,
        refinement_engine=DiagnosticRefinementEngine(inference),
        access_policy=access,
        notifier=notifier,
        ledger=ledger,
        analyzer=IntakeAnalyzer(inference),
        settings=settings.workflow,
    )

    logger.info(f"Services wired: providers={registry.get_fallback_chain()}")

    return LifelineServices(
        workflow=workflow,
        interviewer=IntakeInterviewer(inference),
        monitor=ProgressMonitor(
            inference,
            store=store,
            access_policy=access,
            notifier=notifier,
            notification_timeout=settings.workflow.notification_timeout,
        ),
        reviewer=CaseReviewer(inference, store, access_policy=access),
        redis_client=redis_client,
    )


def create_app(services: Optional[LifelineServices] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Pre-built services. When omitted they are built at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Lifeline API")
        if services is None:
            configure_logging()
            app.state.services = await build_default_services()
        else:
            app.state.services = services
        yield
        logger.info("Shutting down Lifeline API")
        owned = app.state.services
        await owned.workflow.messenger.drain()
        if owned.monitor.messenger is not None:
            await owned.monitor.messenger.drain()
        if services is None and owned.redis_client is not None:
            await owned.redis_client.aclose()

    app = FastAPI(
        title="Lifeline",
        description="Multi-actor diagnostic investigation workflow",
        version=__version__,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    register_error_handlers(app)
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app
