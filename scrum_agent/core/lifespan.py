import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scrum_agent.core.config import settings
from scrum_agent.core.logging import get_logger, setup_logging
from scrum_agent.core.runtime import build_orchestrator
from scrum_agent.core.valkey_pubsub import approval_listener, close_valkey
from scrum_agent.db.session import engine

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan function for the FastAPI application.
    Handles startup and shutdown events for application services.
    """
    # 1. Logging
    setup_logging(settings.LOG_LEVEL)

    # 2. Orchestrator shared by every request
    orchestrator = build_orchestrator(settings)
    app.state.orchestrator = orchestrator

    # 3. Approval listener (only when a Valkey server is configured)
    listener_task = None
    if settings.VALKEY_URL:
        listener_task = asyncio.create_task(approval_listener(orchestrator))
    else:
        logger.info("VALKEY_URL not set, approvals resume runs in-process only.")

    yield

    # 4. Stop approval listener
    if listener_task is not None:
        listener_task.cancel()
        try:
            await listener_task
        except asyncio.CancelledError:
            pass

    # 5. Close Valkey/Redis Connection
    await close_valkey()

    # 6. Dispose Database Engine
    await engine.dispose()
