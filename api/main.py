"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents import LLMClient, build_agents
from api.routes import health
from api.routes.v1 import (
    assessments,
    auth,
    invites,
    jobs,
    submissions,
    test_instances,
)
from api.services.scoring import ScoringDispatcher
from core.config import Settings, get_settings
from core.middleware import (
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)
from database.engine import Database

logger = logging.getLogger(__name__)


def _attach_collaborators(
    app: FastAPI,
    settings: Settings,
    database: Database,
    llm: LLMClient,
) -> None:
    agents = build_agents(llm)
    app.state.settings = settings
    app.state.database = database
    app.state.llm = llm
    app.state.agents = agents
    app.state.dispatcher = ScoringDispatcher(database, agents.scoring, mode=settings.scoring_mode)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    llm: Optional[LLMClient] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators passed in are used as-is and left open at shutdown; the
    rest are built from settings in the lifespan.
    """
    settings = settings or get_settings()

    # Setup structured logging (do this first, before anything else)
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    owns_database = database is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        # Startup
        logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
        db = database or Database.from_settings(settings)
        _attach_collaborators(app, settings, db, llm or LLMClient.from_settings(settings))
        await db.init_models()

        yield

        # Shutdown
        logger.info(f"Shutting down {settings.app_name}")
        if owns_database:
            await db.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Staged candidate assessments generated from job descriptions",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    if database is not None:
        _attach_collaborators(app, settings, database, llm or LLMClient.from_settings(settings))

    # Setup error handlers (before middleware)
    setup_error_handlers(app)

    # Add middleware (order matters - they execute in reverse order)
    # 1. Error handling middleware (outermost - catches all errors)
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)

    # 2. Structured logging middleware (logs all requests/responses)
    app.add_middleware(StructuredLoggingMiddleware)

    # 3. CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API v1 routes
    for module in (jobs, assessments, invites, test_instances, submissions, auth):
        app.include_router(module.router, prefix=settings.api_v1_prefix)

    return app
