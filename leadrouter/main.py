"""Lead Assignment Engine — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leadrouter.adapters.persistence.database import engine
from leadrouter.config import settings
from leadrouter.domain.errors import AssignmentError
from leadrouter.infrastructure.api.errors import status_for
from leadrouter.infrastructure.api.routes_assignment import router as assignment_router
from leadrouter.infrastructure.api.routes_health import router as health_router
from leadrouter.infrastructure.api.routes_rules import router as rules_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except Exception as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


async def assignment_error_handler(request: Request, exc: AssignmentError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": exc.message, "error": exc.reason.value},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Lead Assignment Engine",
        description="Rule-based lead routing and agent match scoring for the real-estate CRM",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AssignmentError, assignment_error_handler)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(rules_router, prefix="/api")
    app.include_router(assignment_router, prefix="/api")

    return app


app = create_app()
