"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from intake_triage import __version__
from intake_triage.api.deps import get_escalation_service, get_protocol_registry
from intake_triage.api.v1.router import api_router
from intake_triage.core.config import settings
from intake_triage.core.logging import setup_logging
from intake_triage.rules.engine import get_flag_detector

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting Intake Triage API (env={settings.env})")

    detector = get_flag_detector()
    snapshot = get_protocol_registry().snapshot
    logger.info(
        f"Loaded flag rules version={detector.ruleset_version} "
        f"and crisis protocols version={snapshot.version}"
    )

    yield

    # Shutdown
    get_escalation_service().shutdown()
    logger.info("Shutting down Intake Triage API")


# Create FastAPI application
app = FastAPI(
    title="Intake Triage API",
    description="Staged clinical intake, risk scoring and crisis escalation",
    version=__version__,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)

# CORS middleware (configure appropriately for production)
if settings.is_dev:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    if settings.is_prod:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Root endpoint redirect to docs."""
    return {
        "service": "Intake Triage API",
        "version": __version__,
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
