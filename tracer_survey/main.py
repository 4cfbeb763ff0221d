"""FastAPI application entry point for the tracer survey service.

This module initializes the FastAPI application, sets up logging, registers
routers, binds a request id to every request, and maps survey engine errors
to JSON responses.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracer_survey.config import get_settings
from tracer_survey.logging_config import (
    get_logger,
    reset_request_id,
    set_request_id,
    setup_logging,
)
from tracer_survey.models.database import init_db
from tracer_survey.routes import admin, health, surveys
from tracer_survey.services.errors import SurveyEngineError

# Initialize logger (will be configured during startup)
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup:
    - Configure logging
    - Create tables when AUTO_CREATE_TABLES is set
    - Log application startup information

    Shutdown:
    - Log shutdown event

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    settings = get_settings()
    setup_logging()

    if settings.auto_create_tables:
        init_db()
        logger.info("Database tables created")

    logger.info(
        f"Tracer Survey service starting - "
        f"Environment: {settings.environment}, "
        f"Log Level: {settings.log_level}, "
        f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'configured'}, "
        f"Version: {settings.git_commit_sha}"
    )

    yield

    logger.info("Tracer Survey service shutting down")


# Initialize FastAPI application
app = FastAPI(
    title="Tracer Survey",
    description="Dynamic survey response engine with branching and completion scoring",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Bind a request id to the logging context and echo it back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    token = set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# Root endpoint
@app.get("/")
async def root() -> dict:
    """Root endpoint with basic API information.

    Returns:
        dict: API information and status
    """
    settings = get_settings()
    return {
        "service": "Tracer Survey",
        "version": "1.0.0",
        "commit": settings.git_commit_sha,
        "environment": settings.environment,
        "status": "operational"
    }


# Register routers
app.include_router(health.router, tags=["Health"])
app.include_router(surveys.router, tags=["Surveys"])
app.include_router(admin.router, tags=["Admin"])


@app.exception_handler(SurveyEngineError)
async def survey_engine_exception_handler(request: Request, exc: SurveyEngineError) -> JSONResponse:
    """Map survey engine errors to their status code.

    Integrity errors indicate a bug and are logged as errors; everything
    else is a client error.
    """
    if exc.status_code >= 500:
        logger.error(f"Survey engine failure for {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{exc.error} for {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error,
            "message": exc.message,
            "details": exc.details,
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled exceptions.

    Logs all unhandled exceptions and returns a generic error response
    to prevent leaking sensitive information.

    Args:
        request: FastAPI request object
        exc: Exception that was raised

    Returns:
        JSONResponse: Generic error response
    """
    logger.error(
        f"Unhandled exception for {request.method} {request.url}: {exc}",
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )
