"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gatheryourdeals import __version__
from gatheryourdeals.api import CorrelationIdMiddleware, admin_router, auth_router, router
from gatheryourdeals.config import Settings, get_settings
from gatheryourdeals.errors import AuthError, IdentityNotResolved
from gatheryourdeals.services.logging_service import configure_logging, get_logger
from gatheryourdeals.wiring import (
    Services,
    build_services,
    close_backends,
    open_backends,
    prepare_startup,
)

NO_ADMIN_MESSAGE = (
    "no admin account found. Run 'gatheryourdeals init' to create one "
    "before starting the server"
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with the first failing field.

    Returns 400 Bad Request with the error type, the field detail and the
    correlation ID.
    """
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", correlation_id=correlation_id, detail=detail)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map expected auth outcomes to their status code and a stable body."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    logger.info(
        "auth_request_rejected",
        code=exc.code,
        status_code=exc.status_code,
        path=request.url.path,
    )

    headers = {"X-Correlation-Id": correlation_id}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "detail": exc.message,
            "correlation_id": correlation_id,
        },
        headers=headers,
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer faults with a generic 500; details go to the log only."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    logger.exception(
        "unhandled_request_error",
        path=request.url.path,
        error_type=type(exc).__name__,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "correlation_id": correlation_id},
        headers={"X-Correlation-Id": correlation_id},
    )


def create_app(
    services: Optional[Services] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the application.

    Args:
        services: Pre-built services. When omitted the lifespan builds them
            from settings and owns the backend connections.
        settings: Settings override; defaults to ``get_settings()``

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        app_settings = settings or get_settings()
        configure_logging(app_settings.log_level)
        logger = get_logger("main")

        owns_backends = services is None
        app_services = services or build_services(app_settings)

        if owns_backends:
            await open_backends(app_services)
            logger.info(
                "backends_initialized",
                storage_backend=app_settings.storage_backend,
                token_backend=app_settings.token_backend,
            )

        try:
            report = await prepare_startup(app_services, app_settings)
            if not report.has_admin:
                logger.error("startup_refused", reason="no_admin")
                raise RuntimeError(NO_ADMIN_MESSAGE)

            app.state.services = app_services
            app.state.startup = report
            logger.info("application_started", log_level=app_settings.log_level)

            yield
        finally:
            if owns_backends:
                await close_backends(app_services)
            logger.info("application_shutdown")

    app = FastAPI(
        title="GatherYourDeals - Auth API",
        description="User accounts, OAuth2 tokens and client management",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(IdentityNotResolved, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware for request tracking and observability
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(router)

    return app


app = create_app()
