"""FastAPI application factory and dependency injection setup."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from form3115_preparer.api.routes import (
    calculation_router,
    client_router,
    dashboard_router,
    dcn_router,
    filing_router,
    get_owner_id,
    health_router,
    validation_router,
)
from form3115_preparer.config import get_settings
from form3115_preparer.container import get_container, get_database, reset_container
from form3115_preparer.exceptions import Form3115Error
from form3115_preparer.logging_config import (
    configure_logging,
    get_logger,
    request_context,
)
from form3115_preparer.repositories.sqlite import SQLiteDatabase

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown.

    Initializes logging and the container on startup and checks the field
    map against the PDF template when one is present.
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    )

    container = get_container()
    _ = container.database  # Force database initialization

    if settings.verify_field_map_on_startup:
        verify_template_mapping()

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    reset_container()
    logger.info("application_stopped")


def verify_template_mapping() -> None:
    """Log how well the field map matches the template; never blocks startup."""
    try:
        generator = get_container().pdf_generator
        if not generator.template_path.exists():
            logger.warning(
                "pdf_template_not_found",
                path=str(generator.template_path),
            )
            return
        generator.verify()
    except Form3115Error as exc:
        logger.error(
            "field_map_verification_failed",
            error_code=exc.error_code,
            message=exc.message,
        )


def get_db() -> SQLiteDatabase:
    """Get the database instance.

    Used as a FastAPI dependency and overridden in tests through
    app.dependency_overrides.
    """
    return get_database()


async def log_request_middleware(request: Request, call_next):
    """Middleware to tag every event of a request with its id and caller."""
    with request_context(
        request_id=str(uuid.uuid4())[:8],
        owner_id=get_owner_id(request.headers.get("x-user-id")),
        method=request.method,
        path=request.url.path,
    ):
        response = await call_next(request)
        logger.debug("request_completed", status_code=response.status_code)
        return response


async def exception_handler(request: Request, exc: Form3115Error) -> JSONResponse:
    """Handle domain exceptions and return appropriate JSON responses."""
    logger.warning(
        "domain_exception",
        error_code=exc.error_code,
        message=exc.message,
        context=exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Preparation of IRS Form 3115 accounting method change filings",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(log_request_middleware)

    app.add_exception_handler(Form3115Error, exception_handler)

    # Routes declare Annotated[SQLiteDatabase, Depends()]; resolve it here
    app.dependency_overrides[SQLiteDatabase] = get_db

    app.include_router(health_router)
    app.include_router(dcn_router)
    app.include_router(calculation_router)
    app.include_router(validation_router)
    app.include_router(client_router)
    app.include_router(filing_router)
    app.include_router(dashboard_router)

    return app


# Create app instance for uvicorn
app = create_app()
