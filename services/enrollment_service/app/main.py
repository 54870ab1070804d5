"""FastAPI application for the Enrollment Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from libs.common.error_handler import add_exception_handlers
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from services.enrollment_service.app.dependencies import (
    get_engine_registry,
    get_procedure_registry,
)
from services.enrollment_service.notifications import alert_backend_error
from services.enrollment_service.routers import enrollments_router, health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail at startup, not on the first enrollment, if definitions are missing
    registry = get_procedure_registry()
    logger.info(f"Enrollment service ready with {len(registry.names())} procedures")
    yield
    await get_engine_registry().dispose_all()


async def report_unhandled_error(
    method: str, path: str, error: BaseException, request_id: Optional[str]
) -> None:
    await alert_backend_error(method, path, error, request_id)


def create_app() -> FastAPI:
    """Create and configure the Enrollment Service FastAPI app."""
    app = FastAPI(
        title="Online Enrollment Service",
        version="0.1.0",
        description="Records paid gym memberships in the club databases.",
        lifespan=lifespan,
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)
    add_exception_handlers(app, on_unhandled=report_unhandled_error)

    app.include_router(health_router)
    app.include_router(enrollments_router)

    return app


app = create_app()
