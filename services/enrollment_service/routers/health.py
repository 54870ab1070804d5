"""Liveness and regional database connectivity checks."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import bind_request_fields, get_logger
from libs.db.config import TenantEngineRegistry
from services.enrollment_service.app.dependencies import get_engine_registry
from services.enrollment_service.clubs import get_club, first_club_per_region

router = APIRouter(prefix="/health", tags=["system"])
logger = get_logger(__name__)


@router.get("")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "enrollment"}


@router.get("/detailed")
async def detailed_health_check(
    engines: TenantEngineRegistry = Depends(get_engine_registry),
):
    """
    Check one club per region. Unconfigured regions are reported but do not
    degrade the service unless no region is configured at all; any configured
    region that cannot be reached answers 503.
    """
    settings = get_settings()
    databases: dict[str, dict[str, Any]] = {}
    degraded = False

    for region, club in first_club_per_region().items():
        try:
            elapsed = await engines.ping(club)
        except LookupError as exc:
            databases[region] = {"club": club, "status": "not_configured", "error": str(exc)}
        except (SQLAlchemyError, OSError) as exc:
            degraded = True
            databases[region] = {"club": club, "status": "error", "error": str(exc)}
            logger.error(
                "Regional database unreachable",
                extra={"extra_fields": {"region": region, "club": club, "error": str(exc)}},
            )
        else:
            databases[region] = {
                "club": club,
                "status": "connected",
                "response_time_ms": elapsed,
            }

    if all(db["status"] == "not_configured" for db in databases.values()):
        degraded = True

    body = {
        "status": "degraded" if degraded else "ok",
        "service": "enrollment",
        "environment": settings.ENVIRONMENT,
        "timestamp": utc_now().isoformat(),
        "databases": databases,
        "email": "configured" if settings.SMTP_HOST else "not_configured",
    }
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE if degraded else status.HTTP_200_OK,
        content=body,
    )


@router.get("/database/{club}")
async def database_health_check(
    club: str,
    engines: TenantEngineRegistry = Depends(get_engine_registry),
):
    """Open one connection to the database that serves ``club``."""
    try:
        club_code = get_club(club).code
    except (LookupError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Invalid club ID: {club}"
        )
    bind_request_fields(club=club_code)

    try:
        elapsed = await engines.ping(club_code)
    except (LookupError, SQLAlchemyError, OSError) as exc:
        logger.error(
            f"Database health check failed for club {club_code}",
            extra={"extra_fields": {"error": str(exc)}},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "error",
                "club": club_code,
                "connected": False,
                "error": str(exc),
                "timestamp": utc_now().isoformat(),
            },
        )

    return {
        "status": "ok",
        "club": club_code,
        "connected": True,
        "response_time_ms": elapsed,
        "timestamp": utc_now().isoformat(),
    }
