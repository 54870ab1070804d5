"""Routers package."""

from services.enrollment_service.routers.enrollments import router as enrollments_router
from services.enrollment_service.routers.health import router as health_router

__all__ = ["enrollments_router", "health_router"]
