"""Process-wide singletons for the enrollment service, exposed as FastAPI dependencies."""

from functools import lru_cache
from pathlib import Path

from libs.common.config import get_settings
from libs.db.config import TenantEngineRegistry
from libs.db.procedures import ProcedureInvoker, ProcedureRegistry
from services.enrollment_service.clubs import database_url_for_club
from services.enrollment_service.services.catalog import CatalogService
from services.enrollment_service.services.workflow import EnrollmentWorkflow

DEFAULT_PROCEDURES_DIR = Path(__file__).resolve().parent.parent / "sql" / "procedures"


@lru_cache
def get_procedure_registry() -> ProcedureRegistry:
    configured = get_settings().PROCEDURES_DIR
    return ProcedureRegistry.load(Path(configured) if configured else DEFAULT_PROCEDURES_DIR)


@lru_cache
def get_engine_registry() -> TenantEngineRegistry:
    return TenantEngineRegistry(database_url_for_club)


def get_invoker() -> ProcedureInvoker:
    return ProcedureInvoker(get_engine_registry(), get_procedure_registry())


def get_workflow() -> EnrollmentWorkflow:
    return EnrollmentWorkflow(get_invoker())


def get_catalog() -> CatalogService:
    return CatalogService(get_invoker())
