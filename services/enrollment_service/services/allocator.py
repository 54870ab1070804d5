"""Customer code allocation for new memberships."""

from dataclasses import dataclass
from typing import Optional

from libs.common.logging import get_logger
from libs.db.procedures import ProcedureError, ProcedureInvoker
from services.enrollment_service.errors import AllocationError, MembershipWriteError
from services.enrollment_service.models.enums import AllocationMode
from services.enrollment_service.schemas.enrollment import EnrollmentRequest
from services.enrollment_service.schemas.results import CustomerCode
from services.enrollment_service.services.membership_writer import MembershipWriter

logger = get_logger(__name__)

NEXT_ID_PROCEDURE = "procNextMembershipId"
LOOKUP_QUERY = "web_strcustr_max_cust_code"


@dataclass(frozen=True)
class AllocationResult:
    cust_code: CustomerCode
    mode: AllocationMode

    @property
    def is_fallback(self) -> bool:
        return self.mode == AllocationMode.FALLBACK


def _clean_code(value: object) -> Optional[str]:
    if value is None:
        return None
    code = str(value).strip()
    return code or None


class CustomerCodeAllocator:
    """
    Obtain a customer code, preferring the store's allocator procedure.

    When the allocator fails or returns nothing usable, the membership row is
    staged with blank code fields so the store assigns one, and the highest
    code matching the business name and email is read back. A fallback result
    means the membership row already exists and nothing else was written.
    """

    def __init__(self, invoker: ProcedureInvoker, writer: MembershipWriter):
        self.invoker = invoker
        self.writer = writer

    async def allocate(self, request: EnrollmentRequest) -> AllocationResult:
        code = await self._next_membership_id(request.club)
        if code:
            logger.info(
                "Allocated customer code",
                extra={"extra_fields": {"cust_code": code, "club": request.club}},
            )
            return AllocationResult(CustomerCode(code), AllocationMode.PRIMARY)

        logger.warning(
            "Customer code allocator unavailable, using fallback insert",
            extra={"extra_fields": {"club": request.club}},
        )
        code = await self._fallback(request)
        return AllocationResult(CustomerCode(code), AllocationMode.FALLBACK)

    async def _next_membership_id(self, club: str) -> Optional[str]:
        try:
            rows = await self.invoker.invoke(NEXT_ID_PROCEDURE, club)
        except ProcedureError as exc:
            logger.error(
                "Error getting next membership ID",
                extra={"extra_fields": {"club": club, "error": str(exc)}},
            )
            return None
        if not rows:
            return None
        return _clean_code(rows[0].first_value())

    async def _fallback(self, request: EnrollmentRequest) -> str:
        try:
            await self.writer.insert_membership(request, "")
        except MembershipWriteError as exc:
            raise AllocationError(
                f"Fallback membership insert failed: {exc.cause or exc}"
            ) from exc

        try:
            rows = await self.invoker.invoke(
                LOOKUP_QUERY,
                request.club,
                [request.business_name, str(request.email)],
            )
        except ProcedureError as exc:
            raise AllocationError(f"Customer code lookup failed: {exc}") from exc

        code = _clean_code(rows[0].named("cust_code", rows[0].first_value())) if rows else None
        if not code:
            raise AllocationError(
                "Failed to retrieve customer code after fallback insert"
            )
        logger.info(
            "Recovered customer code from fallback insert",
            extra={"extra_fields": {"cust_code": code}},
        )
        return code
