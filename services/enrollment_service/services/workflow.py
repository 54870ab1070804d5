"""
Enrollment submission workflow.

Turns one validated ``EnrollmentRequest`` into staged membership, member,
agreement and receipt rows, then mirrors them to production. Every step is a
separate remote call with no surrounding transaction:

    ALLOCATING ──► FALLBACK_RETURNED
        │
        ▼
    WRITING_MEMBERSHIP ► WRITING_FAMILY ► WRITING_GUARDIAN
        ► WRITING_MESSAGE_AND_CONTRACT ► WRITING_RECEIPTS
        ► MIGRATING_PRODUCTION ► ARCHIVING_CONTRACT ► RESPONDING

Allocation, membership, member and guardian writes are fatal and end in
ABORTED. Message, agreement and receipt failures become response warnings.
Migration and archive failures are reported but never fail the enrollment.
Nothing is retried and nothing is rolled back.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.procedures import ProcedureError, ProcedureInvoker
from services.enrollment_service.clubs import get_club
from services.enrollment_service.errors import (
    EnrollmentAborted,
    EnrollmentError,
    MembershipWriteError,
)
from services.enrollment_service.models.enums import WorkflowState
from services.enrollment_service.schemas.enrollment import (
    EnrollmentRequest,
    QuoteRequest,
)
from services.enrollment_service.schemas.results import (
    EnrollmentResponse,
    FallbackEnrollmentResponse,
    ProductionMigrationResult,
    ProrationResult,
    StepRecord,
)
from services.enrollment_service.services.allocator import CustomerCodeAllocator
from services.enrollment_service.services.archiver import ContractArchiver
from services.enrollment_service.services.catalog import CatalogService
from services.enrollment_service.services.membership_writer import (
    MembershipWriter,
    effective_join_date,
)
from services.enrollment_service.services.migration import ProductionMigrator
from services.enrollment_service.services.proration import (
    calculate_proration,
    gross_monthly_dues,
    resolve_membership_category,
)
from services.enrollment_service.services.receipts import (
    ReceiptWriter,
    build_receipt_lines,
)

logger = get_logger(__name__)


@dataclass
class Pricing:
    net_dues: Decimal
    gross_dues: Decimal
    tax_rate: Decimal
    proration: ProrationResult


@dataclass
class WorkflowOutcome:
    response: Union[EnrollmentResponse, FallbackEnrollmentResponse]
    steps: list[StepRecord]
    cust_code: str
    pricing: Optional[Pricing] = None
    migration: Optional[ProductionMigrationResult] = None
    contract_file: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return isinstance(self.response, FallbackEnrollmentResponse)


@dataclass
class StepLog:
    records: list[StepRecord] = field(default_factory=list)

    def record(
        self, state: WorkflowState, ok: bool = True, detail: Optional[str] = None
    ) -> None:
        self.records.append(StepRecord(state=state, ok=ok, detail=detail))
        log = logger.info if ok else logger.warning
        log(
            f"Enrollment step {state.value}",
            extra={"extra_fields": {"state": state.value, "ok": ok, "detail": detail}},
        )

    def completed(self) -> list[str]:
        return [r.state.value for r in self.records if r.ok]


class EnrollmentWorkflow:
    def __init__(
        self,
        invoker: ProcedureInvoker,
        catalog: Optional[CatalogService] = None,
        archiver: Optional[ContractArchiver] = None,
    ):
        self.writer = MembershipWriter(invoker)
        self.allocator = CustomerCodeAllocator(invoker, self.writer)
        self.receipts = ReceiptWriter(invoker)
        self.migrator = ProductionMigrator(invoker)
        self.catalog = catalog or CatalogService(invoker)
        self.archiver = archiver or ContractArchiver()

    async def price(self, request: Union[EnrollmentRequest, QuoteRequest]) -> Pricing:
        """Resolve dues and tax for the club, then prorate them."""
        tax_rate = await self.catalog.get_tax_rate(request.club)
        net_dues = request.monthly_dues
        if net_dues is None:
            net_dues = await self.catalog.get_membership_price(
                request.club, request.membership_type, request.specialty_membership
            )
        addons = [*request.service_addons, *request.child_addons]
        proration = calculate_proration(
            requested_start_date=request.requested_start_date,
            full_monthly_dues=net_dues,
            tax_rate=tax_rate,
            initiation_fee=get_settings().INITIATION_FEE,
            service_addons=request.service_addons,
            child_addons=request.child_addons,
            pt_package_price=request.pt_package.price if request.pt_package else 0,
        )
        return Pricing(
            net_dues=proration.full_monthly_dues,
            gross_dues=gross_monthly_dues(net_dues, addons),
            tax_rate=tax_rate,
            proration=proration,
        )

    def _with_resolved_category(self, request: EnrollmentRequest) -> EnrollmentRequest:
        category = resolve_membership_category(
            adult_count=1 + len(request.adults),
            dependent_count=len(request.dependents),
            is_new_mexico=get_club(request.club).is_new_mexico,
        )
        if category != request.membership_type:
            logger.warning(
                "Membership type does not match family members, using derived type",
                extra={
                    "extra_fields": {
                        "requested": request.membership_type.value,
                        "derived": category.value,
                    }
                },
            )
            return request.model_copy(update={"membership_type": category})
        return request

    async def submit(self, request: EnrollmentRequest) -> WorkflowOutcome:
        log = StepLog()
        request = self._with_resolved_category(request)

        try:
            pricing = await self.price(request)
        except (ProcedureError, LookupError) as exc:
            log.record(WorkflowState.ABORTED, ok=False, detail=str(exc))
            raise EnrollmentAborted("pricing", exc, log.completed()) from exc

        # ALLOCATING
        try:
            allocation = await self.allocator.allocate(request)
        except EnrollmentError as exc:
            log.record(WorkflowState.ABORTED, ok=False, detail=str(exc))
            raise EnrollmentAborted(
                WorkflowState.ALLOCATING.value, exc, log.completed()
            ) from exc
        cust_code = str(allocation.cust_code)
        log.record(WorkflowState.ALLOCATING, detail=allocation.mode.value)

        if allocation.is_fallback:
            log.record(WorkflowState.FALLBACK_RETURNED)
            return WorkflowOutcome(
                response=FallbackEnrollmentResponse(cust_code=cust_code),
                steps=log.records,
                cust_code=cust_code,
                pricing=pricing,
            )

        # WRITING_MEMBERSHIP .. WRITING_GUARDIAN
        state = WorkflowState.WRITING_MEMBERSHIP
        try:
            await self.writer.insert_membership(request, cust_code)
            await self.writer.insert_primary_member(request, cust_code)
            log.record(state)

            state = WorkflowState.WRITING_FAMILY
            next_code = await self.writer.insert_family_members(request, cust_code)
            log.record(state, detail=f"{len(request.family_members)} members")

            if request.guardian is not None:
                state = WorkflowState.WRITING_GUARDIAN
                await self.writer.insert_guardian(request, cust_code, next_code)
                log.record(state, detail=f"member_code={next_code}")
        except MembershipWriteError as exc:
            log.record(WorkflowState.ABORTED, ok=False, detail=exc.step)
            raise EnrollmentAborted(
                state.value, exc, log.completed(), cust_code
            ) from exc

        warnings: list[str] = []

        # WRITING_MESSAGE_AND_CONTRACT
        message_ok = True
        try:
            await self.writer.insert_join_message(request, cust_code, pricing.net_dues)
        except MembershipWriteError:
            message_ok = False
            warnings.append("Join message was not recorded")
        try:
            await self.writer.insert_agreement(
                request, cust_code, pricing.gross_dues, pricing.net_dues
            )
        except MembershipWriteError:
            message_ok = False
            warnings.append("Membership agreement was not recorded")
        log.record(WorkflowState.WRITING_MESSAGE_AND_CONTRACT, ok=message_ok)

        # WRITING_RECEIPTS
        lines = build_receipt_lines(
            cust_code,
            pricing.net_dues,
            request.service_addons,
            effective_join_date(request),
        )
        receipt_warnings = await self.receipts.write(request.club, lines)
        warnings.extend(receipt_warnings)
        log.record(
            WorkflowState.WRITING_RECEIPTS,
            ok=not receipt_warnings,
            detail=f"{len(lines) - len(receipt_warnings)}/{len(lines)} lines",
        )

        # MIGRATING_PRODUCTION
        migration = await self.migrator.migrate(
            request,
            cust_code,
            pricing.proration,
            pricing.gross_dues,
            pricing.net_dues,
            pricing.tax_rate,
        )
        log.record(
            WorkflowState.MIGRATING_PRODUCTION,
            ok=migration.succeeded,
            detail=f"result_code={migration.result_code}",
        )
        final_code = migration.updated_customer_code or cust_code

        # ARCHIVING_CONTRACT
        contract_file = await asyncio.to_thread(
            self.archiver.save,
            request.contract_pdf,
            final_code,
            request.first_name,
            request.last_name,
        )
        log.record(
            WorkflowState.ARCHIVING_CONTRACT,
            ok=contract_file is not None or not request.contract_pdf,
            detail=contract_file,
        )
        if request.contract_pdf and contract_file is None:
            warnings.append("Contract PDF could not be archived")

        # RESPONDING
        amount_billed = request.payment.amount_billed or pricing.proration.total_due_now
        response = EnrollmentResponse(
            cust_code=final_code,
            transaction_id=migration.transaction_id,
            result_code=migration.result_code,
            error_message=migration.error_message,
            amount_billed=amount_billed,
            contract_file=contract_file,
            warnings=warnings,
        )
        log.record(WorkflowState.RESPONDING)
        logger.info(
            "Enrollment completed",
            extra={
                "extra_fields": {
                    "cust_code": final_code,
                    "result_code": migration.result_code,
                    "warnings": len(warnings),
                }
            },
        )
        return WorkflowOutcome(
            response=response,
            steps=log.records,
            cust_code=final_code,
            pricing=pricing,
            migration=migration,
            contract_file=contract_file,
        )
