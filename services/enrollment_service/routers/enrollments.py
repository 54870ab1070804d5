"""Enrollment submission, quote and catalog endpoints."""

from typing import Union

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from libs.common.logging import bind_request_fields, get_logger
from libs.db.procedures import ProcedureError
from services.enrollment_service.app.dependencies import get_catalog, get_workflow
from services.enrollment_service.clubs import get_club
from services.enrollment_service.errors import EnrollmentAborted, EnrollmentError
from services.enrollment_service.notifications import (
    alert_enrollment_failure,
    alert_migration_pending,
    send_new_member_notification,
    send_welcome_email,
)
from services.enrollment_service.schemas import (
    EnrollmentErrorResponse,
    EnrollmentRequest,
    EnrollmentResponse,
    FallbackEnrollmentResponse,
    PersonalTrainingPackage,
    ProrationResult,
    QuoteRequest,
    ServiceAddon,
)
from services.enrollment_service.services.catalog import CatalogService
from services.enrollment_service.services.workflow import EnrollmentWorkflow

router = APIRouter(prefix="/enrollments", tags=["enrollments"])
logger = get_logger(__name__)


def _require_known_club(club: str) -> str:
    try:
        code = get_club(club).code
    except (LookupError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    bind_request_fields(club=code)
    return code


@router.post(
    "",
    response_model=Union[EnrollmentResponse, FallbackEnrollmentResponse],
    responses={500: {"model": EnrollmentErrorResponse}},
)
async def submit_enrollment(
    payload: EnrollmentRequest,
    background_tasks: BackgroundTasks,
    workflow: EnrollmentWorkflow = Depends(get_workflow),
):
    """
    Record a paid enrollment.

    Returns the fallback shape when the customer code had to be recovered
    after a direct insert; the club finishes those memberships by hand.
    A non-zero ``resultCode`` means the member is enrolled but the production
    mirror needs manual reconciliation.
    """
    _require_known_club(payload.club)
    logger.info(
        "Received enrollment submission",
        extra={
            "extra_fields": {
                "club": payload.club,
                "membership_type": payload.membership_type.value,
                "family_members": len(payload.family_members),
            }
        },
    )

    try:
        outcome = await workflow.submit(payload)
    except EnrollmentAborted as exc:
        bind_request_fields(outcome="aborted", failed_state=exc.state, cust_code=exc.cust_code)
        logger.error(
            "Enrollment aborted",
            extra={"extra_fields": {"state": exc.state, "error": str(exc)}},
        )
        background_tasks.add_task(
            alert_enrollment_failure,
            payload,
            str(exc),
            exc.completed_steps,
            exc.cust_code,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=EnrollmentErrorResponse(error=str(exc)).model_dump(by_alias=True),
        )
    except EnrollmentError as exc:
        bind_request_fields(outcome="failed")
        logger.error(f"Enrollment failed: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=EnrollmentErrorResponse(error=str(exc)).model_dump(by_alias=True),
        )

    bind_request_fields(
        outcome="fallback" if outcome.is_fallback else "enrolled",
        cust_code=outcome.cust_code,
    )
    if outcome.is_fallback:
        return outcome.response

    response = outcome.response
    background_tasks.add_task(
        send_welcome_email,
        payload,
        response.cust_code,
        response.amount_billed,
        payload.contract_pdf,
        outcome.contract_file,
    )
    background_tasks.add_task(
        send_new_member_notification, payload, response.cust_code, response.amount_billed
    )
    if response.result_code != 0:
        background_tasks.add_task(
            alert_migration_pending,
            payload,
            response.cust_code,
            response.result_code,
            response.transaction_id,
            response.error_message,
        )
    return response


@router.post("/quote", response_model=ProrationResult)
async def quote_enrollment(
    payload: QuoteRequest,
    workflow: EnrollmentWorkflow = Depends(get_workflow),
):
    """Price a prospective enrollment: what is due today and every month."""
    _require_known_club(payload.club)
    try:
        pricing = await workflow.price(payload)
    except ProcedureError as exc:
        logger.error(f"Pricing lookup failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pricing is temporarily unavailable",
        )
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return pricing.proration


@router.get("/addons/{club}", response_model=list[ServiceAddon])
async def list_addons(
    club: str,
    catalog: CatalogService = Depends(get_catalog),
):
    """Service add-ons the enrollment page offers for ``club``."""
    club = _require_known_club(club)
    try:
        return await catalog.list_addons(club)
    except ProcedureError as exc:
        logger.error(f"Add-on lookup failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Add-ons are temporarily unavailable",
        )


@router.get("/pt-packages/{club}", response_model=list[PersonalTrainingPackage])
async def list_pt_packages(
    club: str,
    catalog: CatalogService = Depends(get_catalog),
):
    club = _require_known_club(club)
    try:
        return await catalog.list_pt_packages(club)
    except ProcedureError as exc:
        logger.error(f"PT package lookup failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PT packages are temporarily unavailable",
        )
