"""
Enrollment emails: welcome, internal new-member notice and critical alerts.

All senders return the ``send_email`` result and never raise, so they can be
scheduled as background tasks after the response is built.
"""

import traceback
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.config import get_settings
from libs.common.currency import format_amount
from libs.common.datetime_utils import utc_now
from libs.common.emails.core import send_email
from libs.common.logging import get_logger
from services.enrollment_service.clubs import CLUBS
from services.enrollment_service.schemas.enrollment import EnrollmentRequest

logger = get_logger(__name__)


def _club_name(club: str) -> str:
    found = CLUBS.get(club)
    return found.name if found else f"Club {club}"


async def send_welcome_email(
    request: EnrollmentRequest,
    cust_code: str,
    amount_billed: Decimal,
    contract_pdf: Optional[bytes] = None,
    contract_filename: Optional[str] = None,
) -> bool:
    """Welcome the new member, with the signed contract attached when we have it."""
    club_name = _club_name(request.club)
    start = (
        request.requested_start_date.strftime("%m/%d/%Y")
        if request.requested_start_date
        else "today"
    )
    subject = f"Welcome to {club_name}!"
    body = f"""Hi {request.first_name},

Welcome to {club_name}! Your membership has been created.

Membership Details:
- Membership #: {cust_code}
- Membership Type: {request.membership_type.label}
- Start Date: {start}
- Amount Billed Today: ${format_amount(amount_billed)}

Your signed membership agreement is attached for your records.

See you at the club!
"""
    return await send_email(
        to_email=str(request.email),
        subject=subject,
        body=body,
        attachment=contract_pdf,
        attachment_name=contract_filename or f"{cust_code} Membership Agreement.pdf",
    )


async def send_new_member_notification(
    request: EnrollmentRequest, cust_code: str, amount_billed: Decimal
) -> bool:
    settings = get_settings()
    club_name = _club_name(request.club)
    subject = (
        f"New Online Enrollment - {club_name} - "
        f"{request.first_name} {request.last_name} (#{cust_code})"
    )
    lines = [
        f"Club: {club_name}",
        f"Member: {request.first_name} {request.last_name}",
        f"Membership #: {cust_code}",
        f"Membership Type: {request.membership_type.label}",
        f"Email: {request.email}",
        f"Phone: {request.primary_phone or 'N/A'}",
        f"Family members: {len(request.family_members)}",
        f"Amount billed: ${format_amount(amount_billed)}",
    ]
    if request.pt_package:
        lines.append(
            f"PT package: {request.pt_package.description} "
            f"(${format_amount(request.pt_package.price)})"
        )
    return await send_email(
        to_email=settings.NEW_MEMBER_NOTIFICATION_EMAILS,
        subject=subject,
        body="\n".join(lines),
    )


async def send_critical_alert(subject: str, lines: Sequence[str], alert_type: str) -> bool:
    settings = get_settings()
    logger.error(
        f"Critical alert: {subject}",
        extra={"extra_fields": {"alert_type": alert_type}},
    )
    body = "\n".join([*lines, f"Time: {utc_now().isoformat()}"])
    return await send_email(
        to_email=settings.CRITICAL_ALERT_EMAILS,
        subject=subject,
        body=body,
    )


async def alert_enrollment_failure(
    request: EnrollmentRequest,
    error: str,
    completed_steps: Sequence[str],
    cust_code: Optional[str] = None,
) -> bool:
    """The member may have paid but the enrollment is incomplete."""
    lines = [
        f"User: {request.first_name} {request.last_name}",
        f"Email: {request.email}",
        f"Club: {request.club}",
        f"Membership Type: {request.membership_type.label}",
        f"Customer code: {cust_code or 'not allocated'}",
        f"Payment transaction: {request.payment.transaction_id or 'N/A'}",
        f"Error: {error}",
        f"Completed steps: {', '.join(completed_steps) or 'none'}",
        "",
        "Impact: User may have paid but enrollment not recorded",
        "Action Required: Manually verify and complete enrollment if payment was processed",
    ]
    return await send_critical_alert(
        f"Enrollment Submission Failed - {request.email}",
        lines,
        "enrollment_failure",
    )


async def alert_migration_pending(
    request: EnrollmentRequest,
    cust_code: str,
    result_code: int,
    transaction_id: str,
    error_message: str,
) -> bool:
    lines = [
        f"Customer code: {cust_code}",
        f"Club: {request.club}",
        f"Member: {request.first_name} {request.last_name}",
        f"Result code: {result_code}",
        f"Transaction: {transaction_id}",
        f"Error: {error_message or 'N/A'}",
        "",
        "Impact: Enrollment is staged but not yet in production tables",
        "Action Required: Reconcile the production migration manually",
    ]
    return await send_critical_alert(
        f"Production Migration Pending - #{cust_code}",
        lines,
        "migration_pending",
    )


async def alert_backend_error(
    method: str,
    path: str,
    error: BaseException,
    request_id: Optional[str] = None,
) -> bool:
    """An unexpected exception reached the app-level handler."""
    settings = get_settings()
    lines = [
        f"Request: {method} {path}",
        f"Request ID: {request_id or 'N/A'}",
        f"Environment: {settings.ENVIRONMENT}",
        f"Error: {type(error).__name__}: {error}",
        "",
        "Stack trace:",
        "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    ]
    return await send_critical_alert(
        f"Backend Error - {type(error).__name__}",
        lines,
        "backend_error",
    )
