"""Enrollment Service schemas package."""

from services.enrollment_service.schemas.enrollment import (
    EnrollmentRequest,
    FamilyMember,
    Guardian,
    PaymentSummary,
    PersonalTrainingPackage,
    QuoteRequest,
    ServiceAddon,
)
from services.enrollment_service.schemas.results import (
    CustomerCode,
    EnrollmentErrorResponse,
    EnrollmentResponse,
    FallbackEnrollmentResponse,
    ProductionMigrationResult,
    ProrationResult,
    ReceiptLine,
    StepRecord,
)

__all__ = [
    "CustomerCode",
    "EnrollmentErrorResponse",
    "EnrollmentRequest",
    "EnrollmentResponse",
    "FallbackEnrollmentResponse",
    "FamilyMember",
    "Guardian",
    "PaymentSummary",
    "PersonalTrainingPackage",
    "ProductionMigrationResult",
    "ProrationResult",
    "QuoteRequest",
    "ReceiptLine",
    "ServiceAddon",
    "StepRecord",
]
