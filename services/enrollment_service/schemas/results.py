from datetime import date
from decimal import Decimal
from typing import NewType, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.enrollment_service.models.enums import BillableFlag, WorkflowState
from services.enrollment_service.schemas.enrollment import CamelModel

CustomerCode = NewType("CustomerCode", str)


class ProrationResult(CamelModel):
    """Prorated and full-month figures, each rounded to cents as computed."""

    model_config = ConfigDict(frozen=True)

    prorated_factor: Decimal
    days_in_month: int = 0
    days_remaining: int = 0
    prorated_dues: Decimal
    prorated_dues_tax: Decimal
    prorated_addons_total: Decimal
    prorated_addons_tax: Decimal
    full_monthly_dues: Decimal
    full_monthly_tax: Decimal
    initiation_fee: Decimal
    pt_package_price: Decimal = Decimal("0.00")
    total_due_now: Decimal


class ReceiptLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_number: str
    bill_to: str
    amount: Decimal
    billable_flag: BillableFlag
    upc_code: str
    statement_text: str
    begin_date: Optional[date] = None


class ProductionMigrationResult(BaseModel):
    result_code: int
    updated_customer_code: str = ""
    transaction_id: str
    error_message: str = ""
    sql_error: Optional[int] = None
    isam_error: Optional[int] = None
    synthetic_transaction_id: bool = False

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0


class StepRecord(BaseModel):
    state: WorkflowState
    ok: bool = True
    detail: Optional[str] = None


class EnrollmentResponse(CamelModel):
    success: bool = True
    message: str = "Enrollment submitted successfully"
    cust_code: str
    transaction_id: str
    result_code: int
    error_message: str = ""
    amount_billed: Decimal
    contract_file: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)


class FallbackEnrollmentResponse(CamelModel):
    success: bool = True
    message: str = (
        "Enrollment received. Your membership will be finalized by the club."
    )
    cust_code: str
    fallback: bool = True


class EnrollmentErrorResponse(CamelModel):
    success: bool = False
    message: str = "Error submitting enrollment"
    error: str
