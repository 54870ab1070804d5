"""Staged receipt lines: one dues line followed by one line per billable add-on."""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.currency import format_amount, round2
from libs.common.datetime_utils import to_mmddyyyy
from libs.common.logging import get_logger
from libs.db.procedures import ProcedureError, ProcedureInvoker
from services.enrollment_service.models.enums import BillableFlag
from services.enrollment_service.schemas.enrollment import ServiceAddon
from services.enrollment_service.schemas.results import ReceiptLine

logger = get_logger(__name__)

INSERT_RECEIPT = "web_proc_InsertWebAsprecpt"

DUES_STATEMENT_TEXT = "Monthly Dues"
DUES_UPC = "DUES"


def build_receipt_lines(
    cust_code: str,
    net_dues: Decimal,
    service_addons: Iterable[ServiceAddon],
    begin_date: Optional[date],
) -> list[ReceiptLine]:
    """Dues line first (sequence 00), then add-ons in request order."""
    lines = [
        ReceiptLine(
            document_number=f"{cust_code}-00",
            bill_to=cust_code,
            amount=round2(net_dues),
            billable_flag=BillableFlag.DUES,
            upc_code=DUES_UPC,
            statement_text=DUES_STATEMENT_TEXT,
            begin_date=begin_date,
        )
    ]
    for seq, addon in enumerate(service_addons, start=1):
        lines.append(
            ReceiptLine(
                document_number=f"{cust_code}-{seq:02d}",
                bill_to=cust_code,
                amount=round2(addon.price),
                billable_flag=BillableFlag.BILLABLE_ADDON,
                upc_code=addon.upc_code,
                statement_text=addon.description[:40],
                begin_date=begin_date,
            )
        )
    return lines


class ReceiptWriter:
    def __init__(self, invoker: ProcedureInvoker):
        self.invoker = invoker

    async def write(self, club: str, lines: list[ReceiptLine]) -> list[str]:
        """
        Write every line independently.

        Returns a warning per failed line; earlier lines stay written and later
        lines are still attempted.
        """
        warnings: list[str] = []
        for line in lines:
            params = [
                line.document_number,
                line.bill_to,
                format_amount(line.amount),
                line.billable_flag.value,
                line.upc_code,
                line.statement_text,
                to_mmddyyyy(line.begin_date) if line.begin_date else None,
            ]
            try:
                await self.invoker.invoke(INSERT_RECEIPT, club, params)
            except ProcedureError as exc:
                logger.error(
                    "Receipt line insert failed",
                    extra={
                        "extra_fields": {
                            "document_number": line.document_number,
                            "error": str(exc),
                        }
                    },
                )
                warnings.append(f"Receipt line {line.document_number} was not recorded")
                continue
            logger.info(
                "Receipt line inserted",
                extra={
                    "extra_fields": {
                        "document_number": line.document_number,
                        "billable": line.billable_flag.value,
                    }
                },
            )
        return warnings
