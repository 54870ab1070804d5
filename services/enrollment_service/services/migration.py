"""
Production mirror of a staged enrollment.

The finalize procedure copies the staged rows into the production tables and
reports back a result code and a transaction id. Failures here never abort the
enrollment: the staged rows are already committed, so a failed or undecodable
call is reported as ``result_code = -1`` with a synthetic ``TEMP_`` id and left
for operators to reconcile.
"""

from decimal import Decimal
from typing import Any, Optional

from libs.common.config import get_settings
from libs.common.currency import ZERO, format_amount, round2, to_decimal
from libs.common.datetime_utils import club_today, epoch_millis, to_mmddyyyy
from libs.common.logging import get_logger
from libs.db.procedures import ProcedureError, ProcedureInvoker, ProcedureRow, is_missing
from services.enrollment_service.errors import ResultDecodeError
from services.enrollment_service.schemas.enrollment import EnrollmentRequest
from services.enrollment_service.schemas.results import (
    ProductionMigrationResult,
    ProrationResult,
)
from services.enrollment_service.services.card_utils import (
    mask_card,
    mmyy_to_date,
    to_four_char_issuer,
)
from services.enrollment_service.services.membership_writer import (
    CREATED_BY,
    effective_join_date,
)
from services.enrollment_service.services.proration import addon_prorated_share

logger = get_logger(__name__)

INSERT_PRODUCTION = "web_proc_InsertProduction"
INSERT_PRODUCTION_ITEM = "web_proc_InsertProductionItem"

FAILED_RESULT_CODE = -1

# (name, position) pairs for the finalize result row
_RESULT_COLUMNS = (
    ("result_code", 0),
    ("sql_error", 1),
    ("isam_error", 2),
    ("error_message", 3),
    ("updated_cust_code", 4),
    ("transaction_id", 5),
)


def synthetic_transaction_id() -> str:
    return f"TEMP_{epoch_millis()}"


def _as_int(value: Any) -> Optional[int]:
    if value is None or is_missing(value):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _as_text(value: Any) -> str:
    if value is None or is_missing(value):
        return ""
    return str(value).strip()


def _scan_transaction_id(row: ProcedureRow) -> str:
    for column, value in row.as_dict().items():
        if "tran" in column.lower():
            text = _as_text(value)
            if text:
                return text
    return ""


def decode_migration_row(rows: list[ProcedureRow]) -> ProductionMigrationResult:
    """
    Decode the finalize result by column name, then by numbered key, then by
    position. A row without a readable result code is rejected rather than
    treated as success.
    """
    if not rows:
        raise ResultDecodeError(INSERT_PRODUCTION, "result_code")
    row = rows[0]
    values = {name: row.lookup(name, position) for name, position in _RESULT_COLUMNS}

    result_code = _as_int(values["result_code"])
    if result_code is None:
        raise ResultDecodeError(INSERT_PRODUCTION, "result_code")

    transaction_id = _as_text(values["transaction_id"]) or _scan_transaction_id(row)
    synthetic = not transaction_id
    if synthetic:
        transaction_id = synthetic_transaction_id()
        logger.warning(
            "No transaction ID returned from production migration, using synthetic ID",
            extra={"extra_fields": {"transaction_id": transaction_id}},
        )

    return ProductionMigrationResult(
        result_code=result_code,
        sql_error=_as_int(values["sql_error"]),
        isam_error=_as_int(values["isam_error"]),
        error_message=_as_text(values["error_message"]),
        updated_customer_code=_as_text(values["updated_cust_code"]),
        transaction_id=transaction_id,
        synthetic_transaction_id=synthetic,
    )


def failed_migration(error_message: str) -> ProductionMigrationResult:
    return ProductionMigrationResult(
        result_code=FAILED_RESULT_CODE,
        transaction_id=synthetic_transaction_id(),
        error_message=error_message,
        synthetic_transaction_id=True,
    )


class ProductionMigrator:
    def __init__(self, invoker: ProcedureInvoker):
        self.invoker = invoker

    def build_params(
        self,
        request: EnrollmentRequest,
        cust_code: str,
        proration: ProrationResult,
        gross_dues: Decimal,
        net_dues: Decimal,
    ) -> list[Any]:
        payment = request.payment
        pt = request.pt_package
        return [
            cust_code,  # parCustCode
            request.club,  # parClub
            to_mmddyyyy(club_today()),  # parObtainedDate
            to_mmddyyyy(effective_join_date(request)),  # parBeginDate
            format_amount(gross_dues),  # parGrossDues
            format_amount(net_dues),  # parNetDues
            format_amount(proration.prorated_dues),  # parProratedDues
            format_amount(proration.prorated_dues_tax),  # parProratedDuesTax
            format_amount(proration.prorated_addons_total),  # parProratedAddons
            format_amount(proration.prorated_addons_tax),  # parProratedAddonsTax
            format_amount(proration.initiation_fee),  # parInitiationFee
            format_amount(payment.amount_billed or proration.total_due_now),  # parTotalBilled
            (payment.card_holder or request.business_name)[:20],  # parCardHolder
            mask_card(payment.masked_card),  # parCardMasked
            to_four_char_issuer(payment.card_brand),  # parCcIssuer
            mmyy_to_date(payment.exp_date),  # parCcExpDate
            payment.token,  # parToken
            payment.approval_code,  # parApprovalCode
            payment.transaction_id,  # parGatewayTransId
            payment.processor,  # parProcessor
            "Y" if pt else "N",  # parNewPt
            pt.upc_code if pt else "",  # parPtUpcCode
            format_amount(pt.price if pt else ZERO),  # parPtPrice
            get_settings().ONLINE_SALES_REP_CODE,  # parSalesRepEmpCode
            CREATED_BY,  # parCreatedBy
        ]

    async def migrate(
        self,
        request: EnrollmentRequest,
        cust_code: str,
        proration: ProrationResult,
        gross_dues: Decimal,
        net_dues: Decimal,
        tax_rate: Decimal,
    ) -> ProductionMigrationResult:
        """Run the finalize call; never raises for remote or decode failures."""
        params = self.build_params(request, cust_code, proration, gross_dues, net_dues)
        logger.info(
            "Migrating enrollment to production",
            extra={"extra_fields": {"cust_code": cust_code}},
        )
        try:
            rows = await self.invoker.invoke(INSERT_PRODUCTION, request.club, params)
            result = decode_migration_row(rows)
        except (ProcedureError, ResultDecodeError) as exc:
            logger.error(
                "Production migration failed",
                extra={"extra_fields": {"cust_code": cust_code, "error": str(exc)}},
            )
            return failed_migration(str(exc))

        logger.info(
            "Production migration completed",
            extra={
                "extra_fields": {
                    "result_code": result.result_code,
                    "transaction_id": result.transaction_id,
                    "updated_cust_code": result.updated_customer_code,
                }
            },
        )
        if result.succeeded:
            await self.write_items(
                request,
                result.updated_customer_code or cust_code,
                result.transaction_id,
                proration,
                net_dues,
                tax_rate,
            )
        return result

    async def write_items(
        self,
        request: EnrollmentRequest,
        cust_code: str,
        transaction_id: str,
        proration: ProrationResult,
        net_dues: Decimal,
        tax_rate: Decimal,
    ) -> int:
        """Write the UPC item lines for a finalized transaction. Returns lines written."""
        rate = to_decimal(tax_rate)
        items: list[tuple[str, str, Decimal, Decimal]] = [
            (
                get_settings().PRORATED_DUES_UPC,
                "Prorated Dues",
                proration.prorated_dues,
                round2(proration.prorated_dues * rate),
            )
        ]
        for addon in [*request.service_addons, *request.child_addons]:
            share = addon_prorated_share(addon.price, proration.prorated_dues, net_dues)
            items.append((addon.upc_code, addon.description, share, round2(share * rate)))
        if request.pt_package:
            pt = request.pt_package
            items.append((pt.upc_code, pt.description, round2(pt.price), ZERO))

        written = 0
        for upc_code, description, price, tax in items:
            params = [
                cust_code,
                request.club,
                transaction_id,
                upc_code,
                description[:40],
                format_amount(price),
                format_amount(tax),
                1,
            ]
            try:
                await self.invoker.invoke(INSERT_PRODUCTION_ITEM, request.club, params)
            except ProcedureError as exc:
                logger.error(
                    "Production item insert failed",
                    extra={"extra_fields": {"upc_code": upc_code, "error": str(exc)}},
                )
                continue
            written += 1
        return written
