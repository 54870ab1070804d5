"""Read-only catalog lookups: tax rates, membership prices, add-ons and PT packages."""

from decimal import Decimal, InvalidOperation

from pydantic import ValidationError

from libs.common.config import get_settings
from libs.common.currency import round2
from libs.common.logging import get_logger
from libs.db.procedures import ProcedureError, ProcedureInvoker
from services.enrollment_service.clubs import get_club
from services.enrollment_service.models.enums import (
    MembershipCategory,
    SpecialtyMembership,
)
from services.enrollment_service.schemas.enrollment import (
    PersonalTrainingPackage,
    ServiceAddon,
)

logger = get_logger(__name__)

GET_TAX_RATE = "web_proc_GetTaxRate"
GET_MEMBERSHIP = "web_proc_GetMembership"
GET_ADDONS = "web_proc_GetAddons"
LIST_PT_PACKAGES = "procNewMemberPTPackageListSelect1"


class CatalogService:
    def __init__(self, invoker: ProcedureInvoker):
        self.invoker = invoker

    async def get_tax_rate(self, club: str) -> Decimal:
        """
        Sales tax rate as a fraction. Only New Mexico clubs charge tax on
        dues; the configured state rate is used when the store has none.
        """
        settings = get_settings()
        if not get_club(club).is_new_mexico:
            return Decimal("0")

        try:
            rows = await self.invoker.invoke(GET_TAX_RATE, club, [club])
        except ProcedureError as exc:
            logger.warning(
                "Tax rate lookup failed, using default",
                extra={"extra_fields": {"club": club, "error": str(exc)}},
            )
            return settings.NM_TAX_RATE

        value = rows[0].first_value() if rows else None
        try:
            rate = Decimal(str(value).strip()) if value is not None else None
        except InvalidOperation:
            rate = None
        if rate is None or rate <= 0:
            return settings.NM_TAX_RATE
        # Some clubs store the rate as a percentage
        return rate / 100 if rate >= 1 else rate

    async def get_membership_price(
        self,
        club: str,
        membership_type: MembershipCategory,
        specialty: SpecialtyMembership = SpecialtyMembership.STANDARD,
    ) -> Decimal:
        rows = await self.invoker.invoke(
            GET_MEMBERSHIP, club, [club, membership_type.value, specialty.value]
        )
        if not rows:
            raise LookupError(
                f"No {membership_type.label} price configured for club {club}"
            )
        row = rows[0]
        price = row.named("price", row.named("invtr_price", row.first_value()))
        try:
            amount = Decimal(str(price).strip()) if price is not None else None
        except InvalidOperation:
            amount = None
        if amount is None or not amount.is_finite() or amount < 0:
            raise LookupError(
                f"Invalid {membership_type.label} price for club {club}: {price!r}"
            )
        return round2(amount)

    async def list_addons(self, club: str) -> list[ServiceAddon]:
        rows = await self.invoker.invoke(GET_ADDONS, club, [club])
        addons: list[ServiceAddon] = []
        for row in rows:
            try:
                addons.append(ServiceAddon.model_validate(_lowered(row.as_dict())))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed add-on row",
                    extra={"extra_fields": {"club": club, "error": str(exc)}},
                )
        return addons

    async def list_pt_packages(self, club: str) -> list[PersonalTrainingPackage]:
        rows = await self.invoker.invoke(LIST_PT_PACKAGES, club, [club])
        packages: list[PersonalTrainingPackage] = []
        for row in rows:
            try:
                packages.append(
                    PersonalTrainingPackage.model_validate(_lowered(row.as_dict()))
                )
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed PT package row",
                    extra={"extra_fields": {"club": club, "error": str(exc)}},
                )
        return packages


def _lowered(row: dict) -> dict:
    return {
        key.lower(): value.strip() if isinstance(value, str) else value
        for key, value in row.items()
    }
