"""Staging writes for the membership, its members, join message and agreement."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from libs.common.currency import format_amount
from libs.common.datetime_utils import club_today, to_mmddyyyy
from libs.common.logging import get_logger
from libs.db.procedures import ProcedureError, ProcedureInvoker
from services.enrollment_service.errors import MembershipWriteError
from services.enrollment_service.models.enums import MemberRole
from services.enrollment_service.schemas.enrollment import (
    EnrollmentRequest,
    FamilyMember,
    Guardian,
    PersonBase,
)
from services.enrollment_service.services.card_utils import (
    mask_card,
    mmyy_to_date,
    to_four_char_issuer,
)

logger = get_logger(__name__)

CREATED_BY = "ONLINE"
PRIMARY_MEMBER_CODE = 0

INSERT_MEMBERSHIP = "web_proc_InsertWebStrcustr"
INSERT_MEMBER = "web_proc_InsertWebAsamembr"
INSERT_MESSAGE = "web_proc_InsertWebMessage"
INSERT_AGREEMENT = "web_proc_InsertWebAgreement"


def assign_member_codes(
    family_members: Sequence[FamilyMember],
) -> list[tuple[int, FamilyMember]]:
    """
    Number family members after the primary (code 0).

    Adults come first in input order (1..N), then dependents in input order
    (N+1..N+M). Codes are positional, so the order is part of the contract.
    """
    adults = [m for m in family_members if m.role == MemberRole.SECONDARY]
    dependents = [m for m in family_members if m.role == MemberRole.DEPENDENT]
    return [
        (code, member)
        for code, member in enumerate(adults + dependents, start=PRIMARY_MEMBER_CODE + 1)
    ]


def effective_join_date(request: EnrollmentRequest) -> date:
    return request.requested_start_date or club_today()


class MembershipWriter:
    """Writes the staged membership rows for one enrollment, one call per row."""

    def __init__(self, invoker: ProcedureInvoker):
        self.invoker = invoker

    async def _call(self, step: str, procedure: str, club: str, params: list[Any]) -> None:
        try:
            await self.invoker.invoke(procedure, club, params)
        except ProcedureError as exc:
            logger.error(
                "Membership write failed",
                extra={"extra_fields": {"step": step, "procedure": procedure, "error": str(exc)}},
            )
            raise MembershipWriteError(step, exc) from exc

    async def insert_membership(self, request: EnrollmentRequest, cust_code: str) -> None:
        """Stage the membership row. A blank ``cust_code`` lets the store assign one."""
        payment = request.payment
        params = [
            cust_code,  # parCustCode
            cust_code,  # parBridgeCode
            request.business_name,  # parBusName
            "",  # parCreditRep
            request.primary_phone,  # parPhone
            request.address,  # parAddress1
            request.address2,  # parAddress2
            request.city,  # parCity
            request.state.upper(),  # parState
            request.zip_code,  # parPostCode
            to_mmddyyyy(effective_join_date(request)),  # parObtainedDate
            mmyy_to_date(payment.exp_date),  # parCcExpDate
            mask_card(payment.masked_card),  # parCardNo
            payment.exp_date,  # parExpDate
            (payment.card_holder or request.business_name)[:20],  # parCardHolder
            to_four_char_issuer(payment.card_brand),  # parCcMethod
            CREATED_BY,  # parCreatedBy
            CREATED_BY,  # parSalesPersnCode
            str(request.email),  # parEmail
            request.club,  # parClub
            0,  # parOrigPosTrans
            "",  # parPin
            payment.token,  # parToken
            request.specialty_membership.value,  # parSpecialtyMembership
            "Y" if request.pt_package else "N",  # parNewPt
        ]
        logger.info(
            "Inserting primary membership record",
            extra={"extra_fields": {"bus_name": request.business_name, "club": request.club}},
        )
        await self._call("membership", INSERT_MEMBERSHIP, request.club, params)

    async def _insert_member(
        self,
        step: str,
        club: str,
        cust_code: str,
        member_code: int,
        person: PersonBase,
        role: MemberRole,
    ) -> None:
        params = [
            cust_code,  # parCustCode
            member_code,  # parMbrCode
            person.first_name.upper(),  # parFname
            person.middle_initial.upper(),  # parMname
            person.last_name.upper(),  # parLname
            person.stored_gender,  # parSex
            person.date_of_birth.isoformat(),  # parBdate
            person.home_phone,  # parHomePhone
            person.work_phone,  # parWorkPhone
            "",  # parWorkExtension
            person.cell_phone,  # parMobilePhone
            str(person.email or ""),  # parEmail
            role.value,  # parRole
        ]
        await self._call(step, INSERT_MEMBER, club, params)

    async def insert_primary_member(self, request: EnrollmentRequest, cust_code: str) -> None:
        await self._insert_member(
            "primary_member",
            request.club,
            cust_code,
            PRIMARY_MEMBER_CODE,
            request,
            MemberRole.PRIMARY,
        )
        logger.info("Primary member record inserted successfully")

    async def insert_family_members(
        self, request: EnrollmentRequest, cust_code: str
    ) -> int:
        """Insert adults then dependents. Returns the next free member code."""
        assigned = assign_member_codes(request.family_members)
        for member_code, member in assigned:
            logger.info(
                "Inserting family member",
                extra={
                    "extra_fields": {
                        "member_code": member_code,
                        "role": member.role.value,
                        "member_type": member.member_type.value,
                    }
                },
            )
            await self._insert_member(
                f"family_member_{member_code}",
                request.club,
                cust_code,
                member_code,
                member,
                member.role,
            )
        return PRIMARY_MEMBER_CODE + len(assigned) + 1

    async def insert_guardian(
        self, request: EnrollmentRequest, cust_code: str, member_code: int
    ) -> None:
        guardian: Optional[Guardian] = request.guardian
        if guardian is None:
            return
        logger.info(
            "Inserting guardian",
            extra={"extra_fields": {"member_code": member_code}},
        )
        await self._insert_member(
            "guardian", request.club, cust_code, member_code, guardian, MemberRole.GUARDIAN
        )

    async def insert_join_message(
        self, request: EnrollmentRequest, cust_code: str, net_dues: Union[Decimal, str]
    ) -> None:
        joined = effective_join_date(request)
        text = f"Join: {to_mmddyyyy(joined)} Net: ${format_amount(net_dues)}"
        params = [cust_code, text, CREATED_BY, to_mmddyyyy(club_today())]
        await self._call("join_message", INSERT_MESSAGE, request.club, params)

    async def insert_agreement(
        self,
        request: EnrollmentRequest,
        cust_code: str,
        gross_dues: Decimal,
        net_dues: Decimal,
    ) -> None:
        params = [
            cust_code,  # parCustCode
            request.club,  # parClub
            request.membership_type.value,  # parMembershipType
            request.specialty_membership.value,  # parSpecialtyMembership
            to_mmddyyyy(effective_join_date(request)),  # parBeginDate
            format_amount(gross_dues),  # parGrossDues
            format_amount(net_dues),  # parNetDues
            CREATED_BY,  # parCreatedBy
        ]
        await self._call("agreement", INSERT_AGREEMENT, request.club, params)
