"""Integration tests for the enrollment workflow against a recording invoker.

The fake invoker stands in for the club database; every test asserts on the
procedures the workflow called and the outcome it produced.
"""

import re
import threading
from decimal import Decimal

import pytest
from services.enrollment_service.errors import EnrollmentAborted
from services.enrollment_service.models.enums import WorkflowState
from services.enrollment_service.schemas import FallbackEnrollmentResponse
from services.enrollment_service.services.archiver import ContractArchiver
from services.enrollment_service.services.workflow import EnrollmentWorkflow
from tests.factories import (
    ALLOCATED_CODE,
    PRODUCTION_TRANSACTION,
    addon,
    adult_member,
    child_member,
    guardian_payload,
    make_request,
)
from tests.stubs import numbered_row, procedure_error, row

HAPPY_PATH = [
    "procNextMembershipId",
    "web_proc_InsertWebStrcustr",
    "web_proc_InsertWebAsamembr",
    "web_proc_InsertWebMessage",
    "web_proc_InsertWebAgreement",
    "web_proc_InsertWebAsprecpt",
    "web_proc_InsertProduction",
    "web_proc_InsertProductionItem",
]


def _states(outcome) -> list[str]:
    return [s.state.value for s in outcome.steps]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_happy_path_writes_every_step_in_order(workflow, fake_invoker, contracts_dir):
    outcome = await workflow.submit(make_request())

    assert fake_invoker.procedures == HAPPY_PATH
    assert _states(outcome) == [
        "allocating",
        "writing_membership",
        "writing_family",
        "writing_message_and_contract",
        "writing_receipts",
        "migrating_production",
        "archiving_contract",
        "responding",
    ]
    response = outcome.response
    assert response.success
    assert response.cust_code == ALLOCATED_CODE
    assert response.transaction_id == PRODUCTION_TRANSACTION
    assert response.result_code == 0
    assert response.amount_billed == Decimal("19.00")
    assert response.warnings == []
    assert (contracts_dir / response.contract_file).exists()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_every_write_uses_the_allocated_code(workflow, fake_invoker):
    await workflow.submit(
        make_request(
            familyMembers=[adult_member()],
            serviceAddons=[addon()],
        )
    )

    writes = [
        c for c in fake_invoker.calls
        if c.procedure not in ("procNextMembershipId", "web_proc_InsertWebAsprecpt")
    ]
    assert all(c.params[0] == ALLOCATED_CODE for c in writes)
    receipts = fake_invoker.called("web_proc_InsertWebAsprecpt")
    assert [c.params[0] for c in receipts] == [f"{ALLOCATED_CODE}-00", f"{ALLOCATED_CODE}-01"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_fallback_allocation_returns_early(workflow, fake_invoker):
    fake_invoker.respond("procNextMembershipId", procedure_error("procNextMembershipId"))
    fake_invoker.respond("web_strcustr_max_cust_code", [row(cust_code="777")])

    outcome = await workflow.submit(make_request(familyMembers=[adult_member()]))

    assert outcome.is_fallback
    assert isinstance(outcome.response, FallbackEnrollmentResponse)
    assert outcome.response.cust_code == "777"
    assert fake_invoker.procedures == [
        "procNextMembershipId",
        "web_proc_InsertWebStrcustr",
        "web_strcustr_max_cust_code",
    ]
    assert _states(outcome) == ["allocating", "fallback_returned"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_allocation_failure_aborts(workflow, fake_invoker):
    fake_invoker.respond("procNextMembershipId", [])
    fake_invoker.respond("web_proc_InsertWebStrcustr", procedure_error())

    with pytest.raises(EnrollmentAborted) as exc_info:
        await workflow.submit(make_request())

    assert exc_info.value.state == WorkflowState.ALLOCATING.value
    assert exc_info.value.completed_steps == []
    assert exc_info.value.cust_code is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_membership_write_failure_aborts_before_members(workflow, fake_invoker):
    fake_invoker.respond("web_proc_InsertWebStrcustr", procedure_error())

    with pytest.raises(EnrollmentAborted) as exc_info:
        await workflow.submit(make_request())

    aborted = exc_info.value
    assert aborted.state == "writing_membership"
    assert aborted.completed_steps == ["allocating"]
    assert aborted.cust_code == ALLOCATED_CODE
    assert "web_proc_InsertWebAsamembr" not in fake_invoker.procedures
    assert "web_proc_InsertProduction" not in fake_invoker.procedures


@pytest.mark.asyncio
@pytest.mark.integration
async def test_family_member_failure_aborts(workflow, fake_invoker):
    def fail_second_member(params):
        if params[1] == 2:
            raise procedure_error("web_proc_InsertWebAsamembr")
        return []

    fake_invoker.respond("web_proc_InsertWebAsamembr", fail_second_member)

    with pytest.raises(EnrollmentAborted) as exc_info:
        await workflow.submit(
            make_request(familyMembers=[adult_member("John"), adult_member("Kate")])
        )

    assert exc_info.value.state == "writing_family"
    assert exc_info.value.completed_steps == ["allocating", "writing_membership"]
    assert "web_proc_InsertWebMessage" not in fake_invoker.procedures


@pytest.mark.asyncio
@pytest.mark.integration
async def test_guardian_is_written_after_family(workflow, fake_invoker):
    outcome = await workflow.submit(
        make_request(specialtyMembership="J", guardian=guardian_payload())
    )

    members = fake_invoker.called("web_proc_InsertWebAsamembr")
    assert [(c.params[1], c.params[-1]) for c in members] == [(0, "P"), (1, "G")]
    assert "writing_guardian" in _states(outcome)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_agreement_failure_is_a_warning(workflow, fake_invoker):
    fake_invoker.respond("web_proc_InsertWebAgreement", procedure_error())

    outcome = await workflow.submit(make_request())

    assert outcome.response.success
    assert outcome.response.warnings == ["Membership agreement was not recorded"]
    assert "web_proc_InsertProduction" in fake_invoker.procedures


@pytest.mark.asyncio
@pytest.mark.integration
async def test_migration_failure_still_succeeds(workflow, fake_invoker):
    fake_invoker.respond("web_proc_InsertProduction", procedure_error("web_proc_InsertProduction"))

    outcome = await workflow.submit(make_request())

    response = outcome.response
    assert response.success
    assert response.result_code == -1
    assert re.match(r"^TEMP_\d+$", response.transaction_id)
    assert response.cust_code == ALLOCATED_CODE
    assert outcome.contract_file is not None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_production_code_replaces_allocated_code(workflow, fake_invoker):
    fake_invoker.respond(
        "web_proc_InsertProduction", [numbered_row(0, 0, 0, "", "111222", "TX-2")]
    )

    outcome = await workflow.submit(make_request())

    assert outcome.response.cust_code == "111222"
    assert " 111222 " in outcome.contract_file


@pytest.mark.asyncio
@pytest.mark.integration
async def test_new_mexico_dependents_bill_as_family(workflow, fake_invoker):
    await workflow.submit(
        make_request(club="201", membershipType="I", familyMembers=[child_member()])
    )

    agreement = fake_invoker.called("web_proc_InsertWebAgreement")[0]
    assert agreement.params[2] == "F"
    assert fake_invoker.procedures[0] == "web_proc_GetTaxRate"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_dues_are_looked_up_when_not_quoted(workflow, fake_invoker):
    fake_invoker.respond("web_proc_GetMembership", [row(price="49.00")])

    await workflow.submit(make_request(monthlyDues=None))

    message = fake_invoker.called("web_proc_InsertWebMessage")[0].params[1]
    assert message.endswith("Net: $49.00")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_pricing_failure_aborts_before_any_write(workflow, fake_invoker):
    fake_invoker.respond("web_proc_GetMembership", procedure_error("web_proc_GetMembership"))

    with pytest.raises(EnrollmentAborted) as exc_info:
        await workflow.submit(make_request(monthlyDues=None))

    assert exc_info.value.state == "pricing"
    assert fake_invoker.procedures == ["web_proc_GetMembership"]


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("price", [None, "n/a"])
async def test_unusable_catalog_price_aborts_before_any_write(workflow, fake_invoker, price):
    fake_invoker.respond("web_proc_GetMembership", [row(price=price)])

    with pytest.raises(EnrollmentAborted) as exc_info:
        await workflow.submit(make_request(monthlyDues=None))

    assert exc_info.value.state == "pricing"
    assert fake_invoker.procedures == ["web_proc_GetMembership"]


class ThreadRecordingArchiver(ContractArchiver):
    def save(self, *args, **kwargs):
        self.thread = threading.get_ident()
        return super().save(*args, **kwargs)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_contract_is_written_off_the_event_loop(fake_invoker, contracts_dir):
    archiver = ThreadRecordingArchiver(contracts_dir)
    workflow = EnrollmentWorkflow(fake_invoker, archiver=archiver)

    outcome = await workflow.submit(make_request())

    assert outcome.contract_file is not None
    assert archiver.thread != threading.get_ident()
