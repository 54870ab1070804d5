"""Unit tests for the production mirror call and its result decoding."""

import re
from datetime import date
from decimal import Decimal

import pytest
from libs.db.procedures import ProcedureRow
from services.enrollment_service.errors import ResultDecodeError
from services.enrollment_service.services.migration import (
    INSERT_PRODUCTION,
    INSERT_PRODUCTION_ITEM,
    ProductionMigrator,
    decode_migration_row,
)
from services.enrollment_service.services.proration import calculate_proration
from tests.factories import addon, make_request
from tests.stubs import FakeInvoker, numbered_row, procedure_error, row

TEMP_ID = re.compile(r"^TEMP_\d+$")


def _proration(dues: str = "60.00"):
    return calculate_proration(
        requested_start_date=date(2025, 4, 16),
        full_monthly_dues=Decimal(dues),
        tax_rate=Decimal("0.07625"),
        initiation_fee=Decimal("19.00"),
        service_addons=[],
        today=date(2025, 4, 1),
    )


# ---------------------------------------------------------------------------
# decode_migration_row
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_decode_numbered_columns():
    result = decode_migration_row([numbered_row("0", "0", "0", "", " 654321 ", " TX1 ")])

    assert result.result_code == 0
    assert result.succeeded
    assert result.updated_customer_code == "654321"
    assert result.transaction_id == "TX1"
    assert not result.synthetic_transaction_id


@pytest.mark.unit
def test_decode_named_columns():
    result = decode_migration_row(
        [
            row(
                result_code=-239,
                sql_error=-239,
                isam_error=-100,
                error_message="duplicate value",
                updated_cust_code="",
                transaction_id="TX2",
            )
        ]
    )

    assert result.result_code == -239
    assert result.sql_error == -239
    assert result.isam_error == -100
    assert result.error_message == "duplicate value"
    assert not result.succeeded


@pytest.mark.unit
@pytest.mark.parametrize(
    "rows",
    [
        [],
        [ProcedureRow(columns=(), values=())],
        [numbered_row("", 0, 0, "", "", "TX")],
        [numbered_row("not-a-number", 0, 0, "", "", "TX")],
        [numbered_row(None, 0, 0, "", "", "TX")],
    ],
)
def test_decode_fails_closed_without_result_code(rows):
    with pytest.raises(ResultDecodeError):
        decode_migration_row(rows)


@pytest.mark.unit
def test_decode_scans_for_transaction_column():
    result = decode_migration_row(
        [row(result_code=0, transaction_id="", trans_no="TX-SCAN")]
    )

    assert result.transaction_id == "TX-SCAN"
    assert not result.synthetic_transaction_id


@pytest.mark.unit
def test_decode_synthesizes_transaction_id():
    result = decode_migration_row([row(result_code=0)])

    assert TEMP_ID.match(result.transaction_id)
    assert result.synthetic_transaction_id


# ---------------------------------------------------------------------------
# ProductionMigrator.migrate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_failure_is_swallowed_with_temp_id():
    invoker = FakeInvoker()
    invoker.respond(INSERT_PRODUCTION, procedure_error(INSERT_PRODUCTION, "socket closed"))

    result = await ProductionMigrator(invoker).migrate(
        make_request(), "654321", _proration(), Decimal("60.00"), Decimal("60.00"), Decimal("0")
    )

    assert result.result_code == -1
    assert TEMP_ID.match(result.transaction_id)
    assert "socket closed" in result.error_message
    assert INSERT_PRODUCTION_ITEM not in invoker.procedures


@pytest.mark.asyncio
@pytest.mark.unit
async def test_undecodable_result_is_treated_as_failure():
    invoker = FakeInvoker()
    invoker.respond(INSERT_PRODUCTION, [])

    result = await ProductionMigrator(invoker).migrate(
        make_request(), "654321", _proration(), Decimal("60.00"), Decimal("60.00"), Decimal("0")
    )

    assert result.result_code == -1
    assert INSERT_PRODUCTION_ITEM not in invoker.procedures


@pytest.mark.asyncio
@pytest.mark.unit
async def test_params_are_two_decimal_strings():
    invoker = FakeInvoker()
    invoker.respond(INSERT_PRODUCTION, [numbered_row(1, 0, 0, "pending", "", "TX")])

    await ProductionMigrator(invoker).migrate(
        make_request(), "654321", _proration(), Decimal("70"), Decimal("60"), Decimal("0.07625")
    )

    params = invoker.called(INSERT_PRODUCTION)[0].params
    assert len(params) == 25
    assert params[1] == "252"
    assert params[4:8] == ["70.00", "60.00", "30.00", "3.74"]
    assert params[10] == "19.00"
    assert params[23] == 1109779


@pytest.mark.asyncio
@pytest.mark.unit
async def test_nonzero_result_skips_item_lines():
    invoker = FakeInvoker()
    invoker.respond(INSERT_PRODUCTION, [numbered_row(1, 0, 0, "pending", "", "TX")])

    result = await ProductionMigrator(invoker).migrate(
        make_request(), "654321", _proration(), Decimal("60"), Decimal("60"), Decimal("0")
    )

    assert result.result_code == 1
    assert INSERT_PRODUCTION_ITEM not in invoker.procedures


@pytest.mark.asyncio
@pytest.mark.unit
async def test_success_writes_dues_addon_and_pt_items():
    invoker = FakeInvoker()
    invoker.respond(INSERT_PRODUCTION, [numbered_row(0, 0, 0, "", "999000", "TX-OK")])
    request = make_request(
        serviceAddons=[addon("Kids Club", "10.00", "KIDSCLUB")],
        ptPackage={"description": "Intro PT", "price": "99.00", "upcCode": "PTINTRO"},
    )

    result = await ProductionMigrator(invoker).migrate(
        request,
        "654321",
        _proration("60.00"),
        Decimal("70.00"),
        Decimal("60.00"),
        Decimal("0.07625"),
    )

    assert result.succeeded
    items = [c.params for c in invoker.called(INSERT_PRODUCTION_ITEM)]
    # cust code, club, transaction, upc, description, price, tax, qty
    assert [i[3] for i in items] == ["PRORATEDDUES", "KIDSCLUB", "PTINTRO"]
    assert all(i[0] == "999000" and i[2] == "TX-OK" for i in items)
    assert all(i[1] == "252" for i in items)
    # dues 30.00 taxed at 0.07625 = 2.2875
    assert items[0][5:7] == ["30.00", "2.29"]
    # 10.00 * 30.00 / 60.00 = 5.00; tax 0.38125
    assert items[1][5:7] == ["5.00", "0.38"]
    assert items[2][5:7] == ["99.00", "0.00"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_item_failure_does_not_change_result():
    invoker = FakeInvoker()
    invoker.respond(INSERT_PRODUCTION, [numbered_row(0, 0, 0, "", "", "TX-OK")])
    invoker.respond(INSERT_PRODUCTION_ITEM, procedure_error(INSERT_PRODUCTION_ITEM))

    result = await ProductionMigrator(invoker).migrate(
        make_request(serviceAddons=[addon()]),
        "654321",
        _proration(),
        Decimal("70"),
        Decimal("60"),
        Decimal("0"),
    )

    assert result.succeeded
    assert result.transaction_id == "TX-OK"
    assert len(invoker.called(INSERT_PRODUCTION_ITEM)) == 2
