from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from libs.db.config import TenantEngineRegistry
from services.enrollment_service.app.dependencies import get_catalog, get_workflow
from services.enrollment_service.app.main import app
from services.enrollment_service.routers import enrollments as enrollments_router
from services.enrollment_service.services.archiver import ContractArchiver
from services.enrollment_service.services.catalog import CatalogService
from services.enrollment_service.services.workflow import EnrollmentWorkflow
from tests.factories import ALLOCATED_CODE, PRODUCTION_TRANSACTION
from tests.stubs import FakeInvoker, numbered_row, row


@pytest.fixture
def fake_invoker() -> FakeInvoker:
    """
    An invoker where every procedure succeeds: the allocator hands out
    ALLOCATED_CODE and the production mirror returns result code 0.
    """
    invoker = FakeInvoker()
    invoker.respond("procNextMembershipId", [row(cust_code=f" {ALLOCATED_CODE} ")])
    invoker.respond(
        "web_proc_InsertProduction",
        [numbered_row(0, 0, 0, "", ALLOCATED_CODE, PRODUCTION_TRANSACTION)],
    )
    return invoker


@pytest.fixture
def contracts_dir(tmp_path):
    return tmp_path / "contracts"


@pytest.fixture
def workflow(fake_invoker, contracts_dir) -> EnrollmentWorkflow:
    return EnrollmentWorkflow(fake_invoker, archiver=ContractArchiver(contracts_dir))


@pytest.fixture
def notifications(monkeypatch) -> dict[str, AsyncMock]:
    """
    Replace every email the router schedules with a recording mock.
    """
    mocks = {}
    for name in (
        "send_welcome_email",
        "send_new_member_notification",
        "alert_enrollment_failure",
        "alert_migration_pending",
    ):
        mock = AsyncMock(return_value=True)
        monkeypatch.setattr(enrollments_router, name, mock)
        mocks[name] = mock
    return mocks


@pytest_asyncio.fixture
async def client(workflow, fake_invoker, notifications) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and the workflow dependency overridden
    to run against the fake invoker.
    """
    app.dependency_overrides[get_workflow] = lambda: workflow
    app.dependency_overrides[get_catalog] = lambda: CatalogService(fake_invoker)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Real engines over a file-backed SQLite club database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def club_database(tmp_path) -> str:
    """
    URL of a SQLite database holding a few staged web_strcustr rows.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'club.db'}"
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.execute(
            text(
                "create table web_strcustr "
                "(cust_code varchar(10), bus_name varchar(40), email varchar(60))"
            )
        )
        await conn.execute(
            text(
                "insert into web_strcustr values "
                "('500100', 'JANE Q. DOE', 'jane.doe@test.com'), "
                "('500200', 'JANE Q. DOE', 'jane.doe@test.com'), "
                "('500300', 'JOHN DOE', 'john@test.com')"
            )
        )
    await engine.dispose()
    return url


@pytest.fixture
def unreachable_database(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'club.db'}"


@pytest_asyncio.fixture
async def engines(club_database) -> AsyncGenerator[TenantEngineRegistry, None]:
    """Every club resolves to the seeded SQLite database."""
    registry = TenantEngineRegistry(lambda _club: club_database)
    yield registry
    await registry.dispose_all()
