"""Tests for payslip reads: ownership, the year filter and month ordering."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from staffdesk.exceptions import GuardViolation, NotFoundError
from staffdesk.models.enums import PayslipStatus, Role
from staffdesk.schemas.payslip import Payslip
from staffdesk.seed import seed_payslips
from staffdesk.services import payslips as payslip_service
from staffdesk.services.clock import FixedClock
from staffdesk.services.store import SqlDocumentStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from staffdesk.schemas.auth import Actor
    from staffdesk.services.store import DocumentStore, InMemoryDocumentStore


def _payslip(employee_id: str, month: int, year: int = 2024, **overrides: object) -> Payslip:
    fields: dict[str, object] = {
        "employee_id": employee_id,
        "year": year,
        "month": month,
        "basic_salary": 4500.0,
        "allowances": 850.0,
        "deductions": 420.0,
        "net_pay": 4930.0,
        "status": PayslipStatus.PAID,
    }
    fields.update(overrides)
    return Payslip.model_validate(fields)


async def _record_year(store: DocumentStore, employee_id: str) -> None:
    for month in (2, 11, 9):
        await payslip_service.record_payslip(store, _payslip(employee_id, month))
    await payslip_service.record_payslip(
        store, _payslip(employee_id, 12, status=PayslipStatus.PENDING, net_pay=5000.5)
    )
    await payslip_service.record_payslip(store, _payslip(employee_id, 12, year=2023))


@pytest.fixture
async def staff(seed_user: Callable[..., Awaitable[Actor]]) -> dict[str, Actor]:
    return {
        "employee": await seed_user("emma"),
        "colleague": await seed_user("carl"),
        "manager": await seed_user("mia", Role.DEPARTMENT_MANAGER),
        "hr": await seed_user("hana", Role.HR, "people"),
    }


async def test_list_own_payslips_newest_month_first(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    await _record_year(store, "emma")
    result = await payslip_service.list_payslips(store, staff["employee"], 2024)

    assert [p.month for p in result.items] == [12, 11, 9, 2]
    assert result.total == 4
    assert result.paid_count == 3
    assert result.total_net_pay == pytest.approx(4930.0 * 3 + 5000.5)
    assert result.items[0].period_label == "December 2024"


async def test_list_payslips_filters_by_year(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    await _record_year(store, "emma")
    result = await payslip_service.list_payslips(store, staff["employee"], 2023)
    assert [p.id for p in result.items] == ["emma-2023-12"]


async def test_other_employees_payslips_are_private(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    await _record_year(store, "emma")
    with pytest.raises(GuardViolation):
        await payslip_service.list_payslips(store, staff["colleague"], 2024, "emma")
    # Managers approve leave, not pay.
    with pytest.raises(GuardViolation):
        await payslip_service.get_payslip(store, staff["manager"], "emma-2024-02")


async def test_hr_sees_anyones_payslips(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    await _record_year(store, "emma")
    result = await payslip_service.list_payslips(store, staff["hr"], 2024, "emma")
    assert result.total == 4
    payslip = await payslip_service.get_payslip(store, staff["hr"], "emma-2024-09")
    assert payslip.month == 9


async def test_record_payslip_replaces_the_same_month(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    await payslip_service.record_payslip(store, _payslip("emma", 3, status=PayslipStatus.PENDING))
    await payslip_service.record_payslip(store, _payslip("emma", 3, status=PayslipStatus.PAID))

    result = await payslip_service.list_payslips(store, staff["employee"], 2024)
    assert [(p.id, p.status) for p in result.items] == [("emma-2024-03", PayslipStatus.PAID)]


async def test_get_missing_payslip(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    with pytest.raises(NotFoundError):
        await payslip_service.get_payslip(store, staff["employee"], "emma-2024-01")


async def test_seed_payslips_covers_finished_months(store: InMemoryDocumentStore, staff: dict[str, Actor]) -> None:
    count = await seed_payslips(store, FixedClock(datetime(2024, 4, 10, tzinfo=UTC)), "emma")

    assert count == 3
    result = await payslip_service.list_payslips(store, staff["employee"], 2024)
    assert [p.month for p in result.items] == [3, 2, 1]
    assert {p.net_pay for p in result.items} == {4930.0}


def test_payslip_month_must_be_valid() -> None:
    with pytest.raises(ValueError, match="month"):
        _payslip("emma", 13)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
async def sql_staff(db_session: AsyncSession, seed_user: Callable[..., Awaitable[Actor]]) -> SqlDocumentStore:
    sql_store = SqlDocumentStore(db_session)
    await seed_user("emma", target=sql_store)
    await seed_user("carl", target=sql_store)
    await seed_user("ada", Role.ADMIN, "operations", target=sql_store)
    await _record_year(sql_store, "emma")
    return sql_store


@pytest.mark.usefixtures("sql_staff")
async def test_payslips_endpoint_defaults_to_current_year(async_client: AsyncClient) -> None:
    response = await async_client.get("/payslips", headers={"X-User-Id": "emma"})

    assert response.status_code == 200
    body = response.json()
    assert body["year"] == 2024
    assert body["total"] == 4
    # Months sort numerically, not as JSON text.
    assert [item["month"] for item in body["items"]] == [12, 11, 9, 2]
    assert body["items"][0]["netPay"] == 5000.5
    assert body["items"][0]["periodLabel"] == "December 2024"
    assert response.headers["cache-control"].startswith("no-store")


@pytest.mark.usefixtures("sql_staff")
async def test_payslips_endpoint_scoping(async_client: AsyncClient) -> None:
    denied = await async_client.get("/payslips", params={"employee_id": "emma"}, headers={"X-User-Id": "carl"})
    assert denied.status_code == 403

    admin = await async_client.get(
        "/payslips", params={"employee_id": "emma", "year": 2023}, headers={"X-User-Id": "ada"}
    )
    assert admin.status_code == 200
    assert [item["id"] for item in admin.json()["items"]] == ["emma-2023-12"]

    single = await async_client.get("/payslips/emma-2024-11", headers={"X-User-Id": "emma"})
    assert single.status_code == 200
    assert single.json()["employeeId"] == "emma"

    missing = await async_client.get("/payslips/emma-2024-01", headers={"X-User-Id": "emma"})
    assert missing.status_code == 404
