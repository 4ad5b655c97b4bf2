"""Integration tests for the HTTP API over a SQLite-backed document store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from staffdesk.models.enums import Role
from staffdesk.services.store import SqlDocumentStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from staffdesk.schemas.auth import Actor

ADMIN_HEADERS = {"X-User-Id": "ada"}
EMPLOYEE_HEADERS = {"X-User-Id": "emma"}
COLLEAGUE_HEADERS = {"X-User-Id": "carl"}
MANAGER_HEADERS = {"X-User-Id": "mia"}
CEO_HEADERS = {"X-User-Id": "cleo"}
FINANCE_HEADERS = {"X-User-Id": "fin"}


def _user_payload(name: str, role: str = "employee", department: str = "engineering", **extra: str) -> dict:
    return {
        "display_name": name,
        "email": f"{name.split()[0].lower()}@example.com",
        "role": role,
        "department": department,
        **extra,
    }


def _leave_payload(start: str = "2024-01-15", end: str = "2024-01-17", leave_type: str = "annual") -> dict:
    return {"type": leave_type, "start_date": start, "end_date": end, "reason": "Family trip"}


@pytest.fixture
async def users(
    async_client: AsyncClient,
    db_session: AsyncSession,
    seed_user: Callable[..., Awaitable[Actor]],
) -> None:
    """Bootstrap an admin directly, then register everyone else over the API."""
    await seed_user("ada", Role.ADMIN, "operations", name="Ada Admin", target=SqlDocumentStore(db_session))
    registrations = {
        "emma": _user_payload("Emma Employee", hire_date="2023-01-02"),
        "carl": _user_payload("Carl Colleague"),
        "mia": _user_payload("Mia Manager", role="department_manager"),
        "cleo": _user_payload("Cleo Ceo", role="ceo", department="executive"),
        "fin": _user_payload("Fin Finance", role="finance_manager", department="finance"),
    }
    for user_id, payload in registrations.items():
        response = await async_client.put(f"/users/{user_id}", json=payload, headers=ADMIN_HEADERS)
        assert response.status_code == 200, response.text


# ---------------------------------------------------------------------------
# Identity and users
# ---------------------------------------------------------------------------


async def test_missing_user_header_is_unauthorized(async_client: AsyncClient) -> None:
    response = await async_client.get("/leave-requests")
    assert response.status_code == 401
    assert response.json()["detail"] == "Missing X-User-Id header"


@pytest.mark.usefixtures("users")
async def test_unknown_user_is_unauthorized(async_client: AsyncClient) -> None:
    response = await async_client.get("/leave-requests", headers={"X-User-Id": "ghost"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Unknown user"


@pytest.mark.usefixtures("users")
async def test_only_admin_can_register_users(async_client: AsyncClient) -> None:
    response = await async_client.put("/users/zed", json=_user_payload("Zed"), headers=EMPLOYEE_HEADERS)
    assert response.status_code == 403
    assert response.json()["error"] == "AppError"


@pytest.mark.usefixtures("users")
async def test_registered_user_gets_balance(async_client: AsyncClient) -> None:
    user = await async_client.get("/users/emma", headers=EMPLOYEE_HEADERS)
    assert user.status_code == 200
    assert user.json()["display_name"] == "Emma Employee"
    assert user.json()["hire_date"] == "2023-01-02"

    listing = await async_client.get("/users", params={"department": "engineering"}, headers=EMPLOYEE_HEADERS)
    assert [item["id"] for item in listing.json()["items"]] == ["carl", "emma", "mia"]

    balance = await async_client.get("/balances/me", headers=COLLEAGUE_HEADERS)
    assert balance.status_code == 200
    assert balance.json()["annual"] == 21
    assert balance.json()["sick"] == 10


@pytest.mark.usefixtures("users")
@pytest.mark.parametrize(
    ("params", "expected"),
    [
        ({"role": "department_manager"}, ["mia"]),
        ({"search": "FIN"}, ["fin"]),
        ({"search": "example.com", "department": "executive"}, ["cleo"]),
        ({"search": "operations"}, ["ada"]),
        ({"role": "employee", "search": "col"}, ["carl"]),
        ({"search": "nobody"}, []),
    ],
)
async def test_list_users_filters_by_role_and_search(async_client: AsyncClient, params: dict, expected: list) -> None:
    response = await async_client.get("/users", params=params, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == expected


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("users")
async def test_leave_end_to_end(async_client: AsyncClient) -> None:
    response = await async_client.post("/leave-requests", json=_leave_payload(), headers=COLLEAGUE_HEADERS)
    assert response.status_code == 201, response.text
    leave = response.json()
    assert leave["status"] == "pending_department_manager"
    assert leave["days"] == 3
    assert leave["startDate"] == "2024-01-15"
    assert leave["statusLabel"] == "Pending Manager Approval"

    response = await async_client.post(f"/leave-requests/{leave['id']}/manager-approve", headers=MANAGER_HEADERS)
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "pending_admin"

    response = await async_client.post(
        f"/leave-requests/{leave['id']}/admin-approve", json={"comments": "Enjoy"}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "approved"
    assert body["adminAction"]["comments"] == "Enjoy"
    assert [entry["action"] for entry in body["history"]] == ["SUBMIT", "APPROVE", "APPROVE"]

    balance = await async_client.get("/balances/me", headers=COLLEAGUE_HEADERS)
    assert balance.json()["annual"] == 21


@pytest.mark.usefixtures("users")
async def test_leave_overlap_returns_conflicts(async_client: AsyncClient) -> None:
    first = await async_client.post("/leave-requests", json=_leave_payload(), headers=COLLEAGUE_HEADERS)
    assert first.status_code == 201

    response = await async_client.post(
        "/leave-requests", json=_leave_payload("2024-01-17", "2024-01-19"), headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "ConflictError"
    assert body["conflicts"][0]["employeeName"] == "Carl Colleague"
    assert body["conflicts"][0]["id"] == first.json()["id"]


@pytest.mark.usefixtures("users")
async def test_leave_validation_errors(async_client: AsyncClient) -> None:
    reversed_dates = await async_client.post(
        "/leave-requests", json=_leave_payload("2024-01-17", "2024-01-15"), headers=EMPLOYEE_HEADERS
    )
    assert reversed_dates.status_code == 422
    assert reversed_dates.json()["error"] == "ValidationError"

    malformed = await async_client.post("/leave-requests", json={"type": "annual"}, headers=EMPLOYEE_HEADERS)
    assert malformed.status_code == 422

    too_long = await async_client.post(
        "/leave-requests", json=_leave_payload("2024-01-15", "2024-03-29", "sick"), headers=EMPLOYEE_HEADERS
    )
    assert too_long.status_code == 400
    assert too_long.json()["error"] == "InsufficientBalanceError"


@pytest.mark.usefixtures("users")
async def test_leave_guard_violation_is_forbidden(async_client: AsyncClient) -> None:
    leave = (await async_client.post("/leave-requests", json=_leave_payload(), headers=EMPLOYEE_HEADERS)).json()

    response = await async_client.post(f"/leave-requests/{leave['id']}/manager-approve", headers=COLLEAGUE_HEADERS)
    assert response.status_code == 403
    assert response.json()["error"] == "GuardViolation"

    missing_reason = await async_client.post(
        f"/leave-requests/{leave['id']}/manager-reject", json={"reason": ""}, headers=MANAGER_HEADERS
    )
    assert missing_reason.status_code == 422


@pytest.mark.usefixtures("users")
async def test_leave_cancel(async_client: AsyncClient) -> None:
    leave = (await async_client.post("/leave-requests", json=_leave_payload(), headers=EMPLOYEE_HEADERS)).json()

    response = await async_client.post(f"/leave-requests/{leave['id']}/cancel", headers=EMPLOYEE_HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancelledBy"] == "emma"

    again = await async_client.post(f"/leave-requests/{leave['id']}/cancel", headers=EMPLOYEE_HEADERS)
    assert again.status_code == 403


@pytest.mark.usefixtures("users")
async def test_leave_listing_and_lookup(async_client: AsyncClient) -> None:
    leave = (await async_client.post("/leave-requests", json=_leave_payload(), headers=EMPLOYEE_HEADERS)).json()

    mine = await async_client.get("/leave-requests", headers=EMPLOYEE_HEADERS)
    assert mine.json()["total"] == 1
    assert (await async_client.get("/leave-requests", headers=COLLEAGUE_HEADERS)).json()["total"] == 0
    assert (await async_client.get("/leave-requests", headers=MANAGER_HEADERS)).json()["total"] == 1

    pending = await async_client.get(
        "/leave-requests", params={"status": "pending_admin"}, headers=ADMIN_HEADERS
    )
    assert pending.json()["total"] == 0

    assert (await async_client.get(f"/leave-requests/{leave['id']}", headers=MANAGER_HEADERS)).status_code == 200
    assert (await async_client.get(f"/leave-requests/{leave['id']}", headers=COLLEAGUE_HEADERS)).status_code == 403
    assert (await async_client.get("/leave-requests/nope", headers=ADMIN_HEADERS)).status_code == 404


@pytest.mark.usefixtures("users")
async def test_leave_calendar_and_availability(async_client: AsyncClient) -> None:
    await async_client.post("/leave-requests", json=_leave_payload("2024-01-19", "2024-01-22"), headers=COLLEAGUE_HEADERS)

    calendar = await async_client.get("/leave-requests/calendar", headers=EMPLOYEE_HEADERS)
    assert calendar.status_code == 200
    body = calendar.json()
    assert body["department"] == "engineering"
    assert body["minSelectableStartDate"] == "2024-01-11"
    saturday = [item for item in body["blockedDates"] if item["date"] == "2024-01-20"]
    assert [item["reason"] for item in saturday] == ["Weekend", "annual leave (taken by Carl Colleague)"]

    available = await async_client.get(
        "/leave-requests/availability", params={"day": "2024-01-18"}, headers=EMPLOYEE_HEADERS
    )
    assert available.json() == {"date": "2024-01-18", "blocked": False, "selectable": True, "reasons": []}

    blocked = await async_client.get(
        "/leave-requests/availability", params={"day": "2024-01-22"}, headers=EMPLOYEE_HEADERS
    )
    assert blocked.json()["reasons"] == ["annual leave (taken by Carl Colleague)"]

    other = await async_client.get(
        "/leave-requests/calendar", params={"department": "executive"}, headers=EMPLOYEE_HEADERS
    )
    assert other.status_code == 403


# ---------------------------------------------------------------------------
# Purchase
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("users")
async def test_purchase_end_to_end(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/purchase-requests", json={"title": "Laptop", "amount": 1800, "vendor_name": "Acme"}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 201, response.text
    purchase = response.json()
    assert purchase["referenceNumber"] == "PR-2024-01-001"
    assert purchase["status"] == "pending_manager"
    url = f"/purchase-requests/{purchase['id']}"

    assert (await async_client.post(f"{url}/manager-approve", headers=MANAGER_HEADERS)).json()["status"] == "pending_ceo"
    approved = await async_client.post(f"{url}/ceo-approve", headers=CEO_HEADERS)
    assert approved.json()["status"] == "approved"
    assert approved.json()["currentLevel"] == "finance"

    processed = await async_client.post(f"{url}/finance-process", json={"po_number": "PO-42"}, headers=FINANCE_HEADERS)
    assert processed.status_code == 200, processed.text
    body = processed.json()
    assert body["status"] == "approved"
    assert body["purchaseOrderNumber"] == "PO-42"
    assert body["statusLabel"] == "Approved (PO issued)"

    twice = await async_client.post(f"{url}/finance-process", json={"po_number": "PO-43"}, headers=FINANCE_HEADERS)
    assert twice.status_code == 403


@pytest.mark.usefixtures("users")
async def test_purchase_manager_rejection(async_client: AsyncClient) -> None:
    purchase = (
        await async_client.post("/purchase-requests", json={"title": "Boat", "amount": 90000}, headers=EMPLOYEE_HEADERS)
    ).json()

    response = await async_client.post(
        f"/purchase-requests/{purchase['id']}/manager-reject",
        json={"reason": "budget exceeded"},
        headers=MANAGER_HEADERS,
    )
    body = response.json()
    assert body["status"] == "rejected"
    assert body["rejectionLevel"] == "department_manager"
    assert body["rejectionReason"] == "budget exceeded"
    assert body["financeAction"] is None

    rejected = await async_client.get("/purchase-requests", params={"status": "rejected"}, headers=EMPLOYEE_HEADERS)
    assert rejected.json()["total"] == 1


@pytest.mark.usefixtures("users")
async def test_purchase_invalid_amount_and_group(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/purchase-requests", json={"title": "Nothing", "amount": 0}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "Amount must be a positive number"

    listing = await async_client.get("/purchase-requests", params={"status": "archived"}, headers=EMPLOYEE_HEADERS)
    assert listing.status_code == 422


# ---------------------------------------------------------------------------
# Balances and dashboard
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("users")
async def test_balance_of_other_user(async_client: AsyncClient) -> None:
    assert (await async_client.get("/balances/emma", headers=MANAGER_HEADERS)).status_code == 200
    assert (await async_client.get("/balances/emma", headers=COLLEAGUE_HEADERS)).status_code == 403


@pytest.mark.usefixtures("users")
async def test_admin_balance_jobs(async_client: AsyncClient) -> None:
    forbidden = await async_client.post("/balances/recalculate", headers=EMPLOYEE_HEADERS)
    assert forbidden.status_code == 403

    run = await async_client.post("/balances/recalculate", headers=ADMIN_HEADERS)
    assert run.status_code == 200
    assert run.json() == {"processed": 6, "updated": 1, "skipped": 5, "errors": 0}

    reset = await async_client.post("/balances/yearly-reset", headers=ADMIN_HEADERS)
    assert reset.json() == {"year": 2024, "processed": 6, "errors": 0}


@pytest.mark.usefixtures("users")
async def test_dashboard(async_client: AsyncClient) -> None:
    await async_client.post("/leave-requests", json=_leave_payload(), headers=COLLEAGUE_HEADERS)

    response = await async_client.get("/dashboard", headers=MANAGER_HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == "mia"
    assert body["awaiting_my_action"] == 1
    assert body["pending_leave_requests"] == 0
