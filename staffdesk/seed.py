"""Seed script for a fresh database.

Every API route needs a registered user, and registering users needs an
admin, so the first admin is written straight to the store.

Run with:  uv run python -m staffdesk.seed            (admin only)
           uv run python -m staffdesk.seed --demo     (admin, demo staff, payslips)

The admin id and email come from ``SEED_ADMIN_ID`` and ``SEED_ADMIN_EMAIL``.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date
from typing import TYPE_CHECKING

from staffdesk.config import get_settings
from staffdesk.db import open_store
from staffdesk.models.enums import PayslipStatus, Role
from staffdesk.schemas.payslip import Payslip
from staffdesk.schemas.user import UpsertUserPayload
from staffdesk.services.clock import get_clock
from staffdesk.services.payslips import record_payslip
from staffdesk.services.users import find_user, upsert_user

if TYPE_CHECKING:
    from collections.abc import Sequence

    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore

MANAGER_ID = "demo-manager"
EMPLOYEE_ID = "demo-employee"

DEMO_USERS: list[tuple[str, UpsertUserPayload]] = [
    (
        MANAGER_ID,
        UpsertUserPayload(
            display_name="John Manager",
            email="manager@company.com",
            role=Role.DEPARTMENT_MANAGER,
            department="Operations",
            position="Operations Manager",
            hire_date=date(2021, 3, 1),
        ),
    ),
    (
        EMPLOYEE_ID,
        UpsertUserPayload(
            display_name="Jane Employee",
            email="employee@company.com",
            role=Role.EMPLOYEE,
            department="Operations",
            position="Operations Analyst",
            hire_date=date(2023, 1, 16),
        ),
    ),
]

DEMO_SALARY = {"basic_salary": 4500.0, "allowances": 850.0, "deductions": 420.0}


def admin_user() -> tuple[str, UpsertUserPayload]:
    settings = get_settings()
    return (
        settings.seed_admin_id,
        UpsertUserPayload(
            display_name="Admin User",
            email=settings.seed_admin_email,
            role=Role.ADMIN,
            department="IT",
            position="System Administrator",
        ),
    )


async def seed_users(
    store: DocumentStore,
    clock: Clock,
    users: Sequence[tuple[str, UpsertUserPayload]],
) -> list[str]:
    """Register users that do not exist yet. Existing profiles are left untouched."""
    created: list[str] = []
    for user_id, payload in users:
        if await find_user(store, user_id) is not None:
            print(f"  [SKIP] {payload.email} (already registered)")
            continue
        await upsert_user(store, clock, user_id, payload)
        created.append(user_id)
        print(f"  [OK] {payload.email} ({payload.role.value})")
    return created


async def seed_payslips(store: DocumentStore, clock: Clock, employee_id: str) -> int:
    """Paid payslips for every finished month of the current year."""
    today = clock.today()
    for month in range(1, today.month):
        net_pay = DEMO_SALARY["basic_salary"] + DEMO_SALARY["allowances"] - DEMO_SALARY["deductions"]
        await record_payslip(
            store,
            Payslip(
                employee_id=employee_id,
                year=today.year,
                month=month,
                net_pay=net_pay,
                status=PayslipStatus.PAID,
                created_at=clock.now(),
                **DEMO_SALARY,
            ),
        )
    print(f"  [OK] {today.month - 1} payslips for {employee_id}")
    return today.month - 1


async def seed(store: DocumentStore, clock: Clock, *, demo: bool = False) -> list[str]:
    print("\n--- Seeding users ---")
    users = [admin_user(), *(DEMO_USERS if demo else [])]
    created = await seed_users(store, clock, users)
    if demo:
        print("\n--- Seeding payslips ---")
        await seed_payslips(store, clock, EMPLOYEE_ID)
    return created


async def main(argv: Sequence[str]) -> None:
    print("=" * 60)
    print("  StaffDesk: Seed Script")
    print("=" * 60)

    async with open_store() as store:
        await seed(store, get_clock(), demo="--demo" in argv)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
