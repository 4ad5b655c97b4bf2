from __future__ import annotations

from typing import TYPE_CHECKING

from staffdesk.config import get_settings
from staffdesk.models.enums import Collection, LeaveStatus, PurchaseStatus, Role
from staffdesk.schemas.balance import DashboardResponse
from staffdesk.services.balance import get_current_balance
from staffdesk.services.dates import accrual_from_elapsed_days
from staffdesk.services.store import Filter
from staffdesk.services.users import find_user

if TYPE_CHECKING:
    from staffdesk.schemas.auth import Actor
    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore

_PENDING_LEAVE = [LeaveStatus.PENDING_DEPARTMENT_MANAGER.value, LeaveStatus.PENDING_ADMIN.value]
_PENDING_PURCHASE = [PurchaseStatus.PENDING_MANAGER.value, PurchaseStatus.PENDING_CEO.value]


async def _count(store: DocumentStore, collection: Collection, filters: list[Filter]) -> int:
    return len(await store.query(collection, filters))


async def _awaiting_action(store: DocumentStore, actor: Actor) -> int:
    """Number of requests currently sitting at a gate this actor can clear."""
    total = 0
    if actor.is_manager and actor.department:
        total += await _count(
            store,
            Collection.LEAVE_REQUESTS,
            [
                Filter("department", "==", actor.department),
                Filter("status", "==", LeaveStatus.PENDING_DEPARTMENT_MANAGER.value),
            ],
        )
        total += await _count(
            store,
            Collection.PURCHASE_REQUESTS,
            [
                Filter("employeeDepartment", "==", actor.department),
                Filter("status", "==", PurchaseStatus.PENDING_MANAGER.value),
            ],
        )
    if actor.role == Role.ADMIN:
        total += await _count(
            store, Collection.LEAVE_REQUESTS, [Filter("status", "==", LeaveStatus.PENDING_ADMIN.value)]
        )
    if actor.role in (Role.ADMIN, Role.CEO):
        total += await _count(
            store, Collection.PURCHASE_REQUESTS, [Filter("status", "==", PurchaseStatus.PENDING_CEO.value)]
        )
    if actor.is_finance(get_settings().finance_department):
        total += await _count(
            store,
            Collection.PURCHASE_REQUESTS,
            [
                Filter("status", "==", PurchaseStatus.APPROVED.value),
                Filter("purchaseOrderNumber", "==", None),
            ],
        )
    return total


async def get_dashboard(store: DocumentStore, clock: Clock, actor: Actor) -> DashboardResponse:
    """Balance and request counts for the actor.

    Loading the dashboard refreshes accrual first, on a best-effort basis.
    """
    balance = await get_current_balance(store, actor.id, clock)
    user = await find_user(store, actor.id)
    hire_date = user.hire_date if user is not None else None
    split = accrual_from_elapsed_days(hire_date, clock.now())

    mine = Filter("employeeId", "==", actor.id)
    return DashboardResponse(
        user_id=actor.id,
        balance=balance,
        hire_date=hire_date,
        days_since_hire=split.days_since_hire,
        leave_days_earned=split.leave_days_earned,
        pending_leave_requests=await _count(
            store, Collection.LEAVE_REQUESTS, [mine, Filter("status", "in", _PENDING_LEAVE)]
        ),
        approved_leave_requests=await _count(
            store, Collection.LEAVE_REQUESTS, [mine, Filter("status", "==", LeaveStatus.APPROVED.value)]
        ),
        pending_purchase_requests=await _count(
            store, Collection.PURCHASE_REQUESTS, [mine, Filter("status", "in", _PENDING_PURCHASE)]
        ),
        awaiting_my_action=await _awaiting_action(store, actor),
    )
