from __future__ import annotations

from fastapi import APIRouter

from staffdesk.api.deps import ActorDep, AdminDep, ClockDep, StoreDep
from staffdesk.schemas.balance import AccrualRunResponse, BalanceResponse, DashboardResponse, YearlyResetResponse
from staffdesk.services import balance as balance_service
from staffdesk.services import dashboard as dashboard_service

balances_router = APIRouter(prefix="/balances", tags=["balances"])

dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@balances_router.get("/me", response_model=BalanceResponse)
async def get_my_balance(
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> BalanceResponse:
    """Current balance of the acting user, refreshed from accrual first."""
    return await balance_service.get_current_balance(store, actor.id, clock)


@balances_router.get("/{user_id}", response_model=BalanceResponse)
async def get_user_balance(
    user_id: str,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> BalanceResponse:
    return await balance_service.get_user_balance(store, clock, actor, user_id)


@balances_router.post("/recalculate", response_model=AccrualRunResponse)
async def recalculate_all_balances(
    store: StoreDep,
    clock: ClockDep,
    _admin: AdminDep,
) -> AccrualRunResponse:
    """Recompute accrual for every user (admin only)."""
    return await balance_service.recalculate_all(store, clock)


@balances_router.post("/yearly-reset", response_model=YearlyResetResponse)
async def reset_yearly_balances(
    store: StoreDep,
    clock: ClockDep,
    _admin: AdminDep,
) -> YearlyResetResponse:
    """Reset every user's entitlements for the current year (admin only)."""
    return await balance_service.reset_yearly_balances(store, clock)


@dashboard_router.get("", response_model=DashboardResponse)
async def get_dashboard(
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> DashboardResponse:
    """Balance and request counts for the acting user."""
    return await dashboard_service.get_dashboard(store, clock, actor)
