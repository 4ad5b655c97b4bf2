# ruff: noqa: B008
from __future__ import annotations

from fastapi import APIRouter, Query

from staffdesk.api.deps import ActorDep, ClockDep, StoreDep
from staffdesk.schemas.payslip import Payslip, PayslipListResponse
from staffdesk.services import payslips as payslip_service

payslips_router = APIRouter(prefix="/payslips", tags=["payslips"])


@payslips_router.get("", response_model=PayslipListResponse)
async def list_payslips(
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    year: int | None = Query(default=None, ge=1900, le=9999),
    employee_id: str | None = Query(default=None),
) -> PayslipListResponse:
    """Payslips for a year (the current one by default), newest month first."""
    return await payslip_service.list_payslips(store, actor, year or clock.today().year, employee_id)


@payslips_router.get("/{payslip_id}", response_model=Payslip)
async def get_payslip(
    payslip_id: str,
    store: StoreDep,
    actor: ActorDep,
) -> Payslip:
    return await payslip_service.get_payslip(store, actor, payslip_id)
