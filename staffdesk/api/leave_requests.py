# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import datetime

from fastapi import APIRouter, Query, status

from staffdesk.api.deps import ActorDep, ClockDep, StoreDep
from staffdesk.models.enums import LeaveStatus
from staffdesk.schemas.common import DecisionPayload, RejectionPayload
from staffdesk.schemas.leave import (
    DateAvailability,
    DepartmentCalendarResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    SubmitLeavePayload,
)
from staffdesk.services import leave as leave_service

leave_requests_router = APIRouter(prefix="/leave-requests", tags=["leave-requests"])


@leave_requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    payload: SubmitLeavePayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    """Submit a new leave request for the acting employee."""
    return await leave_service.submit_leave_request(store, clock, actor, payload)


@leave_requests_router.get("", response_model=LeaveRequestListResponse)
async def list_leave_requests(
    store: StoreDep,
    actor: ActorDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
) -> LeaveRequestListResponse:
    """List the leave requests the actor may see."""
    return await leave_service.list_leave_requests(store, actor, status_filter)


@leave_requests_router.get("/calendar", response_model=DepartmentCalendarResponse)
async def get_leave_calendar(
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    department: str | None = Query(default=None),
) -> DepartmentCalendarResponse:
    """Blocked dates of a department and the earliest selectable start date."""
    return await leave_service.get_leave_calendar(store, clock, actor, department)


@leave_requests_router.get("/availability", response_model=DateAvailability)
async def check_date_availability(
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    day: datetime.date = Query(),
    department: str | None = Query(default=None),
) -> DateAvailability:
    """Whether a single date can be booked, with every reason it cannot."""
    return await leave_service.check_date_availability(store, clock, actor, day, department)


@leave_requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: str,
    store: StoreDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    return await leave_service.get_leave_request(store, actor, request_id)


@leave_requests_router.post("/{request_id}/manager-approve", response_model=LeaveRequestResponse)
async def manager_approve_leave(
    request_id: str,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    payload: DecisionPayload | None = None,
) -> LeaveRequestResponse:
    """Approve at the department manager gate."""
    return await leave_service.manager_approve_leave(store, clock, actor, request_id, payload or DecisionPayload())


@leave_requests_router.post("/{request_id}/manager-reject", response_model=LeaveRequestResponse)
async def manager_reject_leave(
    request_id: str,
    payload: RejectionPayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    """Reject at the department manager gate. A reason is required."""
    return await leave_service.manager_reject_leave(store, clock, actor, request_id, payload)


@leave_requests_router.post("/{request_id}/admin-approve", response_model=LeaveRequestResponse)
async def admin_approve_leave(
    request_id: str,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
    payload: DecisionPayload | None = None,
) -> LeaveRequestResponse:
    """Final approval (admin only)."""
    return await leave_service.admin_approve_leave(store, clock, actor, request_id, payload or DecisionPayload())


@leave_requests_router.post("/{request_id}/admin-reject", response_model=LeaveRequestResponse)
async def admin_reject_leave(
    request_id: str,
    payload: RejectionPayload,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    return await leave_service.admin_reject_leave(store, clock, actor, request_id, payload)


@leave_requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    request_id: str,
    store: StoreDep,
    clock: ClockDep,
    actor: ActorDep,
) -> LeaveRequestResponse:
    """Cancel a request still waiting for the department manager (owner only)."""
    return await leave_service.cancel_leave_request(store, clock, actor, request_id)
