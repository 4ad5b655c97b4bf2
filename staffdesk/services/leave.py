"""Leave request workflow.

employee submits -> department manager -> admin -> approved

Every transition is a conditional write on the status that was read, so two
approvers racing on the same request cannot both succeed. Approval does not
deduct balance; balances are managed by accrual and the yearly reset.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Any

from staffdesk.exceptions import ConflictError, GuardViolation, InsufficientBalanceError, NotFoundError, ValidationError
from staffdesk.models.enums import (
    ApprovalLevel,
    AuditAction,
    Collection,
    Decision,
    LeaveAction,
    LeaveStatus,
    LeaveType,
    Role,
)
from staffdesk.schemas.common import ActionRecord
from staffdesk.schemas.leave import (
    DateAvailability,
    DepartmentCalendarResponse,
    LeaveRequest,
    LeaveRequestListResponse,
    LeaveRequestResponse,
)
from staffdesk.services.audit import audit_entry, history_with
from staffdesk.services.availability import (
    department_leave_filters,
    find_conflicts,
    get_department_calendar,
    is_date_blocked,
    min_selectable_start_date,
)
from staffdesk.services.balance import get_balance
from staffdesk.services.dates import business_days_between
from staffdesk.services.store import Filter, InsertGuard, OrderBy
from staffdesk.services.transitions import StateMachine
from staffdesk.services.users import resolve_department_manager

if TYPE_CHECKING:
    from datetime import date

    from staffdesk.schemas.auth import Actor
    from staffdesk.schemas.common import DecisionPayload, RejectionPayload
    from staffdesk.schemas.leave import SubmitLeavePayload
    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore, Record

logger = logging.getLogger(__name__)

LEAVE_WORKFLOW = StateMachine(
    name="leave request",
    initial=LeaveStatus.PENDING_DEPARTMENT_MANAGER,
    transitions={
        (LeaveStatus.PENDING_DEPARTMENT_MANAGER, LeaveAction.MANAGER_APPROVE): LeaveStatus.PENDING_ADMIN,
        (LeaveStatus.PENDING_DEPARTMENT_MANAGER, LeaveAction.MANAGER_REJECT): LeaveStatus.REJECTED,
        (LeaveStatus.PENDING_DEPARTMENT_MANAGER, LeaveAction.CANCEL): LeaveStatus.CANCELLED,
        (LeaveStatus.PENDING_ADMIN, LeaveAction.ADMIN_APPROVE): LeaveStatus.APPROVED,
        (LeaveStatus.PENDING_ADMIN, LeaveAction.ADMIN_REJECT): LeaveStatus.REJECTED,
    },
    terminal=frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}),
)

# Roles that see every leave request.
_ORGANIZATION_VIEWERS = frozenset({Role.ADMIN, Role.HR, Role.CEO})


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_leave_response(record: Record) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(record)


def _dump(model: ActionRecord) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


async def _get_leave_or_404(store: DocumentStore, request_id: str) -> LeaveRequest:
    record = await store.get(Collection.LEAVE_REQUESTS, request_id)
    if record is None:
        raise NotFoundError("Leave request not found")
    return LeaveRequest.from_record(record)


def _describe_conflict(leave: LeaveRequest) -> str:
    return f"{leave.employee_name} ({leave.type.value}, {leave.start_date.isoformat()} to {leave.end_date.isoformat()})"


def _reject_overlaps(start: date, end: date, records: list[Record]) -> None:
    """Insert guard: abort when the proposed dates overlap department leave."""
    conflicts = find_conflicts(start, end, [LeaveRequest.from_record(record) for record in records])
    if not conflicts:
        return
    names = ", ".join(_describe_conflict(leave) for leave in conflicts)
    raise ConflictError(
        f"The selected dates overlap with approved or pending leave in your department: {names}",
        conflicts=[
            {
                "id": leave.id,
                "employeeName": leave.employee_name,
                "type": leave.type.value,
                "startDate": leave.start_date.isoformat(),
                "endDate": leave.end_date.isoformat(),
                "status": leave.status.value,
            }
            for leave in conflicts
        ],
    )


def _require_reason(reason: str) -> str:
    reason = reason.strip()
    if not reason:
        raise ValidationError("A rejection reason is required")
    return reason


async def _transition(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    leave: LeaveRequest,
    action: LeaveAction,
    audit_action: AuditAction,
    fields: dict[str, Any],
    note: str | None = None,
) -> LeaveRequestResponse:
    """Apply ``action`` as a single write conditional on the current status."""
    target = LEAVE_WORKFLOW.next_status(leave.status, action)
    now = clock.now()
    entry = audit_entry(actor, audit_action, now, from_status=leave.status, to_status=target, note=note)
    record = await store.update(
        Collection.LEAVE_REQUESTS,
        leave.id or "",
        {**fields, "status": target.value, "updatedAt": now, "history": history_with(leave, entry)},
        expected={"status": leave.status.value},
    )
    logger.info("Leave request %s: %s -> %s by %s", leave.id, leave.status.value, target.value, actor.id)
    return _build_leave_response(record)


def _rejection_fields(actor: Actor, reason: str, level: ApprovalLevel, clock: Clock) -> dict[str, Any]:
    return {
        "rejectedBy": actor.label,
        "rejectedById": actor.id,
        "rejectedAt": clock.now(),
        "rejectionReason": reason,
        "rejectionLevel": level.value,
    }


def _check_manager_gate(actor: Actor, leave: LeaveRequest) -> None:
    if not actor.is_manager:
        raise GuardViolation("Only department managers can act on this approval step")
    if not actor.in_department(leave.department):
        raise GuardViolation("You can only act on leave requests from your own department")


def _check_admin_gate(actor: Actor) -> None:
    if actor.role != Role.ADMIN:
        raise GuardViolation("Only admins can act on this approval step")


def _can_view(actor: Actor, leave: LeaveRequest) -> bool:
    if actor.id == leave.employee_id or actor.role in _ORGANIZATION_VIEWERS:
        return True
    return actor.is_manager and actor.in_department(leave.department)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_leave_request(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    payload: SubmitLeavePayload,
) -> LeaveRequestResponse:
    """Submit a leave request for the acting employee.

    Flow:
    1. Validate the payload (reason, date order, start after today, business days)
    2. Check the stored balance (unpaid leave is not balance-checked)
    3. Snapshot the department manager; with none, route straight to admin
    4. Insert, guarded by the department calendar so overlapping leave is
       rejected atomically with the write
    """
    today = clock.today()

    # 1. Validate.
    reason = payload.reason.strip()
    if not reason:
        raise ValidationError("A reason is required")
    if payload.end_date < payload.start_date:
        raise ValidationError("End date cannot be before start date")
    if payload.start_date <= today:
        earliest = min_selectable_start_date(today)
        raise ValidationError(f"Leave must start after today; the earliest start date is {earliest.isoformat()}")
    if not actor.department:
        raise ValidationError("Your profile has no department; ask an admin to assign one")

    days = business_days_between(payload.start_date, payload.end_date)
    if days == 0:
        raise ValidationError("The selected dates contain no business days")

    # 2. Balance check against the stored value, no recalculation.
    if payload.type != LeaveType.UNPAID:
        balance = await get_balance(store, actor.id)
        available = balance.available(payload.type) if balance is not None else 0
        if days > available:
            raise InsufficientBalanceError(payload.type.value, days, available)

    # 3. Manager snapshot.
    manager = await resolve_department_manager(store, actor.department)
    gate_skipped = manager is None
    initial_status = LeaveStatus.PENDING_ADMIN if gate_skipped else LEAVE_WORKFLOW.initial

    now = clock.now()
    entry = audit_entry(
        actor,
        AuditAction.SUBMIT,
        now,
        to_status=initial_status,
        note="Department has no manager; routed to admin" if gate_skipped else None,
    )
    leave = LeaveRequest(
        type=payload.type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days=days,
        reason=reason,
        status=initial_status,
        employee_id=actor.id,
        employee_name=actor.label,
        employee_email=actor.email,
        department=actor.department,
        department_manager_id=manager.id if manager else None,
        department_manager_name=(manager.display_name or manager.email) if manager else None,
        department_manager_email=manager.email if manager else None,
        manager_gate_skipped=gate_skipped,
        created_at=now,
        updated_at=now,
        history=[entry],
    )

    # 4. Guarded insert.
    guard = InsertGuard(
        scope=f"leave-calendar:{actor.department}",
        collection=Collection.LEAVE_REQUESTS,
        check=partial(_reject_overlaps, payload.start_date, payload.end_date),
        filters=department_leave_filters(actor.department),
    )
    leave_id = await store.insert(Collection.LEAVE_REQUESTS, leave.to_record(), guard=guard)

    logger.info(
        "Leave request %s submitted by %s: %s %s..%s (%d days) -> %s",
        leave_id,
        actor.id,
        payload.type.value,
        payload.start_date.isoformat(),
        payload.end_date.isoformat(),
        days,
        initial_status.value,
    )
    return _build_leave_response({**leave.to_record(), "id": leave_id})


async def manager_approve_leave(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: DecisionPayload,
) -> LeaveRequestResponse:
    """Department manager approval: forwards the request to admin."""
    leave = await _get_leave_or_404(store, request_id)
    _check_manager_gate(actor, leave)
    action = ActionRecord(action=Decision.APPROVED, by=actor.label, by_id=actor.id, at=clock.now(), comments=payload.comments)
    return await _transition(
        store,
        clock,
        actor,
        leave,
        LeaveAction.MANAGER_APPROVE,
        AuditAction.APPROVE,
        {"departmentManagerAction": _dump(action)},
        note=payload.comments,
    )


async def manager_reject_leave(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: RejectionPayload,
) -> LeaveRequestResponse:
    reason = _require_reason(payload.reason)
    leave = await _get_leave_or_404(store, request_id)
    _check_manager_gate(actor, leave)
    action = ActionRecord(action=Decision.REJECTED, by=actor.label, by_id=actor.id, at=clock.now(), comments=reason)
    return await _transition(
        store,
        clock,
        actor,
        leave,
        LeaveAction.MANAGER_REJECT,
        AuditAction.REJECT,
        {
            "departmentManagerAction": _dump(action),
            **_rejection_fields(actor, reason, ApprovalLevel.DEPARTMENT_MANAGER, clock),
        },
        note=reason,
    )


async def admin_approve_leave(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: DecisionPayload,
) -> LeaveRequestResponse:
    """Final approval. The balance is not touched."""
    _check_admin_gate(actor)
    leave = await _get_leave_or_404(store, request_id)
    now = clock.now()
    action = ActionRecord(action=Decision.APPROVED, by=actor.label, by_id=actor.id, at=now, comments=payload.comments)
    return await _transition(
        store,
        clock,
        actor,
        leave,
        LeaveAction.ADMIN_APPROVE,
        AuditAction.APPROVE,
        {"adminAction": _dump(action), "approvedAt": now},
        note=payload.comments,
    )


async def admin_reject_leave(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: RejectionPayload,
) -> LeaveRequestResponse:
    reason = _require_reason(payload.reason)
    _check_admin_gate(actor)
    leave = await _get_leave_or_404(store, request_id)
    action = ActionRecord(action=Decision.REJECTED, by=actor.label, by_id=actor.id, at=clock.now(), comments=reason)
    return await _transition(
        store,
        clock,
        actor,
        leave,
        LeaveAction.ADMIN_REJECT,
        AuditAction.REJECT,
        {"adminAction": _dump(action), **_rejection_fields(actor, reason, ApprovalLevel.ADMIN, clock)},
        note=reason,
    )


async def cancel_leave_request(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
) -> LeaveRequestResponse:
    """Withdraw a request still waiting for the department manager.

    Only the requesting employee may cancel, and only before the leave starts.
    """
    leave = await _get_leave_or_404(store, request_id)
    if actor.id != leave.employee_id:
        raise GuardViolation("Only the employee who submitted this request can cancel it")
    LEAVE_WORKFLOW.next_status(leave.status, LeaveAction.CANCEL)
    if leave.start_date <= clock.today():
        raise GuardViolation("Leave that has already started cannot be cancelled")

    return await _transition(
        store,
        clock,
        actor,
        leave,
        LeaveAction.CANCEL,
        AuditAction.CANCEL,
        {"cancelledBy": actor.id, "cancelledAt": clock.now()},
    )


async def get_leave_request(store: DocumentStore, actor: Actor, request_id: str) -> LeaveRequestResponse:
    leave = await _get_leave_or_404(store, request_id)
    if not _can_view(actor, leave):
        raise GuardViolation("Not authorized to view this leave request")
    return LeaveRequestResponse.model_validate(leave.model_dump())


async def list_leave_requests(
    store: DocumentStore,
    actor: Actor,
    status_filter: LeaveStatus | None = None,
) -> LeaveRequestListResponse:
    """List leave requests visible to the actor, newest first.

    Employees see their own requests, managers their department's, and
    admin, HR and CEO everything.
    """
    filters: list[Filter] = []
    if actor.role in _ORGANIZATION_VIEWERS:
        pass
    elif actor.is_manager and actor.department:
        filters.append(Filter("department", "==", actor.department))
    else:
        filters.append(Filter("employeeId", "==", actor.id))
    if status_filter is not None:
        filters.append(Filter("status", "==", status_filter.value))

    records = await store.query(Collection.LEAVE_REQUESTS, filters, order_by=OrderBy("createdAt", descending=True))
    items = [_build_leave_response(record) for record in records]
    return LeaveRequestListResponse(items=items, total=len(items))


def _calendar_department(actor: Actor, department: str | None) -> str:
    department = department or actor.department
    if not department:
        raise ValidationError("No department given and your profile has none")
    if department != actor.department and actor.role not in _ORGANIZATION_VIEWERS:
        raise GuardViolation("You can only view the leave calendar of your own department")
    return department


async def get_leave_calendar(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    department: str | None = None,
) -> DepartmentCalendarResponse:
    """Blocked dates of the actor's department (any department for admin, HR and CEO)."""
    return await get_department_calendar(store, clock, _calendar_department(actor, department))


async def check_date_availability(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    day: date,
    department: str | None = None,
) -> DateAvailability:
    calendar = await get_leave_calendar(store, clock, actor, department)
    return is_date_blocked(day, calendar.blocked_dates)
