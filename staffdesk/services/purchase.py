"""Purchase request workflow.

employee submits -> department manager -> CEO (or admin) -> approved

Finance processing happens after approval and only attaches a purchase order
number; it is not a status change.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Any

from staffdesk.config import get_settings
from staffdesk.exceptions import GuardViolation, NotFoundError, StaleWriteError, ValidationError
from staffdesk.models.enums import (
    ApprovalLevel,
    AuditAction,
    Collection,
    Decision,
    PurchaseAction,
    PurchaseStatus,
    Role,
)
from staffdesk.schemas.common import ActionRecord, FinanceRecord
from staffdesk.schemas.purchase import (
    STATUS_GROUPS,
    PurchaseRequest,
    PurchaseRequestListResponse,
    PurchaseRequestResponse,
)
from staffdesk.services.audit import audit_entry, history_with
from staffdesk.services.store import Filter, InsertGuard, OrderBy
from staffdesk.services.transitions import StateMachine
from staffdesk.services.users import resolve_department_manager

if TYPE_CHECKING:
    from datetime import datetime

    from staffdesk.schemas.auth import Actor
    from staffdesk.schemas.common import DecisionPayload, RejectionPayload
    from staffdesk.schemas.purchase import FinanceProcessPayload, SubmitPurchasePayload
    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore, Record

logger = logging.getLogger(__name__)

PURCHASE_WORKFLOW = StateMachine(
    name="purchase request",
    initial=PurchaseStatus.PENDING_MANAGER,
    transitions={
        (PurchaseStatus.PENDING_MANAGER, PurchaseAction.MANAGER_APPROVE): PurchaseStatus.PENDING_CEO,
        (PurchaseStatus.PENDING_MANAGER, PurchaseAction.MANAGER_REJECT): PurchaseStatus.REJECTED,
        (PurchaseStatus.PENDING_CEO, PurchaseAction.CEO_APPROVE): PurchaseStatus.APPROVED,
        (PurchaseStatus.PENDING_CEO, PurchaseAction.CEO_REJECT): PurchaseStatus.REJECTED,
    },
    terminal=frozenset({PurchaseStatus.APPROVED, PurchaseStatus.REJECTED}),
)

_CEO_GATE_ROLES = frozenset({Role.ADMIN, Role.CEO})
_ORGANIZATION_VIEWERS = frozenset({Role.ADMIN, Role.CEO, Role.FINANCE_MANAGER})
_DEFAULT_DEPARTMENT = "General"

# Concurrent submissions in the same month can race for a sequence number.
_REFERENCE_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_purchase_response(record: Record) -> PurchaseRequestResponse:
    return PurchaseRequestResponse.model_validate(record)


async def _get_purchase_or_404(store: DocumentStore, request_id: str) -> PurchaseRequest:
    record = await store.get(Collection.PURCHASE_REQUESTS, request_id)
    if record is None:
        raise NotFoundError("Purchase request not found")
    return PurchaseRequest.from_record(record)


def reference_month_prefix(prefix: str, now: datetime) -> str:
    return f"{prefix}-{now:%Y-%m}-"


async def next_reference_number(store: DocumentStore, prefix: str, now: datetime) -> str:
    """Allocate ``PREFIX-YYYY-MM-###``, one past the requests numbered this month."""
    month_prefix = reference_month_prefix(prefix, now)
    numbered = await store.query(
        Collection.PURCHASE_REQUESTS,
        [
            Filter("referenceNumber", ">=", month_prefix),
            Filter("referenceNumber", "<", month_prefix + "~"),
        ],
    )
    return f"{month_prefix}{len(numbered) + 1:03d}"


def _reference_unused(reference: str, records: list[Record]) -> None:
    if any(record.get("referenceNumber") == reference for record in records):
        raise StaleWriteError(f"Reference number {reference} was taken concurrently")


async def _transition(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    purchase: PurchaseRequest,
    action: PurchaseAction,
    audit_action: AuditAction,
    fields: dict[str, Any],
    note: str | None = None,
) -> PurchaseRequestResponse:
    target = PURCHASE_WORKFLOW.next_status(purchase.status, action)
    now = clock.now()
    entry = audit_entry(actor, audit_action, now, from_status=purchase.status, to_status=target, note=note)
    record = await store.update(
        Collection.PURCHASE_REQUESTS,
        purchase.id or "",
        {**fields, "status": target.value, "updatedAt": now, "history": history_with(purchase, entry)},
        expected={"status": purchase.status.value},
    )
    logger.info(
        "Purchase request %s (%s): %s -> %s by %s",
        purchase.id,
        purchase.reference_number,
        purchase.status.value,
        target.value,
        actor.id,
    )
    return _build_purchase_response(record)


def _action(actor: Actor, decision: Decision, clock: Clock, comments: str) -> dict[str, Any]:
    record = ActionRecord(action=decision, by=actor.label, by_id=actor.id, at=clock.now(), comments=comments)
    return record.model_dump(mode="json", by_alias=True)


def _rejection_fields(actor: Actor, reason: str, level: ApprovalLevel, clock: Clock) -> dict[str, Any]:
    return {
        "rejectedBy": actor.label,
        "rejectedById": actor.id,
        "rejectedAt": clock.now(),
        "rejectionReason": reason,
        "rejectionLevel": level.value,
        "currentLevel": None,
    }


def _require_reason(reason: str) -> str:
    reason = reason.strip()
    if not reason:
        raise ValidationError("A rejection reason is required")
    return reason


def _check_manager_gate(actor: Actor, purchase: PurchaseRequest) -> None:
    if not actor.is_manager:
        raise GuardViolation("Only department managers can act on this approval step")
    if not actor.in_department(purchase.employee_department):
        raise GuardViolation("You can only act on purchase requests from your own department")


def _check_ceo_gate(actor: Actor) -> None:
    if actor.role not in _CEO_GATE_ROLES:
        raise GuardViolation("Only the CEO or an admin can act on this approval step")


def _can_view(actor: Actor, purchase: PurchaseRequest) -> bool:
    if actor.id == purchase.employee_id or actor.role in _ORGANIZATION_VIEWERS:
        return True
    if actor.is_finance(get_settings().finance_department):
        return True
    return actor.is_manager and actor.in_department(purchase.employee_department)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_purchase_request(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    payload: SubmitPurchasePayload,
) -> PurchaseRequestResponse:
    """Submit a purchase request.

    Flow:
    1. Validate title and amount
    2. Snapshot the department manager; with none, route straight to the CEO gate
    3. Allocate a reference number and insert, retrying if another submission
       claimed the same number first
    """
    title = payload.title.strip()
    if not title:
        raise ValidationError("A title is required")
    if payload.amount <= 0:
        raise ValidationError("Amount must be a positive number")

    settings = get_settings()
    department = actor.department or _DEFAULT_DEPARTMENT
    manager = await resolve_department_manager(store, department)
    gate_skipped = manager is None
    initial_status = PurchaseStatus.PENDING_CEO if gate_skipped else PURCHASE_WORKFLOW.initial

    now = clock.now()
    entry = audit_entry(
        actor,
        AuditAction.SUBMIT,
        now,
        to_status=initial_status,
        note="Department has no manager; routed to CEO" if gate_skipped else None,
    )

    for attempt in range(1, _REFERENCE_ATTEMPTS + 1):
        reference = await next_reference_number(store, settings.purchase_reference_prefix, now)
        purchase = PurchaseRequest(
            reference_number=reference,
            title=title,
            description=payload.description,
            amount=payload.amount,
            vendor_name=payload.vendor_name,
            vendor_contact=payload.vendor_contact,
            category=payload.category,
            urgency=payload.urgency,
            justification=payload.justification,
            attachment_url=payload.attachment_url,
            status=initial_status,
            current_level=ApprovalLevel.CEO if gate_skipped else ApprovalLevel.DEPARTMENT_MANAGER,
            employee_id=actor.id,
            employee_name=actor.label,
            employee_email=actor.email,
            employee_department=department,
            employee_role=actor.role.value,
            department_manager_id=manager.id if manager else None,
            department_manager_name=(manager.display_name or manager.email) if manager else None,
            department_manager_email=manager.email if manager else None,
            manager_gate_skipped=gate_skipped,
            submitted_at=now,
            created_at=now,
            updated_at=now,
            history=[entry],
        )
        guard = InsertGuard(
            scope=f"purchase-reference:{reference_month_prefix(settings.purchase_reference_prefix, now)}",
            collection=Collection.PURCHASE_REQUESTS,
            check=partial(_reference_unused, reference),
            filters=[Filter("referenceNumber", "==", reference)],
        )
        try:
            purchase_id = await store.insert(Collection.PURCHASE_REQUESTS, purchase.to_record(), guard=guard)
        except StaleWriteError:
            if attempt == _REFERENCE_ATTEMPTS:
                raise
            logger.info("Reference number %s taken, retrying (attempt %d)", reference, attempt)
            continue
        break

    logger.info(
        "Purchase request %s (%s) submitted by %s: %.2f -> %s",
        purchase_id,
        reference,
        actor.id,
        payload.amount,
        initial_status.value,
    )
    return _build_purchase_response({**purchase.to_record(), "id": purchase_id})


async def manager_approve_purchase(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: DecisionPayload,
) -> PurchaseRequestResponse:
    purchase = await _get_purchase_or_404(store, request_id)
    _check_manager_gate(actor, purchase)
    return await _transition(
        store,
        clock,
        actor,
        purchase,
        PurchaseAction.MANAGER_APPROVE,
        AuditAction.APPROVE,
        {
            "departmentManagerAction": _action(actor, Decision.APPROVED, clock, payload.comments),
            "currentLevel": ApprovalLevel.CEO.value,
        },
        note=payload.comments,
    )


async def manager_reject_purchase(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: RejectionPayload,
) -> PurchaseRequestResponse:
    reason = _require_reason(payload.reason)
    purchase = await _get_purchase_or_404(store, request_id)
    _check_manager_gate(actor, purchase)
    return await _transition(
        store,
        clock,
        actor,
        purchase,
        PurchaseAction.MANAGER_REJECT,
        AuditAction.REJECT,
        {
            "departmentManagerAction": _action(actor, Decision.REJECTED, clock, reason),
            **_rejection_fields(actor, reason, ApprovalLevel.DEPARTMENT_MANAGER, clock),
        },
        note=reason,
    )


async def ceo_approve_purchase(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: DecisionPayload,
) -> PurchaseRequestResponse:
    """Final approval gate. The request then waits for finance processing."""
    _check_ceo_gate(actor)
    purchase = await _get_purchase_or_404(store, request_id)
    return await _transition(
        store,
        clock,
        actor,
        purchase,
        PurchaseAction.CEO_APPROVE,
        AuditAction.APPROVE,
        {
            "ceoAction": _action(actor, Decision.APPROVED, clock, payload.comments),
            "currentLevel": ApprovalLevel.FINANCE.value,
            "approvedAt": clock.now(),
        },
        note=payload.comments,
    )


async def ceo_reject_purchase(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: RejectionPayload,
) -> PurchaseRequestResponse:
    reason = _require_reason(payload.reason)
    _check_ceo_gate(actor)
    purchase = await _get_purchase_or_404(store, request_id)
    return await _transition(
        store,
        clock,
        actor,
        purchase,
        PurchaseAction.CEO_REJECT,
        AuditAction.REJECT,
        {
            "ceoAction": _action(actor, Decision.REJECTED, clock, reason),
            **_rejection_fields(actor, reason, ApprovalLevel.CEO, clock),
        },
        note=reason,
    )


async def process_purchase_by_finance(
    store: DocumentStore,
    clock: Clock,
    actor: Actor,
    request_id: str,
    payload: FinanceProcessPayload,
) -> PurchaseRequestResponse:
    """Attach a purchase order number to an approved request.

    The status stays ``approved``. The write is conditional on no PO number
    being set yet, so a request is processed at most once.
    """
    po_number = payload.po_number.strip()
    if not po_number:
        raise ValidationError("A purchase order number is required")
    if not actor.is_finance(get_settings().finance_department):
        raise GuardViolation("Only finance can process purchase requests")

    purchase = await _get_purchase_or_404(store, request_id)
    if purchase.status != PurchaseStatus.APPROVED:
        raise GuardViolation(f"Only approved purchase requests can be processed; this one is {purchase.status.value}")
    if purchase.purchase_order_number:
        raise GuardViolation(f"Purchase order {purchase.purchase_order_number} has already been issued")

    now = clock.now()
    notes = payload.notes.strip()
    finance_action = FinanceRecord(by=actor.label, by_id=actor.id, at=now, po_number=po_number, comments=notes)
    entry = audit_entry(
        actor,
        AuditAction.PROCESS,
        now,
        from_status=purchase.status,
        to_status=purchase.status,
        note=f"PO {po_number}",
    )
    record = await store.update(
        Collection.PURCHASE_REQUESTS,
        request_id,
        {
            "financeAction": finance_action.model_dump(mode="json", by_alias=True),
            "purchaseOrderNumber": po_number,
            "financeNotes": notes or None,
            "currentLevel": None,
            "processedAt": now,
            "updatedAt": now,
            "history": history_with(purchase, entry),
        },
        expected={"status": PurchaseStatus.APPROVED.value, "purchaseOrderNumber": None},
    )
    logger.info("Purchase request %s (%s) processed by finance: PO %s", request_id, purchase.reference_number, po_number)
    return _build_purchase_response(record)


async def get_purchase_request(store: DocumentStore, actor: Actor, request_id: str) -> PurchaseRequestResponse:
    purchase = await _get_purchase_or_404(store, request_id)
    if not _can_view(actor, purchase):
        raise GuardViolation("Not authorized to view this purchase request")
    return PurchaseRequestResponse.model_validate(purchase.model_dump())


async def list_purchase_requests(
    store: DocumentStore,
    actor: Actor,
    status_group: str | None = None,
) -> PurchaseRequestListResponse:
    """List purchase requests visible to the actor, newest first.

    ``status_group`` is one of ``pending``, ``approved`` or ``rejected``.
    """
    filters: list[Filter] = []
    if actor.role in _ORGANIZATION_VIEWERS or actor.is_finance(get_settings().finance_department):
        pass
    elif actor.is_manager and actor.department:
        filters.append(Filter("employeeDepartment", "==", actor.department))
    else:
        filters.append(Filter("employeeId", "==", actor.id))

    if status_group is not None:
        statuses = STATUS_GROUPS.get(status_group)
        if statuses is None:
            raise ValidationError(f"Unknown status filter {status_group!r}; use one of {', '.join(STATUS_GROUPS)}")
        filters.append(Filter("status", "in", sorted(status.value for status in statuses)))

    records = await store.query(
        Collection.PURCHASE_REQUESTS, filters, order_by=OrderBy("createdAt", descending=True)
    )
    items = [_build_purchase_response(record) for record in records]
    return PurchaseRequestListResponse(items=items, total=len(items))
