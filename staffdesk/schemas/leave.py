# ruff: noqa: TC001, TC003
from __future__ import annotations

import datetime

from pydantic import BaseModel, Field, computed_field

from staffdesk.models.enums import ApprovalLevel, LeaveStatus, LeaveType
from staffdesk.schemas.common import ActionRecord, AuditEntry, CamelModel, CanonicalDate, DocumentModel, Timestamp

STATUS_LABELS: dict[LeaveStatus, str] = {
    LeaveStatus.PENDING_DEPARTMENT_MANAGER: "Pending Manager Approval",
    LeaveStatus.PENDING_ADMIN: "Pending HR Approval",
    LeaveStatus.APPROVED: "Approved",
    LeaveStatus.REJECTED: "Rejected",
    LeaveStatus.CANCELLED: "Cancelled",
}

# ---------------------------------------------------------------------------
# Stored document
# ---------------------------------------------------------------------------


class LeaveRequest(DocumentModel):
    """A leave request as stored in the ``leaveRequests`` collection."""

    type: LeaveType
    start_date: CanonicalDate
    end_date: CanonicalDate
    days: int
    reason: str
    status: LeaveStatus

    employee_id: str
    employee_name: str
    employee_email: str = ""
    department: str

    department_manager_id: str | None = None
    department_manager_name: str | None = None
    department_manager_email: str | None = None
    manager_gate_skipped: bool = False

    department_manager_action: ActionRecord | None = None
    admin_action: ActionRecord | None = None

    rejected_by: str | None = None
    rejected_by_id: str | None = None
    rejected_at: Timestamp | None = None
    rejection_reason: str | None = None
    rejection_level: ApprovalLevel | None = None

    cancelled_by: str | None = None
    cancelled_at: Timestamp | None = None
    approved_at: Timestamp | None = None

    created_at: Timestamp | None = None
    updated_at: Timestamp | None = None
    history: list[AuditEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for submitting a leave request."""

    type: LeaveType = LeaveType.ANNUAL
    start_date: datetime.date
    end_date: datetime.date
    reason: str = Field(default="", max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(LeaveRequest):
    """A leave request with its display label."""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        return STATUS_LABELS[self.status]


class LeaveRequestListResponse(BaseModel):
    items: list[LeaveRequestResponse]
    total: int


class BlockedDate(CamelModel):
    """A calendar date that cannot be booked, with the reason."""

    date: datetime.date
    reason: str
    employee_name: str | None = None


class DateAvailability(CamelModel):
    """Every reason a single date is unavailable."""

    date: datetime.date
    blocked: bool
    selectable: bool
    reasons: list[str]


class DepartmentCalendarResponse(CamelModel):
    """Booked days of a department, for calendar rendering."""

    department: str
    min_selectable_start_date: datetime.date
    blocked_dates: list[BlockedDate]
