# ruff: noqa: TC003
from __future__ import annotations

from pydantic import BaseModel

from staffdesk.models.enums import LeaveType
from staffdesk.schemas.common import DocumentModel, LenientDate, Timestamp

# ---------------------------------------------------------------------------
# Stored document
# ---------------------------------------------------------------------------


class LeaveBalance(DocumentModel):
    """Per-employee leave balance, keyed by the user id."""

    annual: int = 0
    sick: int = 0
    maternity: int = 0
    unpaid: int = 0
    personal: int = 0
    total_days_accounted: int = 0
    last_auto_update: Timestamp | None = None
    last_updated: Timestamp | None = None

    def available(self, leave_type: LeaveType) -> int:
        return getattr(self, leave_type.value)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Leave balance of one employee."""

    user_id: str
    annual: int
    sick: int
    maternity: int
    unpaid: int
    personal: int
    total_days_accounted: int
    last_updated: Timestamp | None


class AccrualRunResponse(BaseModel):
    """Summary of an accrual recompute over all users."""

    processed: int
    updated: int
    skipped: int
    errors: int


class YearlyResetResponse(BaseModel):
    """Summary of a yearly balance reset."""

    year: int
    processed: int
    errors: int


class DashboardResponse(BaseModel):
    """Numbers shown on an employee's dashboard."""

    user_id: str
    balance: BalanceResponse
    hire_date: LenientDate = None
    days_since_hire: int
    leave_days_earned: int
    pending_leave_requests: int
    approved_leave_requests: int
    pending_purchase_requests: int
    awaiting_my_action: int
