"""Department leave calendar: double-booking and weekend rules.

Every leave submission goes through :func:`find_conflicts`, so this is the one
place that decides whether two leaves in a department collide.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from staffdesk.models.enums import Collection, LeaveStatus
from staffdesk.schemas.leave import BlockedDate, DateAvailability, DepartmentCalendarResponse, LeaveRequest
from staffdesk.services.dates import is_weekend, iter_days, next_business_day_after
from staffdesk.services.store import Filter

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore

WEEKEND_REASON = "Weekend"

# Leaves in these states occupy the calendar.
ACTIVE_LEAVE_STATUSES = (
    LeaveStatus.APPROVED,
    LeaveStatus.PENDING_DEPARTMENT_MANAGER,
    LeaveStatus.PENDING_ADMIN,
)


def overlaps(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Closed-interval overlap: sharing a single boundary day counts."""
    return start_a <= end_b and start_b <= end_a


def find_conflicts(start: date, end: date, intervals: Sequence[LeaveRequest]) -> list[LeaveRequest]:
    """Return the leaves whose [start_date, end_date] overlaps [start, end]."""
    return [leave for leave in intervals if overlaps(start, end, leave.start_date, leave.end_date)]


def leave_reason(leave: LeaveRequest) -> str:
    return f"{leave.type.value} leave (taken by {leave.employee_name})"


def expand_blocked_dates(intervals: Sequence[LeaveRequest]) -> list[BlockedDate]:
    """Expand leaves into one entry per blocked date and reason, sorted by date.

    Weekend days inside a leave produce a ``Weekend`` entry as well as the
    leave entry, so both facts can be looked up.
    """
    blocked: list[BlockedDate] = []
    weekends_seen: set[date] = set()
    for leave in intervals:
        for day in iter_days(leave.start_date, leave.end_date):
            if is_weekend(day) and day not in weekends_seen:
                weekends_seen.add(day)
                blocked.append(BlockedDate(date=day, reason=WEEKEND_REASON))
            blocked.append(BlockedDate(date=day, reason=leave_reason(leave), employee_name=leave.employee_name))
    blocked.sort(key=lambda item: (item.date, item.reason != WEEKEND_REASON))
    return blocked


def is_date_blocked(day: date, blocked: Sequence[BlockedDate]) -> DateAvailability:
    """Collect every reason ``day`` is unavailable.

    The weekend rule applies whether or not any leave covers the day and is
    listed first.
    """
    reasons = [WEEKEND_REASON] if is_weekend(day) else []
    reasons.extend(item.reason for item in blocked if item.date == day and item.reason != WEEKEND_REASON)
    return DateAvailability(date=day, blocked=bool(reasons), selectable=not reasons, reasons=reasons)


def min_selectable_start_date(today: date) -> date:
    """Earliest bookable start: the first weekday strictly after today."""
    return next_business_day_after(today)


def department_leave_filters(department: str) -> list[Filter]:
    return [
        Filter("department", "==", department),
        Filter("status", "in", [status.value for status in ACTIVE_LEAVE_STATUSES]),
    ]


async def load_department_intervals(
    store: DocumentStore,
    department: str,
    exclude_employee_id: str | None = None,
) -> list[LeaveRequest]:
    """Fetch the approved and pending leaves of a department."""
    records = await store.query(Collection.LEAVE_REQUESTS, department_leave_filters(department))
    leaves = [LeaveRequest.from_record(record) for record in records]
    if exclude_employee_id is not None:
        leaves = [leave for leave in leaves if leave.employee_id != exclude_employee_id]
    return leaves


async def get_department_calendar(
    store: DocumentStore,
    clock: Clock,
    department: str,
) -> DepartmentCalendarResponse:
    """Blocked dates of a department plus the earliest selectable start date."""
    leaves = await load_department_intervals(store, department)
    return DepartmentCalendarResponse(
        department=department,
        min_selectable_start_date=min_selectable_start_date(clock.today()),
        blocked_dates=expand_blocked_dates(leaves),
    )
