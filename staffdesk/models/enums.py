from __future__ import annotations

import enum


class Collection(enum.StrEnum):
    """Document collections reachable through the store gateway."""

    USERS = "users"
    LEAVE_REQUESTS = "leaveRequests"
    PURCHASE_REQUESTS = "purchaseRequests"
    LEAVE_BALANCE = "leaveBalance"
    PAYSLIPS = "payslips"
    JOB_RUNS = "jobRuns"


class Role(enum.StrEnum):
    """Role of a user in the portal."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    DEPARTMENT_MANAGER = "department_manager"
    HR = "hr"
    ADMIN = "admin"
    CEO = "ceo"
    FINANCE_MANAGER = "finance_manager"


MANAGER_ROLES = frozenset({Role.MANAGER, Role.DEPARTMENT_MANAGER})


class LeaveType(enum.StrEnum):
    """Kind of leave an employee can request."""

    ANNUAL = "annual"
    SICK = "sick"
    MATERNITY = "maternity"
    UNPAID = "unpaid"


class LeaveStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING_DEPARTMENT_MANAGER = "pending_department_manager"
    PENDING_ADMIN = "pending_admin"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class LeaveAction(enum.StrEnum):
    """Actions that move a leave request between states."""

    MANAGER_APPROVE = "manager_approve"
    MANAGER_REJECT = "manager_reject"
    ADMIN_APPROVE = "admin_approve"
    ADMIN_REJECT = "admin_reject"
    CANCEL = "cancel"


class PurchaseStatus(enum.StrEnum):
    """State machine for purchase requests."""

    PENDING_MANAGER = "pending_manager"
    PENDING_CEO = "pending_ceo"
    APPROVED = "approved"
    REJECTED = "rejected"


class PurchaseAction(enum.StrEnum):
    """Actions that move a purchase request between states."""

    MANAGER_APPROVE = "manager_approve"
    MANAGER_REJECT = "manager_reject"
    CEO_APPROVE = "ceo_approve"
    CEO_REJECT = "ceo_reject"


class ApprovalLevel(enum.StrEnum):
    """Gate at which a request currently sits or was rejected."""

    DEPARTMENT_MANAGER = "department_manager"
    ADMIN = "admin"
    CEO = "ceo"
    FINANCE = "finance"


class Decision(enum.StrEnum):
    """Outcome recorded in an action record."""

    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class PurchaseCategory(enum.StrEnum):
    OFFICE_SUPPLIES = "office_supplies"
    EQUIPMENT = "equipment"
    FURNITURE = "furniture"
    SOFTWARE = "software"
    SERVICES = "services"
    TRAVEL = "travel"
    TRAINING = "training"
    OTHER = "other"


class Urgency(enum.StrEnum):
    LOW = "low"
    NORMAL = "normal"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class PayslipStatus(enum.StrEnum):
    PENDING = "pending"
    PAID = "paid"


class AuditAction(enum.StrEnum):
    """Action recorded in a document's audit history."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    PROCESS = "PROCESS"
