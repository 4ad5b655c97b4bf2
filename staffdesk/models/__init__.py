from sqlmodel import SQLModel

from staffdesk.models.document import ScopeLock, StoredDocument, new_document_id
from staffdesk.models.enums import (
    MANAGER_ROLES,
    ApprovalLevel,
    AuditAction,
    Collection,
    Decision,
    LeaveAction,
    LeaveStatus,
    LeaveType,
    PayslipStatus,
    PurchaseAction,
    PurchaseCategory,
    PurchaseStatus,
    Role,
    Urgency,
)

__all__ = [
    "MANAGER_ROLES",
    "ApprovalLevel",
    "AuditAction",
    "Collection",
    "Decision",
    "LeaveAction",
    "LeaveStatus",
    "LeaveType",
    "PayslipStatus",
    "PurchaseAction",
    "PurchaseCategory",
    "PurchaseStatus",
    "Role",
    "SQLModel",
    "ScopeLock",
    "StoredDocument",
    "Urgency",
    "new_document_id",
]
