# ruff: noqa: TC001, TC003
from __future__ import annotations

from pydantic import BaseModel, Field, computed_field

from staffdesk.models.enums import ApprovalLevel, PurchaseCategory, PurchaseStatus, Urgency
from staffdesk.schemas.common import ActionRecord, AuditEntry, DocumentModel, FinanceRecord, Timestamp

STATUS_LABELS: dict[PurchaseStatus, str] = {
    PurchaseStatus.PENDING_MANAGER: "Pending Manager",
    PurchaseStatus.PENDING_CEO: "Pending CEO",
    PurchaseStatus.APPROVED: "Approved",
    PurchaseStatus.REJECTED: "Rejected",
}

# Groups used by the status filter on listings.
STATUS_GROUPS: dict[str, frozenset[PurchaseStatus]] = {
    "pending": frozenset({PurchaseStatus.PENDING_MANAGER, PurchaseStatus.PENDING_CEO}),
    "approved": frozenset({PurchaseStatus.APPROVED}),
    "rejected": frozenset({PurchaseStatus.REJECTED}),
}

# ---------------------------------------------------------------------------
# Stored document
# ---------------------------------------------------------------------------


class PurchaseRequest(DocumentModel):
    """A purchase request as stored in the ``purchaseRequests`` collection."""

    reference_number: str
    title: str
    description: str = ""
    amount: float
    vendor_name: str = ""
    vendor_contact: str = ""
    category: PurchaseCategory = PurchaseCategory.OTHER
    urgency: Urgency = Urgency.NORMAL
    justification: str = ""
    attachment_url: str | None = None

    status: PurchaseStatus
    current_level: ApprovalLevel | None = None

    employee_id: str
    employee_name: str
    employee_email: str = ""
    employee_department: str
    employee_role: str = ""

    department_manager_id: str | None = None
    department_manager_name: str | None = None
    department_manager_email: str | None = None
    manager_gate_skipped: bool = False

    department_manager_action: ActionRecord | None = None
    ceo_action: ActionRecord | None = None
    finance_action: FinanceRecord | None = None
    purchase_order_number: str | None = None
    finance_notes: str | None = None

    rejected_by: str | None = None
    rejected_by_id: str | None = None
    rejected_at: Timestamp | None = None
    rejection_reason: str | None = None
    rejection_level: ApprovalLevel | None = None

    submitted_at: Timestamp | None = None
    approved_at: Timestamp | None = None
    processed_at: Timestamp | None = None
    created_at: Timestamp | None = None
    updated_at: Timestamp | None = None
    history: list[AuditEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitPurchasePayload(BaseModel):
    """Request body for submitting a purchase request."""

    title: str = Field(default="", max_length=255)
    description: str = Field(default="", max_length=5000)
    amount: float = Field(allow_inf_nan=False)
    vendor_name: str = Field(default="", max_length=255)
    vendor_contact: str = Field(default="", max_length=255)
    category: PurchaseCategory = PurchaseCategory.OFFICE_SUPPLIES
    urgency: Urgency = Urgency.NORMAL
    justification: str = Field(default="", max_length=5000)
    attachment_url: str | None = Field(default=None, max_length=2048)


class FinanceProcessPayload(BaseModel):
    """Request body for attaching a purchase order to an approved request."""

    po_number: str = Field(default="", max_length=100)
    notes: str = Field(default="", max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PurchaseRequestResponse(PurchaseRequest):
    """A purchase request with its display label."""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        if self.status == PurchaseStatus.APPROVED and self.purchase_order_number:
            return "Approved (PO issued)"
        return STATUS_LABELS[self.status]


class PurchaseRequestListResponse(BaseModel):
    items: list[PurchaseRequestResponse]
    total: int
