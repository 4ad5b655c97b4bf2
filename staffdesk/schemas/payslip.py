from __future__ import annotations

import calendar

from pydantic import BaseModel, Field, computed_field

from staffdesk.models.enums import PayslipStatus
from staffdesk.schemas.common import DocumentModel, Timestamp


class Payslip(DocumentModel):
    """Monthly salary statement, stored in the ``payslips`` collection."""

    employee_id: str
    year: int
    month: int = Field(ge=1, le=12)
    basic_salary: float = 0.0
    allowances: float = 0.0
    deductions: float = 0.0
    net_pay: float = 0.0
    status: PayslipStatus = PayslipStatus.PENDING
    created_at: Timestamp | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def period_label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"


class PayslipListResponse(BaseModel):
    """Payslips of one employee for one year, newest month first."""

    employee_id: str
    year: int
    items: list[Payslip]
    total: int
    paid_count: int
    total_net_pay: float
