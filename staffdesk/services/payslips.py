"""Read access to monthly payslips.

Payslips are produced by payroll outside this service; the portal only lists
them. Employees see their own, admin and HR see anyone's.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from staffdesk.exceptions import GuardViolation, NotFoundError
from staffdesk.models.enums import Collection, PayslipStatus, Role
from staffdesk.schemas.payslip import Payslip, PayslipListResponse
from staffdesk.services.store import Filter

if TYPE_CHECKING:
    from staffdesk.schemas.auth import Actor
    from staffdesk.services.store import DocumentStore

logger = logging.getLogger(__name__)

_PAYSLIP_VIEWERS = frozenset({Role.ADMIN, Role.HR})


def _check_can_view(actor: Actor, employee_id: str) -> None:
    if actor.id != employee_id and actor.role not in _PAYSLIP_VIEWERS:
        raise GuardViolation("Not authorized to view these payslips")


async def list_payslips(
    store: DocumentStore,
    actor: Actor,
    year: int,
    employee_id: str | None = None,
) -> PayslipListResponse:
    """Payslips of one employee (the actor by default) for a year, newest month first."""
    target = employee_id or actor.id
    _check_can_view(actor, target)

    records = await store.query(
        Collection.PAYSLIPS,
        [Filter("employeeId", "==", target), Filter("year", "==", year)],
    )
    # Months are compared as numbers here; the SQL store orders JSON fields as text.
    items = sorted((Payslip.from_record(record) for record in records), key=lambda p: p.month, reverse=True)
    return PayslipListResponse(
        employee_id=target,
        year=year,
        items=items,
        total=len(items),
        paid_count=sum(1 for p in items if p.status == PayslipStatus.PAID),
        total_net_pay=round(sum(p.net_pay for p in items), 2),
    )


async def get_payslip(store: DocumentStore, actor: Actor, payslip_id: str) -> Payslip:
    record = await store.get(Collection.PAYSLIPS, payslip_id)
    if record is None:
        raise NotFoundError("Payslip not found")
    payslip = Payslip.from_record(record)
    _check_can_view(actor, payslip.employee_id)
    return payslip


async def record_payslip(store: DocumentStore, payslip: Payslip) -> Payslip:
    """Store a payslip under ``{employeeId}-{year}-{month:02d}``, replacing an earlier copy."""
    payslip_id = f"{payslip.employee_id}-{payslip.year}-{payslip.month:02d}"
    record = await store.put(Collection.PAYSLIPS, payslip_id, payslip.to_record())
    logger.info("Recorded payslip %s (status=%s)", payslip_id, payslip.status.value)
    return Payslip.from_record(record)
