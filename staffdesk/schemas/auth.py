from __future__ import annotations

from pydantic import BaseModel

from staffdesk.models.enums import MANAGER_ROLES, Role


class Actor(BaseModel):
    """Identity and role of the user performing an operation.

    Supplied by the identity layer; the workflow only authorizes against it.
    """

    id: str
    display_name: str = ""
    email: str = ""
    role: Role = Role.EMPLOYEE
    department: str = ""

    @property
    def label(self) -> str:
        """Name recorded on action records."""
        return self.display_name or self.email or self.id

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    def in_department(self, department: str) -> bool:
        return bool(self.department) and self.department == department

    def is_finance(self, finance_department: str) -> bool:
        return self.role == Role.FINANCE_MANAGER or self.department.lower() == finance_department.lower()
