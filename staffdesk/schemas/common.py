# ruff: noqa: TC003
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from staffdesk.models.enums import AuditAction, Decision
from staffdesk.services.dates import normalize_date, normalize_timestamp, parse_optional_date

# Dates arrive from the store as ISO strings, datetimes or store-native
# timestamps; these aliases fold them into one canonical type on load.
CanonicalDate = Annotated[date, BeforeValidator(normalize_date)]
LenientDate = Annotated[date | None, BeforeValidator(parse_optional_date)]
Timestamp = Annotated[datetime, BeforeValidator(normalize_timestamp)]


class CamelModel(BaseModel):
    """Stored form uses camelCase keys; Python attributes are snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentModel(CamelModel):
    """Base for documents persisted through the store gateway."""

    id: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Self:
        return cls.model_validate(record)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored JSON form, without the id."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class ActionRecord(CamelModel):
    """Decision taken by one approver at one gate."""

    action: Decision
    by: str
    by_id: str
    at: Timestamp
    comments: str = ""


class FinanceRecord(CamelModel):
    """Processing record attached to an approved purchase request."""

    action: Decision = Decision.PROCESSED
    by: str
    by_id: str
    at: Timestamp
    po_number: str
    comments: str = ""


class AuditEntry(CamelModel):
    """One entry in a document's history, written with the change it describes."""

    action: AuditAction
    actor_id: str
    actor_name: str
    at: Timestamp
    from_status: str | None = None
    to_status: str | None = None
    note: str | None = None


class DecisionPayload(BaseModel):
    """Request body for approve actions."""

    comments: str = Field(default="", max_length=1000)


class RejectionPayload(BaseModel):
    """Request body for reject actions. The reason is required by the workflow."""

    reason: str = Field(default="", max_length=1000)
