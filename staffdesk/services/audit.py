from __future__ import annotations

from typing import TYPE_CHECKING, Any

from staffdesk.schemas.common import AuditEntry

if TYPE_CHECKING:
    import enum
    from datetime import datetime

    from staffdesk.models.enums import AuditAction
    from staffdesk.schemas.auth import Actor
    from staffdesk.schemas.common import DocumentModel


def audit_entry(
    actor: Actor,
    action: AuditAction,
    at: datetime,
    *,
    from_status: enum.StrEnum | None = None,
    to_status: enum.StrEnum | None = None,
    note: str | None = None,
) -> AuditEntry:
    """Build an immutable history entry for a document change."""
    return AuditEntry(
        action=action,
        actor_id=actor.id,
        actor_name=actor.label,
        at=at,
        from_status=from_status.value if from_status is not None else None,
        to_status=to_status.value if to_status is not None else None,
        note=note or None,
    )


def history_with(document: DocumentModel, entry: AuditEntry) -> list[dict[str, Any]]:
    """Return the document's stored history with ``entry`` appended.

    The result is written in the same update as the change it records, so the
    history can never disagree with the document.
    """
    history = [item.model_dump(mode="json", by_alias=True) for item in getattr(document, "history", [])]
    history.append(entry.model_dump(mode="json", by_alias=True))
    return history
