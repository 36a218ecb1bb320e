from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from approvals.models.audit import AuditLog
from approvals.models.enums import AuditEntityType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from approvals.models.enums import AuditAction
    from approvals.models.request import ApprovalRequest


def _json_safe(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    return {key: _json_safe(value) for key, value in model.model_dump().items()}


async def write_audit_log(
    session: AsyncSession,
    *,
    company_id: uuid.UUID,
    actor_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Write an immutable audit log entry within the caller's transaction."""
    entry = AuditLog(
        company_id=company_id,
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def audit_request_change(
    session: AsyncSession,
    request: ApprovalRequest,
    actor_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None,
) -> AuditLog:
    """Audit a mutation of an approval request, snapshotting its current state as ``after_json``."""
    return await write_audit_log(
        session,
        company_id=request.company_id,
        actor_id=actor_id,
        entity_type=AuditEntityType(request.domain.upper()),
        entity_id=request.id,
        action=action,
        before_json=before_json,
        after_json=model_to_audit_dict(request),
    )
