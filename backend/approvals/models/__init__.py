from sqlmodel import SQLModel

from approvals.models.audit import AuditLog
from approvals.models.base import TimestampMixin, UUIDBase
from approvals.models.enums import (
    AuditAction,
    AuditEntityType,
    BulkAction,
    CurrentStage,
    RequestDomain,
    RequestStatus,
    Role,
    Stage,
    StageStatus,
)
from approvals.models.request import ApprovalRequest

__all__ = [
    "ApprovalRequest",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "BulkAction",
    "CurrentStage",
    "RequestDomain",
    "RequestStatus",
    "Role",
    "SQLModel",
    "Stage",
    "StageStatus",
    "TimestampMixin",
    "UUIDBase",
]
