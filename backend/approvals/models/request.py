# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from approvals.models.base import TimestampMixin, UUIDBase
from approvals.models.enums import CurrentStage, RequestStatus, Stage, StageStatus


def _stage_status_field() -> Any:
    return Field(default=StageStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"})


def _timestamp_field() -> Any:
    return Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class ApprovalRequest(UUIDBase, TimestampMixin, table=True):
    """A leave, reimbursement or regularization request moving through the approval chain.

    Each stage keeps its outcome in four flat columns
    (``<stage>_status``, ``<stage>_acted_by``, ``<stage>_acted_at``, ``<stage>_comment``)
    so that transitions can be expressed as a single conditional UPDATE.
    """

    __tablename__ = "approval_request"
    __table_args__ = (
        sa.Index("ix_approval_request_company_domain_status", "company_id", "domain", "status"),
        sa.Index("ix_approval_request_domain_stage", "domain", "current_stage"),
    )

    company_id: uuid.UUID = Field(index=True)
    subject_employee_id: uuid.UUID = Field(index=True)
    domain: str = Field(max_length=50)
    payload: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)

    status: str = Field(default=RequestStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"})
    current_stage: str = Field(
        default=CurrentStage.MANAGER, max_length=20, sa_column_kwargs={"server_default": "manager"}
    )

    manager_status: str = _stage_status_field()
    manager_acted_by: uuid.UUID | None = None
    manager_acted_at: datetime | None = _timestamp_field()
    manager_comment: str | None = None

    hr_status: str = _stage_status_field()
    hr_acted_by: uuid.UUID | None = None
    hr_acted_at: datetime | None = _timestamp_field()
    hr_comment: str | None = None

    admin_status: str = _stage_status_field()
    admin_acted_by: uuid.UUID | None = None
    admin_acted_at: datetime | None = _timestamp_field()
    admin_comment: str | None = None

    rejected_by: uuid.UUID | None = None
    rejection_reason: str | None = None
    cancelled_at: datetime | None = _timestamp_field()

    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})

    def stage_status(self, stage: Stage) -> StageStatus:
        return StageStatus(getattr(self, f"{stage.value}_status"))


def stage_values(
    stage: Stage,
    status: StageStatus,
    acted_by: uuid.UUID | None = None,
    acted_at: datetime | None = None,
    comment: str | None = None,
) -> dict[str, Any]:
    """Column values recording the outcome of ``stage``."""
    return {
        f"{stage.value}_status": status.value,
        f"{stage.value}_acted_by": acted_by,
        f"{stage.value}_acted_at": acted_at,
        f"{stage.value}_comment": comment,
    }


def stage_status_column(stage: Stage) -> sa.ColumnElement[str]:
    """Return the SQL column holding the status of ``stage``."""
    return getattr(ApprovalRequest, f"{stage.value}_status")
