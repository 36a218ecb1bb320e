# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Generic, Self, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from approvals.models.enums import BulkAction, CurrentStage, RequestDomain, RequestStatus, Stage, StageStatus

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    """Uniform success envelope returned by every workflow endpoint."""

    success: bool = True
    message: str
    data: DataT


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitPayload(BaseModel):
    """Request body for ``POST /{domain}/apply``.

    ``payload`` is validated by the domain adapter, not here.
    """

    employee_id: uuid.UUID
    payload: dict[str, Any]


class ApprovePayload(BaseModel):
    """Request body for stage approval."""

    comment: str | None = Field(default=None, max_length=1000)


def _strip_reason(value: str | None) -> str | None:
    if value is None:
        return None
    if not value.strip():
        msg = "reason must not be blank"
        raise ValueError(msg)
    return value.strip()


class RejectPayload(BaseModel):
    """Request body for rejection at a stage."""

    stage: Stage
    reason: str = Field(max_length=1000)

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "reason must not be blank"
            raise ValueError(msg)
        return value.strip()


class BulkTransitionPayload(BaseModel):
    """Request body for ``PATCH /{domain}/bulk/update``."""

    ids: list[uuid.UUID] = Field(min_length=1)
    stage: Stage
    action: BulkAction
    comment: str | None = Field(default=None, max_length=1000)
    reason: str | None = Field(default=None, max_length=1000)

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str | None) -> str | None:
        return _strip_reason(value)

    @model_validator(mode="after")
    def _validate_action(self) -> Self:
        if self.action == BulkAction.REJECT and self.reason is None:
            msg = "reason is required when rejecting"
            raise ValueError(msg)
        if len(set(self.ids)) != len(self.ids):
            msg = "ids must not contain duplicates"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class StageRecordResponse(BaseModel):
    """Outcome of one approval stage."""

    status: StageStatus
    acted_by: uuid.UUID | None
    acted_at: datetime | None
    comment: str | None


class RequestResponse(BaseModel):
    """Response schema for a single approvable request."""

    id: uuid.UUID
    company_id: uuid.UUID
    subject_employee_id: uuid.UUID
    domain: RequestDomain
    payload: dict[str, Any]
    status: RequestStatus
    current_stage: CurrentStage
    stages: dict[Stage, StageRecordResponse]
    rejected_by: uuid.UUID | None
    rejection_reason: str | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class RequestListResponse(BaseModel):
    """Paginated list of requests."""

    items: list[RequestResponse]
    total: int
    offset: int
    limit: int


class BulkTransitionResponse(BaseModel):
    """Result of an all-or-nothing bulk transition."""

    count: int
    items: list[RequestResponse]


class RequestStatsResponse(BaseModel):
    """Request counts over everything the caller may see in one domain."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0
    awaiting: dict[Stage, int] = Field(default_factory=dict)
