# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from approvals.api.deps import AuthDep, DomainDep, validate_company_scope
from approvals.db import SessionDep
from approvals.models.enums import BulkAction, RequestStatus, Stage, StageStatus
from approvals.schemas.request import (
    ApprovePayload,
    BulkTransitionPayload,
    BulkTransitionResponse,
    Envelope,
    RejectPayload,
    RequestListResponse,
    RequestResponse,
    RequestStatsResponse,
    SubmitPayload,
)
from approvals.services import workflow
from approvals.services.domains import get_adapter

requests_router = APIRouter(
    prefix="/companies/{company_id}/{domain}",
    tags=["approvals"],
    dependencies=[Depends(validate_company_scope)],
)

_NEXT_STEP = {
    Stage.MANAGER: "sent to HR",
    Stage.HR: "sent to Admin",
    Stage.ADMIN: "fully approved",
}


@requests_router.post("/apply", response_model=Envelope[RequestResponse], status_code=status.HTTP_201_CREATED)
async def submit_request(
    domain: DomainDep,
    payload: SubmitPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[RequestResponse]:
    """Submit a new request into the approval chain."""
    result = await workflow.submit_request(session, auth, domain, payload)
    label = get_adapter(domain).label
    if result.status == RequestStatus.APPROVED:
        message = f"{label} auto-approved successfully"
    else:
        message = f"{label} submitted for manager approval"
    return Envelope(message=message, data=result)


@requests_router.patch("/bulk/update", response_model=Envelope[BulkTransitionResponse])
async def bulk_update(
    domain: DomainDep,
    payload: BulkTransitionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[BulkTransitionResponse]:
    """Approve or reject several requests at one stage, all or nothing."""
    result = await workflow.bulk_transition(session, auth, domain, payload)
    verb = "approved" if payload.action == BulkAction.APPROVE else "rejected"
    return Envelope(message=f"{result.count} requests {verb} at {payload.stage} level", data=result)


@requests_router.get("/pending/{stage}", response_model=Envelope[RequestListResponse])
async def list_pending(
    domain: DomainDep,
    stage: Stage,
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
) -> Envelope[RequestListResponse]:
    """Requests awaiting ``stage`` within the caller's approval scope."""
    result = await workflow.list_pending(session, auth, domain, stage, offset, limit)
    return Envelope(message=f"{result.total} requests awaiting {stage} approval", data=result)


@requests_router.get("/{stage}/history", response_model=Envelope[RequestListResponse])
async def list_history(
    domain: DomainDep,
    stage: Stage,
    session: SessionDep,
    auth: AuthDep,
    stage_status: StageStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
) -> Envelope[RequestListResponse]:
    """Requests that reached ``stage`` within the caller's approval scope."""
    result = await workflow.list_history(session, auth, domain, stage, stage_status, offset, limit)
    return Envelope(message=f"{result.total} requests in {stage} history", data=result)


@requests_router.get("/stats", response_model=Envelope[RequestStatsResponse])
async def request_stats(
    domain: DomainDep,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[RequestStatsResponse]:
    """Status counts over the requests the caller may see."""
    result = await workflow.request_stats(session, auth, domain)
    return Envelope(message=f"{get_adapter(domain).label} statistics", data=result)


@requests_router.get("", response_model=Envelope[RequestListResponse])
async def list_requests(
    domain: DomainDep,
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1),
) -> Envelope[RequestListResponse]:
    """List requests of this domain with optional filters."""
    result = await workflow.list_requests(session, auth, domain, status_filter, employee_id, offset, limit)
    return Envelope(message=f"{result.total} requests found", data=result)


@requests_router.get("/{request_id}", response_model=Envelope[RequestResponse])
async def get_request(
    domain: DomainDep,
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[RequestResponse]:
    """Get a single request."""
    result = await workflow.get_request(session, auth, domain, request_id)
    return Envelope(message=f"{get_adapter(domain).label} request", data=result)


@requests_router.put("/{request_id}/{stage}-approve", response_model=Envelope[RequestResponse])
async def approve_at_stage(
    domain: DomainDep,
    request_id: uuid.UUID,
    stage: Stage,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovePayload | None = None,
) -> Envelope[RequestResponse]:
    """Approve the request at ``stage``."""
    comment = payload.comment if payload else None
    result = await workflow.approve_at_stage(session, auth, domain, request_id, stage, comment)
    label = get_adapter(domain).label
    return Envelope(message=f"{label} approved by {stage} and {_NEXT_STEP[stage]}", data=result)


@requests_router.put("/{request_id}/reject", response_model=Envelope[RequestResponse])
async def reject_at_stage(
    domain: DomainDep,
    request_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[RequestResponse]:
    """Reject the request at the given stage."""
    result = await workflow.reject_at_stage(session, auth, domain, request_id, payload.stage, payload.reason)
    return Envelope(message=f"{get_adapter(domain).label} rejected by {payload.stage}", data=result)


@requests_router.patch("/{request_id}", response_model=Envelope[RequestResponse])
async def edit_request(
    domain: DomainDep,
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    patch: dict[str, Any] = Body(),
) -> Envelope[RequestResponse]:
    """Edit a request before HR has acted; approvals restart at the manager stage."""
    result = await workflow.edit_before_approval(session, auth, domain, request_id, patch)
    label = get_adapter(domain).label
    return Envelope(message=f"{label} updated successfully and sent for re-approval", data=result)


@requests_router.put("/{request_id}/cancel", response_model=Envelope[RequestResponse])
async def cancel_request(
    domain: DomainDep,
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[RequestResponse]:
    """Cancel a pending or approved request."""
    result = await workflow.cancel_request(session, auth, domain, request_id)
    return Envelope(message=f"{get_adapter(domain).label} cancelled successfully", data=result)


@requests_router.delete("/{request_id}", response_model=Envelope[None])
async def delete_request(
    domain: DomainDep,
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> Envelope[None]:
    """Delete a request that is not approved (admin only)."""
    await workflow.delete_request(session, auth, domain, request_id)
    return Envelope(message=f"{get_adapter(domain).label} request deleted successfully", data=None)
