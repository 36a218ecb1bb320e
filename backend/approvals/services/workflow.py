# ruff: noqa: TC003
"""Sequential approval workflow: manager -> hr -> admin -> completed.

Every public function is one unit of work on the caller's session and ends
with a commit. State changes are conditional writes (see
:mod:`approvals.services.store`); a lost race is retried a bounded number of
times and then reported to the caller.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import delete, func, select
from sqlmodel import col

from approvals.config import get_settings
from approvals.exceptions import (
    AlreadyActedError,
    AppError,
    EditWindowClosedError,
    NotFoundError,
    PartialEligibilityError,
    RequestClosedError,
    StageMismatchError,
    StoreConflictError,
    UnauthorizedError,
    WorkflowValidationError,
)
from approvals.models.base import now_utc
from approvals.models.enums import (
    STAGE_ORDER,
    AuditAction,
    AuditEntityType,
    BulkAction,
    CurrentStage,
    RequestStatus,
    Stage,
    StageStatus,
    next_stage,
)
from approvals.models.request import ApprovalRequest, stage_status_column, stage_values
from approvals.schemas.request import (
    BulkTransitionResponse,
    RequestListResponse,
    RequestResponse,
    RequestStatsResponse,
    StageRecordResponse,
)
from approvals.services.audit import audit_request_change, model_to_audit_dict, write_audit_log
from approvals.services.authorization import require_stage_capability
from approvals.services.domains import get_adapter
from approvals.services.organization import get_organization_resolver
from approvals.services.scoping import (
    eligibility_filters,
    history_filters,
    is_eligible,
    resolve_authorized_subjects,
    resolve_visible_subjects,
)
from approvals.services.store import conditional_update, load_request, load_requests, store_call

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from approvals.models.enums import RequestDomain
    from approvals.schemas.auth import AuthContext
    from approvals.schemas.request import BulkTransitionPayload, SubmitPayload

logger = logging.getLogger(__name__)

T = TypeVar("T")

CANCELLABLE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_request_response(request: ApprovalRequest) -> RequestResponse:
    """Map a request model to its response schema."""
    stages = {
        stage: StageRecordResponse(
            status=request.stage_status(stage),
            acted_by=getattr(request, f"{stage.value}_acted_by"),
            acted_at=getattr(request, f"{stage.value}_acted_at"),
            comment=getattr(request, f"{stage.value}_comment"),
        )
        for stage in STAGE_ORDER
    }
    return RequestResponse(
        id=request.id,
        company_id=request.company_id,
        subject_employee_id=request.subject_employee_id,
        domain=request.domain,
        payload=request.payload,
        status=RequestStatus(request.status),
        current_stage=CurrentStage(request.current_stage),
        stages=stages,
        rejected_by=request.rejected_by,
        rejection_reason=request.rejection_reason,
        cancelled_at=request.cancelled_at,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


async def _run(
    session: AsyncSession,
    attempt: Callable[[], Awaitable[T]],
    on_exhausted: Callable[[], AppError],
) -> T:
    """Run ``attempt``, retrying lost races and rolling back on any workflow error."""
    attempts = max(1, get_settings().conflict_retry_attempts)
    for number in range(1, attempts + 1):
        try:
            return await attempt()
        except StoreConflictError:
            await session.rollback()
            logger.info("Conditional write lost a race (attempt %d/%d)", number, attempts)
        except AppError:
            await session.rollback()
            raise
    raise on_exhausted()


def _check_actionable(request: ApprovalRequest, stage: Stage) -> None:
    """Raise unless ``request`` is awaiting action at ``stage``."""
    if request.stage_status(stage) != StageStatus.PENDING:
        raise AlreadyActedError(stage)
    if request.status != RequestStatus.PENDING or request.current_stage != stage:
        raise StageMismatchError(stage)


def _actionable_conditions(stage: Stage) -> list[Any]:
    return [
        col(ApprovalRequest.status) == RequestStatus.PENDING.value,
        col(ApprovalRequest.current_stage) == stage.value,
        stage_status_column(stage) == StageStatus.PENDING.value,
    ]


def _approve_values(stage: Stage, approver_id: uuid.UUID, comment: str | None) -> dict[str, Any]:
    values = stage_values(stage, StageStatus.APPROVED, approver_id, now_utc(), comment or "")
    following = next_stage(stage)
    values["current_stage"] = following.value
    if following == CurrentStage.COMPLETED:
        values["status"] = RequestStatus.APPROVED.value
    return values


def _reject_values(stage: Stage, approver_id: uuid.UUID, reason: str) -> dict[str, Any]:
    values = stage_values(stage, StageStatus.REJECTED, approver_id, now_utc(), reason)
    values.update(
        status=RequestStatus.REJECTED.value,
        rejected_by=approver_id,
        rejection_reason=reason,
        current_stage=CurrentStage.COMPLETED.value,
    )
    return values


async def _ensure_no_overlap(
    session: AsyncSession,
    domain: RequestDomain,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    document: dict[str, Any],
    exclude_id: uuid.UUID | None = None,
) -> None:
    """Reject a date range that overlaps a pending or approved request of the same subject."""
    adapter = get_adapter(domain)
    span = adapter.date_span(document)
    if span is None:
        return
    start, end = span

    query = select(col(ApprovalRequest.payload)).where(
        col(ApprovalRequest.company_id) == company_id,
        col(ApprovalRequest.domain) == domain.value,
        col(ApprovalRequest.subject_employee_id) == employee_id,
        col(ApprovalRequest.status).in_(CANCELLABLE_STATUSES),
    )
    if exclude_id is not None:
        query = query.where(col(ApprovalRequest.id) != exclude_id)
    result = await session.execute(query)
    for existing in result.scalars().all():
        other = adapter.date_span(existing)
        if other is not None and start <= other[1] and other[0] <= end:
            raise WorkflowValidationError(adapter.overlap_message)


def _require_reason(reason: str | None) -> str:
    if reason is None or not reason.strip():
        msg = "Rejection reason is required"
        raise WorkflowValidationError(msg)
    return reason.strip()


async def _transition(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
    stage: Stage,
    action: BulkAction,
    note: str | None,
) -> RequestResponse:
    """Shared logic for single-request approve and reject."""
    if action == BulkAction.APPROVE:
        values = _approve_values(stage, auth.user_id, note)
        audit_action = AuditAction.APPROVE
    else:
        values = _reject_values(stage, auth.user_id, _require_reason(note))
        audit_action = AuditAction.REJECT
    require_stage_capability(auth, stage)
    resolver = get_organization_resolver()

    async def attempt() -> RequestResponse:
        async with store_call(f"{action} at {stage}"):
            request = await load_request(session, auth.company_id, domain, request_id)
            _check_actionable(request, stage)

            scope = await resolve_authorized_subjects(resolver, auth.company_id, auth.user_id, stage)
            if not scope.covers(request):
                raise UnauthorizedError(f"Not authorized to act on this request at the {stage} stage")

            before = model_to_audit_dict(request)
            if not await conditional_update(session, request, _actionable_conditions(stage), values):
                latest = await load_request(session, auth.company_id, domain, request_id)
                _check_actionable(latest, stage)
                raise StoreConflictError

            await audit_request_change(session, request, auth.user_id, audit_action, before)
            await session.commit()

        logger.info(
            "%s request %s: %s at %s by %s -> %s/%s",
            domain,
            request.id,
            action,
            stage,
            auth.user_id,
            request.status,
            request.current_stage,
        )
        return build_request_response(request)

    return await _run(session, attempt, lambda: AlreadyActedError(stage))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_request(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    payload: SubmitPayload,
) -> RequestResponse:
    """Create a request at the manager stage, or fully approved when the domain auto-approves it.

    Flow:
    1. Validate the domain payload and compute derived fields
    2. Run domain policy checks
    3. Verify the subject employee exists in the caller's company
    4. Evaluate the auto-approve predicate
    5. Insert the request (and audit) in one transaction
    """
    adapter = get_adapter(domain)

    if payload.employee_id != auth.user_id and not auth.is_admin:
        msg = "Employees can only submit requests for themselves"
        raise UnauthorizedError(msg)

    parsed = adapter.parse(payload.payload)
    await adapter.check(auth.company_id, parsed)

    employee = await get_organization_resolver().get_employee(auth.company_id, payload.employee_id)
    if employee is None:
        msg = "Employee not found"
        raise NotFoundError(msg)

    auto_approve = await adapter.should_auto_approve(auth.company_id, parsed)

    request = ApprovalRequest(
        company_id=auth.company_id,
        subject_employee_id=payload.employee_id,
        domain=domain.value,
        payload=adapter.to_document(parsed),
    )
    if auto_approve:
        now = now_utc()
        for stage in STAGE_ORDER:
            for key, value in stage_values(stage, StageStatus.APPROVED, payload.employee_id, now).items():
                setattr(request, key, value)
        request.status = RequestStatus.APPROVED.value
        request.current_stage = CurrentStage.COMPLETED.value

    try:
        async with store_call("submit"):
            await _ensure_no_overlap(session, domain, auth.company_id, payload.employee_id, request.payload)
            session.add(request)
            await session.flush()
            await audit_request_change(
                session,
                request,
                auth.user_id,
                AuditAction.AUTO_APPROVE if auto_approve else AuditAction.SUBMIT,
                None,
            )
            await session.commit()
    except AppError:
        await session.rollback()
        raise

    logger.info(
        "%s request %s submitted for employee %s (%s)",
        domain,
        request.id,
        request.subject_employee_id,
        "auto-approved" if auto_approve else "awaiting manager",
    )
    return build_request_response(request)


async def approve_at_stage(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
    stage: Stage,
    comment: str | None = None,
) -> RequestResponse:
    """Approve the request at ``stage`` and advance it to the next stage."""
    return await _transition(session, auth, domain, request_id, stage, BulkAction.APPROVE, comment)


async def reject_at_stage(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
    stage: Stage,
    reason: str | None,
) -> RequestResponse:
    """Reject the request at ``stage``. Later stages are left untouched."""
    return await _transition(session, auth, domain, request_id, stage, BulkAction.REJECT, reason)


async def bulk_transition(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    payload: BulkTransitionPayload,
) -> BulkTransitionResponse:
    """Approve or reject every listed request at one stage, or none of them.

    1. Lock the listed rows and check every one is awaiting ``stage``.
    2. Check every subject falls within the caller's scope.
    3. Apply the conditional write to each row in the same transaction.
    Any failure rolls back the whole batch.
    """
    stage = payload.stage
    require_stage_capability(auth, stage)
    if len(set(payload.ids)) != len(payload.ids):
        msg = "ids must not contain duplicates"
        raise WorkflowValidationError(msg)

    if payload.action == BulkAction.APPROVE:
        values = _approve_values(stage, auth.user_id, payload.comment)
        audit_action = AuditAction.APPROVE
    else:
        values = _reject_values(stage, auth.user_id, _require_reason(payload.reason))
        audit_action = AuditAction.REJECT

    resolver = get_organization_resolver()

    async def attempt() -> BulkTransitionResponse:
        async with store_call(f"bulk {payload.action} at {stage}"):
            requests = await load_requests(session, auth.company_id, domain, payload.ids, for_update=True)
            eligible = [r for r in requests if is_eligible(r, stage)]
            ineligible = len(payload.ids) - len(eligible)
            if ineligible:
                raise PartialEligibilityError(ineligible, stage, payload.action)

            scope = await resolve_authorized_subjects(resolver, auth.company_id, auth.user_id, stage)
            outside = sum(1 for r in eligible if not scope.covers(r))
            if outside:
                raise UnauthorizedError(
                    f"You are not authorized to act on {outside} requests. They are not within your scope.",
                    count=outside,
                )

            for request in eligible:
                before = model_to_audit_dict(request)
                if not await conditional_update(session, request, _actionable_conditions(stage), values):
                    msg = f"Request {request.id} changed during the bulk {payload.action}"
                    raise StoreConflictError(msg)
                await audit_request_change(session, request, auth.user_id, audit_action, before)

            await session.commit()

        logger.info(
            "Bulk %s of %d %s requests at %s by %s", payload.action, len(eligible), domain, stage, auth.user_id
        )
        return BulkTransitionResponse(count=len(eligible), items=[build_request_response(r) for r in eligible])

    return await _run(session, attempt, lambda: AlreadyActedError(stage))


async def edit_before_approval(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
    patch: dict[str, Any],
) -> RequestResponse:
    """Apply a payload patch and send the request back to the manager stage.

    Only the subject may edit, and only while HR has not yet acted. Every
    stage record is reset because the approvals were given for the old payload.
    """
    adapter = get_adapter(domain)
    changes = adapter.parse_patch(patch)

    def check_window(request: ApprovalRequest) -> None:
        if request.status != RequestStatus.PENDING:
            msg = "Request can no longer be edited because it has been processed"
            raise EditWindowClosedError(msg)
        if request.stage_status(Stage.HR) != StageStatus.PENDING:
            raise EditWindowClosedError

    async def attempt() -> RequestResponse:
        async with store_call("edit"):
            request = await load_request(session, auth.company_id, domain, request_id)
            if request.subject_employee_id != auth.user_id:
                msg = "You can only edit your own requests"
                raise UnauthorizedError(msg)
            check_window(request)

            parsed = adapter.merge(request.payload, changes)
            await adapter.check(auth.company_id, parsed)
            document = adapter.to_document(parsed)
            await _ensure_no_overlap(session, domain, auth.company_id, auth.user_id, document, exclude_id=request.id)

            values: dict[str, Any] = {
                "payload": document,
                "current_stage": CurrentStage.MANAGER.value,
            }
            for stage in STAGE_ORDER:
                values.update(stage_values(stage, StageStatus.PENDING))

            before = model_to_audit_dict(request)
            conditions = [
                col(ApprovalRequest.status) == RequestStatus.PENDING.value,
                stage_status_column(Stage.HR) == StageStatus.PENDING.value,
            ]
            if not await conditional_update(session, request, conditions, values):
                check_window(await load_request(session, auth.company_id, domain, request_id))
                raise StoreConflictError

            await audit_request_change(session, request, auth.user_id, AuditAction.UPDATE, before)
            await session.commit()

        logger.info("%s request %s edited by %s; approvals reset", domain, request.id, auth.user_id)
        return build_request_response(request)

    return await _run(session, attempt, EditWindowClosedError)


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
) -> RequestResponse:
    """Cancel a pending or approved request.

    The subject employee or a company admin can cancel. Stage records are kept
    as they were.
    """

    def check_cancellable(request: ApprovalRequest) -> None:
        if request.status not in CANCELLABLE_STATUSES:
            msg = f"Only pending or approved requests can be cancelled (status is {request.status})"
            raise RequestClosedError(msg)

    async def attempt() -> RequestResponse:
        async with store_call("cancel"):
            request = await load_request(session, auth.company_id, domain, request_id)
            if request.subject_employee_id != auth.user_id and not auth.is_admin:
                msg = "Not authorized to cancel this request"
                raise UnauthorizedError(msg)
            check_cancellable(request)

            before = model_to_audit_dict(request)
            values = {"status": RequestStatus.CANCELLED.value, "cancelled_at": now_utc()}
            conditions = [col(ApprovalRequest.status).in_(CANCELLABLE_STATUSES)]
            if not await conditional_update(session, request, conditions, values):
                check_cancellable(await load_request(session, auth.company_id, domain, request_id))
                raise StoreConflictError

            await audit_request_change(session, request, auth.user_id, AuditAction.CANCEL, before)
            await session.commit()

        logger.info("%s request %s cancelled by %s", domain, request.id, auth.user_id)
        return build_request_response(request)

    return await _run(session, attempt, lambda: RequestClosedError("Request was modified concurrently"))


async def delete_request(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
) -> None:
    """Administrative removal of a request that is not approved."""
    if not auth.is_admin:
        msg = "Admin access required"
        raise UnauthorizedError(msg)

    async def attempt() -> None:
        async with store_call("delete"):
            request = await load_request(session, auth.company_id, domain, request_id)
            if request.status == RequestStatus.APPROVED:
                msg = "Cannot delete an approved request"
                raise RequestClosedError(msg)

            before = model_to_audit_dict(request)
            result = await session.execute(
                delete(ApprovalRequest).where(
                    col(ApprovalRequest.id) == request.id,
                    col(ApprovalRequest.version) == request.version,
                    col(ApprovalRequest.status) != RequestStatus.APPROVED.value,
                )
            )
            if result.rowcount != 1:  # type: ignore[attr-defined]
                raise StoreConflictError
            session.expunge(request)
            await write_audit_log(
                session,
                company_id=request.company_id,
                actor_id=auth.user_id,
                entity_type=AuditEntityType(request.domain.upper()),
                entity_id=request.id,
                action=AuditAction.DELETE,
                before_json=before,
            )
            await session.commit()
        logger.info("%s request %s deleted by %s", domain, request_id, auth.user_id)

    await _run(session, attempt, lambda: RequestClosedError("Request was modified concurrently"))


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    request_id: uuid.UUID,
) -> RequestResponse:
    """Get a single request by ID, if the caller may see its subject."""
    scope = await resolve_visible_subjects(get_organization_resolver(), auth)
    async with store_call("get"):
        request = await load_request(session, auth.company_id, domain, request_id)
    if not scope.covers(request):
        msg = "Not authorized to view this request"
        raise UnauthorizedError(msg)
    return build_request_response(request)


async def _paginate(
    session: AsyncSession,
    filters: list[Any],
    offset: int,
    limit: int | None,
) -> RequestListResponse:
    settings = get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    async with store_call("list"):
        count_result = await session.execute(select(func.count()).select_from(ApprovalRequest).where(*filters))
        total = count_result.scalar_one()
        result = await session.execute(
            select(ApprovalRequest)
            .where(*filters)
            .order_by(col(ApprovalRequest.created_at).desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        requests = list(result.scalars().all())
    return RequestListResponse(
        items=[build_request_response(r) for r in requests],
        total=total,
        offset=offset,
        limit=limit,
    )


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    status_filter: RequestStatus | None = None,
    employee_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> RequestListResponse:
    """List the domain's requests visible to the caller, newest first.

    ``employee_id`` narrows within the caller's visibility and never widens it.
    """
    scope = await resolve_visible_subjects(get_organization_resolver(), auth)
    filters: list[Any] = [col(ApprovalRequest.domain) == domain.value, *scope.filters()]
    if status_filter is not None:
        filters.append(col(ApprovalRequest.status) == status_filter.value)
    if employee_id is not None:
        filters.append(col(ApprovalRequest.subject_employee_id) == employee_id)
    return await _paginate(session, filters, offset, limit)


async def list_pending(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    stage: Stage,
    offset: int = 0,
    limit: int | None = None,
) -> RequestListResponse:
    """Requests awaiting ``stage`` that the caller is authorized to act on."""
    require_stage_capability(auth, stage)
    scope = await resolve_authorized_subjects(get_organization_resolver(), auth.company_id, auth.user_id, stage)
    filters: list[Any] = [
        col(ApprovalRequest.domain) == domain.value,
        *scope.filters(),
        *eligibility_filters(stage),
    ]
    return await _paginate(session, filters, offset, limit)


async def list_history(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
    stage: Stage,
    stage_status: StageStatus | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> RequestListResponse:
    """Requests in the caller's scope that have reached ``stage``, optionally by the decision there."""
    require_stage_capability(auth, stage)
    scope = await resolve_authorized_subjects(get_organization_resolver(), auth.company_id, auth.user_id, stage)
    filters: list[Any] = [
        col(ApprovalRequest.domain) == domain.value,
        *scope.filters(),
        *history_filters(stage, stage_status),
    ]
    return await _paginate(session, filters, offset, limit)


async def request_stats(
    session: AsyncSession,
    auth: AuthContext,
    domain: RequestDomain,
) -> RequestStatsResponse:
    """Count the caller's visible requests by status, and pending ones by the stage they await."""
    scope = await resolve_visible_subjects(get_organization_resolver(), auth)
    filters: list[Any] = [col(ApprovalRequest.domain) == domain.value, *scope.filters()]

    async with store_call("stats"):
        by_status = await session.execute(
            select(col(ApprovalRequest.status), func.count())
            .where(*filters)
            .group_by(col(ApprovalRequest.status))
        )
        by_stage = await session.execute(
            select(col(ApprovalRequest.current_stage), func.count())
            .where(*filters, col(ApprovalRequest.status) == RequestStatus.PENDING.value)
            .group_by(col(ApprovalRequest.current_stage))
        )

    stats = RequestStatsResponse(awaiting={stage: 0 for stage in STAGE_ORDER})
    for status_value, count in by_status.all():
        setattr(stats, RequestStatus(status_value).value, count)
        stats.total += count
    for stage_value, count in by_stage.all():
        stats.awaiting[Stage(stage_value)] = count
    return stats
