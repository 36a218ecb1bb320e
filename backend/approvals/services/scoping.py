# ruff: noqa: TC003
"""Approval scoping: who may act on which requests at a given stage.

The scope of an approver is combined with stage eligibility for every
pending-queue query and every bulk action.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlmodel import col

from approvals.models.enums import STAGE_ORDER, RequestStatus, Role, Stage, StageStatus
from approvals.models.request import ApprovalRequest, stage_status_column

if TYPE_CHECKING:
    from approvals.schemas.auth import AuthContext
    from approvals.services.organization import OrganizationResolver

logger = logging.getLogger(__name__)

_READER_STAGES: dict[str, Stage] = {Role.MANAGER: Stage.MANAGER, Role.HR: Stage.HR}


@dataclass(frozen=True)
class ApprovalScope:
    """Subjects an approver may act on at one stage.

    ``employee_ids`` is None for a company-wide scope (admin stage). ``stage``
    is None for a plain employee reading their own requests.
    """

    company_id: uuid.UUID
    approver_id: uuid.UUID
    stage: Stage | None
    employee_ids: frozenset[uuid.UUID] | None

    @property
    def is_company_wide(self) -> bool:
        return self.employee_ids is None

    def covers(self, request: ApprovalRequest) -> bool:
        if request.company_id != self.company_id:
            return False
        return self.employee_ids is None or request.subject_employee_id in self.employee_ids

    def filters(self) -> list[Any]:
        """SQL predicates restricting requests to this scope."""
        clauses: list[Any] = [col(ApprovalRequest.company_id) == self.company_id]
        if self.employee_ids is not None:
            if self.employee_ids:
                clauses.append(col(ApprovalRequest.subject_employee_id).in_(sorted(self.employee_ids)))
            else:
                clauses.append(sa.false())
        return clauses


async def resolve_authorized_subjects(
    resolver: OrganizationResolver,
    company_id: uuid.UUID,
    approver_id: uuid.UUID,
    stage: Stage,
) -> ApprovalScope:
    """Resolve the authorization scope of ``approver_id`` at ``stage``.

    Manager and HR scopes are the employees of departments where the approver
    currently holds that role. Admin scope is the whole company.
    """
    if stage == Stage.ADMIN:
        return ApprovalScope(company_id=company_id, approver_id=approver_id, stage=stage, employee_ids=None)

    if stage == Stage.MANAGER:
        departments = await resolver.list_departments_where(company_id, manager_id=approver_id)
    else:
        departments = await resolver.list_departments_where(company_id, hr_id=approver_id)

    department_ids = [d.id for d in departments]
    employee_ids: set[uuid.UUID] = set()
    if department_ids:
        employee_ids = await resolver.list_department_employee_ids(company_id, department_ids)

    logger.debug(
        "Resolved %s scope for %s: departments=%d employees=%d",
        stage,
        approver_id,
        len(department_ids),
        len(employee_ids),
    )
    return ApprovalScope(
        company_id=company_id,
        approver_id=approver_id,
        stage=stage,
        employee_ids=frozenset(employee_ids),
    )


async def resolve_visible_subjects(resolver: OrganizationResolver, auth: AuthContext) -> ApprovalScope:
    """Resolve whose requests ``auth`` may read.

    Admins read the whole company. Managers and HR read the subjects they
    approve at their stage in addition to their own requests.
    """
    if auth.is_admin:
        return ApprovalScope(company_id=auth.company_id, approver_id=auth.user_id, stage=Stage.ADMIN, employee_ids=None)

    own = frozenset({auth.user_id})
    stage = _READER_STAGES.get(auth.role)
    if stage is None:
        return ApprovalScope(company_id=auth.company_id, approver_id=auth.user_id, stage=None, employee_ids=own)

    scope = await resolve_authorized_subjects(resolver, auth.company_id, auth.user_id, stage)
    return ApprovalScope(
        company_id=auth.company_id,
        approver_id=auth.user_id,
        stage=stage,
        employee_ids=(scope.employee_ids or frozenset()) | own,
    )


def eligibility_filters(stage: Stage) -> list[Any]:
    """SQL predicates for requests awaiting action at ``stage``.

    Every earlier stage must already be approved.
    """
    clauses: list[Any] = [
        col(ApprovalRequest.status) == RequestStatus.PENDING.value,
        col(ApprovalRequest.current_stage) == stage.value,
        stage_status_column(stage) == StageStatus.PENDING.value,
    ]
    for earlier in STAGE_ORDER[: STAGE_ORDER.index(stage)]:
        clauses.append(stage_status_column(earlier) == StageStatus.APPROVED.value)
    return clauses


def is_eligible(request: ApprovalRequest, stage: Stage) -> bool:
    """In-memory counterpart of :func:`eligibility_filters`."""
    if request.status != RequestStatus.PENDING or request.current_stage != stage:
        return False
    if request.stage_status(stage) != StageStatus.PENDING:
        return False
    return all(request.stage_status(s) == StageStatus.APPROVED for s in STAGE_ORDER[: STAGE_ORDER.index(stage)])


def history_filters(stage: Stage, stage_status: StageStatus | None = None) -> list[Any]:
    """SQL predicates for requests that have reached ``stage``.

    ``pending`` narrows to requests still awaiting ``stage``; ``approved`` and
    ``rejected`` match the decision recorded there. Cancelled requests are left out.
    """
    if stage_status == StageStatus.PENDING:
        return eligibility_filters(stage)
    clauses: list[Any] = [col(ApprovalRequest.status) != RequestStatus.CANCELLED.value]
    if stage_status is not None:
        clauses.append(stage_status_column(stage) == stage_status.value)
    for earlier in STAGE_ORDER[: STAGE_ORDER.index(stage)]:
        clauses.append(stage_status_column(earlier) == StageStatus.APPROVED.value)
    return clauses
