"""Tests for the capability table, approver scopes and stage eligibility."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from approvals.exceptions import UnauthorizedError
from approvals.models.enums import CurrentStage, RequestStatus, Role, Stage, StageStatus
from approvals.models.request import ApprovalRequest
from approvals.schemas.auth import AuthContext
from approvals.services.authorization import can_act_at_stage, require_stage_capability
from approvals.services.domains import regularization_hours
from approvals.services.organization import InMemoryOrganizationResolver, OrganizationResolver
from approvals.services.scoping import is_eligible, resolve_authorized_subjects, resolve_visible_subjects

if TYPE_CHECKING:
    from conftest import OrgChart


def _request(org: OrgChart, employee_id: uuid.UUID, **values: object) -> ApprovalRequest:
    request = ApprovalRequest(company_id=org.company_id, subject_employee_id=employee_id, domain="leave")
    for key, value in values.items():
        setattr(request, key, value)
    return request


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("role", "stage", "allowed"),
    [
        (Role.MANAGER, Stage.MANAGER, True),
        (Role.HR, Stage.HR, True),
        (Role.ADMIN, Stage.ADMIN, True),
        (Role.MANAGER, Stage.HR, False),
        (Role.HR, Stage.ADMIN, False),
        (Role.ADMIN, Stage.MANAGER, False),
        (Role.EMPLOYEE, Stage.MANAGER, False),
        ("superuser", Stage.ADMIN, False),
    ],
)
def test_stage_capabilities(role: str, stage: Stage, allowed: bool) -> None:
    assert can_act_at_stage(role, stage) is allowed


def test_require_stage_capability_raises_unauthorized() -> None:
    auth = AuthContext(company_id=uuid.uuid4(), user_id=uuid.uuid4(), role="hr")
    require_stage_capability(auth, Stage.HR)
    with pytest.raises(UnauthorizedError):
        require_stage_capability(auth, Stage.MANAGER)


# ---------------------------------------------------------------------------
# Scope resolution
# ---------------------------------------------------------------------------


def test_in_memory_resolver_satisfies_protocol() -> None:
    assert isinstance(InMemoryOrganizationResolver(), OrganizationResolver)


async def test_manager_scope_is_own_department(org: OrgChart) -> None:
    scope = await resolve_authorized_subjects(org.resolver, org.company_id, org.manager_id, Stage.MANAGER)
    assert scope.employee_ids == frozenset({org.employee_id, org.colleague_id})
    assert not scope.is_company_wide
    assert scope.covers(_request(org, org.employee_id))
    assert not scope.covers(_request(org, org.sales_employee_id))


async def test_hr_scope_is_own_department(org: OrgChart) -> None:
    scope = await resolve_authorized_subjects(org.resolver, org.company_id, org.other_hr_id, Stage.HR)
    assert scope.employee_ids == frozenset({org.sales_employee_id})


async def test_manager_role_does_not_grant_hr_scope(org: OrgChart) -> None:
    scope = await resolve_authorized_subjects(org.resolver, org.company_id, org.manager_id, Stage.HR)
    assert scope.employee_ids == frozenset()
    assert not scope.covers(_request(org, org.employee_id))


async def test_admin_scope_is_company_wide(org: OrgChart) -> None:
    scope = await resolve_authorized_subjects(org.resolver, org.company_id, org.admin_id, Stage.ADMIN)
    assert scope.is_company_wide
    assert scope.covers(_request(org, org.sales_employee_id))

    foreign = _request(org, org.employee_id, company_id=org.other_company_id)
    assert not scope.covers(foreign)


async def test_scope_is_empty_in_other_company(org: OrgChart) -> None:
    scope = await resolve_authorized_subjects(org.resolver, org.other_company_id, org.manager_id, Stage.MANAGER)
    assert scope.employee_ids == frozenset()


async def test_employee_sees_only_themselves(org: OrgChart) -> None:
    auth = AuthContext(company_id=org.company_id, user_id=org.employee_id)
    scope = await resolve_visible_subjects(org.resolver, auth)
    assert scope.stage is None
    assert scope.employee_ids == frozenset({org.employee_id})
    assert not scope.covers(_request(org, org.colleague_id))


async def test_manager_sees_department_and_themselves(org: OrgChart) -> None:
    auth = AuthContext(company_id=org.company_id, user_id=org.manager_id, role="manager")
    scope = await resolve_visible_subjects(org.resolver, auth)
    assert scope.employee_ids == frozenset({org.employee_id, org.colleague_id, org.manager_id})


async def test_admin_sees_company(org: OrgChart) -> None:
    auth = AuthContext(company_id=org.company_id, user_id=org.admin_id, role="admin")
    scope = await resolve_visible_subjects(org.resolver, auth)
    assert scope.is_company_wide
    assert scope.covers(_request(org, org.sales_employee_id))


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def test_new_request_is_eligible_only_at_manager(org: OrgChart) -> None:
    request = _request(org, org.employee_id)
    assert is_eligible(request, Stage.MANAGER)
    assert not is_eligible(request, Stage.HR)
    assert not is_eligible(request, Stage.ADMIN)


def test_admin_eligibility_needs_both_earlier_approvals(org: OrgChart) -> None:
    request = _request(
        org,
        org.employee_id,
        current_stage=CurrentStage.ADMIN,
        manager_status=StageStatus.APPROVED,
        hr_status=StageStatus.APPROVED,
    )
    assert is_eligible(request, Stage.ADMIN)

    request.hr_status = StageStatus.PENDING
    assert not is_eligible(request, Stage.ADMIN)


def test_cancelled_request_is_never_eligible(org: OrgChart) -> None:
    request = _request(org, org.employee_id, status=RequestStatus.CANCELLED)
    assert not is_eligible(request, Stage.MANAGER)


# ---------------------------------------------------------------------------
# Regularization hours
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("in_time", "out_time", "hours"),
    [("09:00", "17:30", 8.5), ("22:00", "06:00", 8.0), ("10:00", "10:20", 0.33)],
)
def test_regularization_hours(in_time: str, out_time: str, hours: float) -> None:
    assert regularization_hours(in_time, out_time) == hours
