# ruff: noqa: TC003
"""Domain adapters plugged into the workflow engine.

An adapter owns everything that differs between leave, reimbursement and
regularization requests: payload and patch validation, derived payload
fields, policy checks, and the auto-approve predicate.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import BaseModel, ValidationError

from approvals.exceptions import WorkflowValidationError, format_validation_errors
from approvals.models.enums import RequestDomain
from approvals.schemas.domains import (
    LeavePatch,
    LeavePayload,
    RegularizationPatch,
    RegularizationPayload,
    ReimbursementPatch,
    ReimbursementPayload,
)
from approvals.services.leave_policy import get_leave_policy_provider

PolicyCheck = Callable[[uuid.UUID, Any], Awaitable[None]]
AutoApprovePredicate = Callable[[uuid.UUID, Any], Awaitable[bool]]


@dataclass(frozen=True)
class DomainAdapter:
    """Per-domain hooks used by the workflow engine."""

    domain: RequestDomain
    label: str
    payload_model: type[BaseModel]
    patch_model: type[BaseModel]
    derive: Callable[[Any], dict[str, Any]] | None = None
    derived_fields: frozenset[str] = frozenset()
    policy_check: PolicyCheck | None = None
    auto_approve: AutoApprovePredicate | None = None
    span_fields: tuple[str, str] | None = None
    overlap_message: str = "Overlapping request exists"

    def parse(self, data: dict[str, Any]) -> BaseModel:
        """Validate a full payload. Raises WorkflowValidationError."""
        try:
            return self.payload_model.model_validate(data)
        except ValidationError as exc:
            raise WorkflowValidationError(format_validation_errors(exc.errors())) from None

    def parse_patch(self, data: dict[str, Any]) -> dict[str, Any]:
        """Validate a patch and return only the fields that were set."""
        try:
            patch = self.patch_model.model_validate(data)
        except ValidationError as exc:
            raise WorkflowValidationError(format_validation_errors(exc.errors())) from None
        changes = patch.model_dump(mode="json", exclude_unset=True)
        if not changes:
            msg = "Patch does not change any field"
            raise WorkflowValidationError(msg)
        return changes

    def merge(self, stored: dict[str, Any], changes: dict[str, Any]) -> BaseModel:
        """Apply ``changes`` on top of a stored payload and re-validate the result."""
        base = {k: v for k, v in stored.items() if k not in self.derived_fields}
        base.update(changes)
        return self.parse(base)

    def to_document(self, payload: BaseModel) -> dict[str, Any]:
        """JSON-safe payload including derived fields, as persisted."""
        document = payload.model_dump(mode="json")
        if self.derive is not None:
            document.update(self.derive(payload))
        return document

    def date_span(self, document: dict[str, Any]) -> tuple[date, date] | None:
        """Inclusive date range covered by a stored payload, for domains that forbid overlaps."""
        if self.span_fields is None:
            return None
        start, end = self.span_fields
        return date.fromisoformat(document[start]), date.fromisoformat(document[end])

    async def check(self, company_id: uuid.UUID, payload: BaseModel) -> None:
        if self.policy_check is not None:
            await self.policy_check(company_id, payload)

    async def should_auto_approve(self, company_id: uuid.UUID, payload: BaseModel) -> bool:
        if self.auto_approve is None:
            return False
        return await self.auto_approve(company_id, payload)


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------


def _derive_leave(payload: LeavePayload) -> dict[str, Any]:
    return {"total_days": sum(part.days for part in payload.leave_breakup)}


async def _check_leave_policy(company_id: uuid.UUID, payload: LeavePayload) -> None:
    """Every leave type must exist, be active and respect per-request limits."""
    policy = await get_leave_policy_provider().get_policy(company_id)
    if policy is None:
        return
    for part in payload.leave_breakup:
        rule = policy.find_leave_type(part.short_code) or policy.find_leave_type(part.leave_type)
        if rule is None or not rule.is_active:
            msg = f"Leave type '{part.leave_type}' is not allowed or inactive"
            raise WorkflowValidationError(msg)
        if rule.max_per_request is not None and part.days > rule.max_per_request:
            msg = f"{part.leave_type} exceeds max {rule.max_per_request} days per request"
            raise WorkflowValidationError(msg)
        if rule.min_per_request is not None and part.days < rule.min_per_request:
            msg = f"{part.leave_type} requires min {rule.min_per_request} days"
            raise WorkflowValidationError(msg)


async def _leave_needs_no_approval(company_id: uuid.UUID, payload: LeavePayload) -> bool:
    """Auto-approve when no leave type in the breakup requires approval."""
    policy = await get_leave_policy_provider().get_policy(company_id)
    if policy is None:
        return False
    for part in payload.leave_breakup:
        rule = policy.find_leave_type(part.short_code) or policy.find_leave_type(part.leave_type)
        if rule is None or rule.requires_approval:
            return False
    return True


# ---------------------------------------------------------------------------
# Regularization
# ---------------------------------------------------------------------------


def _minutes_since_midnight(clock: str) -> int:
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


def regularization_hours(in_time: str, out_time: str) -> float:
    """Hours between two HH:MM times; an out time before the in time wraps past midnight."""
    total = _minutes_since_midnight(out_time) - _minutes_since_midnight(in_time)
    if total < 0:
        total += 24 * 60
    return round(total / 60, 2)


def _derive_regularization(payload: RegularizationPayload) -> dict[str, Any]:
    return {"total_hours": regularization_hours(payload.requested_in_time, payload.requested_out_time)}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

DOMAIN_ADAPTERS: dict[RequestDomain, DomainAdapter] = {
    RequestDomain.LEAVE: DomainAdapter(
        domain=RequestDomain.LEAVE,
        label="Leave",
        payload_model=LeavePayload,
        patch_model=LeavePatch,
        derive=_derive_leave,
        derived_fields=frozenset({"total_days"}),
        policy_check=_check_leave_policy,
        auto_approve=_leave_needs_no_approval,
        span_fields=("start_date", "end_date"),
        overlap_message="Overlapping leave exists",
    ),
    RequestDomain.REIMBURSEMENT: DomainAdapter(
        domain=RequestDomain.REIMBURSEMENT,
        label="Reimbursement",
        payload_model=ReimbursementPayload,
        patch_model=ReimbursementPatch,
    ),
    RequestDomain.REGULARIZATION: DomainAdapter(
        domain=RequestDomain.REGULARIZATION,
        label="Regularization",
        payload_model=RegularizationPayload,
        patch_model=RegularizationPatch,
        derive=_derive_regularization,
        derived_fields=frozenset({"total_hours"}),
        span_fields=("from_date", "to_date"),
        overlap_message="Regularization request already exists for this date range",
    ),
}


def get_adapter(domain: RequestDomain) -> DomainAdapter:
    return DOMAIN_ADAPTERS[domain]
