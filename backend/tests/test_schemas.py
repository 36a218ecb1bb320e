"""Unit tests for domain payload schemas and workflow request bodies."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from approvals.models.enums import BulkAction, Stage
from approvals.schemas.domains import (
    LeavePatch,
    LeavePayload,
    RegularizationPayload,
    ReimbursementPayload,
)
from approvals.schemas.request import BulkTransitionPayload, RejectPayload

_BREAKUP = [{"leave_type": "Casual Leave", "short_code": "CL", "days": 1}]

# ---------------------------------------------------------------------------
# LeavePayload
# ---------------------------------------------------------------------------


def test_leave_payload_valid() -> None:
    p = LeavePayload.model_validate(
        {"leave_breakup": _BREAKUP, "start_date": "2025-03-03", "end_date": "2025-03-03", "reason": " Sick "}
    )
    assert p.start_date == date(2025, 3, 3)
    assert p.reason == "Sick"
    assert p.is_half_day is False
    assert p.half_day_type is None


def test_leave_payload_end_before_start_rejected() -> None:
    with pytest.raises(ValidationError, match="end_date must not be before start_date"):
        LeavePayload.model_validate(
            {"leave_breakup": _BREAKUP, "start_date": "2025-03-05", "end_date": "2025-03-03", "reason": "x"}
        )


def test_leave_payload_requires_breakup() -> None:
    with pytest.raises(ValidationError):
        LeavePayload.model_validate(
            {"leave_breakup": [], "start_date": "2025-03-03", "end_date": "2025-03-03", "reason": "x"}
        )


def test_leave_breakup_days_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        LeavePayload.model_validate(
            {
                "leave_breakup": [{"leave_type": "Casual Leave", "short_code": "CL", "days": 0}],
                "start_date": "2025-03-03",
                "end_date": "2025-03-03",
                "reason": "x",
            }
        )


def test_half_day_leave_needs_type_and_single_day() -> None:
    base = {"leave_breakup": _BREAKUP, "start_date": "2025-03-03", "reason": "x", "is_half_day": True}
    with pytest.raises(ValidationError, match="half_day_type is required"):
        LeavePayload.model_validate({**base, "end_date": "2025-03-03"})
    with pytest.raises(ValidationError, match="single day"):
        LeavePayload.model_validate({**base, "end_date": "2025-03-04", "half_day_type": "first-half"})

    p = LeavePayload.model_validate({**base, "end_date": "2025-03-03", "half_day_type": "second-half"})
    assert p.half_day_type == "second-half"


def test_full_day_leave_drops_half_day_type() -> None:
    p = LeavePayload.model_validate(
        {
            "leave_breakup": _BREAKUP,
            "start_date": "2025-03-03",
            "end_date": "2025-03-04",
            "reason": "x",
            "half_day_type": "first-half",
        }
    )
    assert p.half_day_type is None


def test_leave_payload_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        LeavePayload.model_validate(
            {"leave_breakup": _BREAKUP, "start_date": "2025-03-03", "end_date": "2025-03-03", "reason": "x", "x": 1}
        )


def test_leave_patch_tracks_only_set_fields() -> None:
    patch = LeavePatch.model_validate({"reason": "Updated"})
    assert patch.model_dump(exclude_unset=True) == {"reason": "Updated"}


# ---------------------------------------------------------------------------
# Reimbursement and regularization
# ---------------------------------------------------------------------------


def test_reimbursement_amount_must_be_positive() -> None:
    base = {"category_id": str(uuid.uuid4()), "expense_date": "2025-02-01"}
    assert ReimbursementPayload.model_validate({**base, "amount": "10.50"}).amount == Decimal("10.50")
    with pytest.raises(ValidationError):
        ReimbursementPayload.model_validate({**base, "amount": "0"})
    with pytest.raises(ValidationError):
        ReimbursementPayload.model_validate({**base, "amount": "1.234"})


def test_regularization_validates_clock_times_and_dates() -> None:
    base = {
        "from_date": "2025-02-10",
        "to_date": "2025-02-10",
        "shift_id": str(uuid.uuid4()),
        "requested_in_time": "09:00",
        "requested_out_time": "18:00",
        "reason": "Missed punch",
    }
    assert RegularizationPayload.model_validate(base).requested_out_time == "18:00"
    with pytest.raises(ValidationError):
        RegularizationPayload.model_validate({**base, "requested_in_time": "25:00"})
    with pytest.raises(ValidationError, match="to_date must not be before from_date"):
        RegularizationPayload.model_validate({**base, "to_date": "2025-02-09"})


# ---------------------------------------------------------------------------
# Workflow bodies
# ---------------------------------------------------------------------------


def test_reject_payload_strips_reason() -> None:
    body = RejectPayload(stage=Stage.HR, reason="  wrong dates ")
    assert body.reason == "wrong dates"


def test_reject_payload_blank_reason_rejected() -> None:
    with pytest.raises(ValidationError, match="reason must not be blank"):
        RejectPayload(stage=Stage.HR, reason="   ")


def test_bulk_reject_requires_reason() -> None:
    with pytest.raises(ValidationError, match="reason is required"):
        BulkTransitionPayload(ids=[uuid.uuid4()], stage=Stage.MANAGER, action=BulkAction.REJECT)


def test_bulk_payload_rejects_duplicate_and_empty_ids() -> None:
    same = uuid.uuid4()
    with pytest.raises(ValidationError, match="duplicates"):
        BulkTransitionPayload(ids=[same, same], stage=Stage.MANAGER, action=BulkAction.APPROVE)
    with pytest.raises(ValidationError):
        BulkTransitionPayload(ids=[], stage=Stage.MANAGER, action=BulkAction.APPROVE)


def test_bulk_approve_does_not_need_reason() -> None:
    body = BulkTransitionPayload(ids=[uuid.uuid4()], stage=Stage.ADMIN, action=BulkAction.APPROVE)
    assert body.reason is None
    assert body.comment is None
