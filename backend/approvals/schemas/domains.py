# ruff: noqa: TC003
"""Payload schemas for each request domain.

Each domain has a full payload model (validated on submit and after an edit)
and a patch model where every field is optional.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]
ClockTime = Annotated[str, StringConstraints(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")]
HalfDayType = Literal["first-half", "second-half"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------


class LeaveBreakupItem(_Payload):
    """Portion of a leave charged to one leave type."""

    leave_type: NonBlankStr
    short_code: NonBlankStr
    days: float = Field(gt=0)


class LeavePayload(_Payload):
    leave_breakup: list[LeaveBreakupItem] = Field(min_length=1)
    start_date: date
    end_date: date
    reason: NonBlankStr
    is_half_day: bool = False
    half_day_type: HalfDayType | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        if self.is_half_day:
            if self.half_day_type is None:
                msg = "half_day_type is required for a half-day leave"
                raise ValueError(msg)
            if self.start_date != self.end_date:
                msg = "a half-day leave must be a single day"
                raise ValueError(msg)
        else:
            self.half_day_type = None
        return self


class LeavePatch(_Payload):
    leave_breakup: list[LeaveBreakupItem] | None = Field(default=None, min_length=1)
    start_date: date | None = None
    end_date: date | None = None
    reason: NonBlankStr | None = None
    is_half_day: bool | None = None
    half_day_type: HalfDayType | None = None


# ---------------------------------------------------------------------------
# Reimbursement
# ---------------------------------------------------------------------------


class ReimbursementPayload(_Payload):
    category_id: uuid.UUID
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    expense_date: date
    description: str | None = Field(default=None, max_length=2000)
    receipt_url: str | None = Field(default=None, max_length=2048)


class ReimbursementPatch(_Payload):
    category_id: uuid.UUID | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    expense_date: date | None = None
    description: str | None = Field(default=None, max_length=2000)
    receipt_url: str | None = Field(default=None, max_length=2048)


# ---------------------------------------------------------------------------
# Attendance regularization
# ---------------------------------------------------------------------------


class RegularizationPayload(_Payload):
    from_date: date
    to_date: date
    shift_id: uuid.UUID
    requested_in_time: ClockTime
    requested_out_time: ClockTime
    reason: NonBlankStr

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.to_date < self.from_date:
            msg = "to_date must not be before from_date"
            raise ValueError(msg)
        return self


class RegularizationPatch(_Payload):
    from_date: date | None = None
    to_date: date | None = None
    shift_id: uuid.UUID | None = None
    requested_in_time: ClockTime | None = None
    requested_out_time: ClockTime | None = None
    reason: NonBlankStr | None = None
