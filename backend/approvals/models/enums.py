from __future__ import annotations

import enum


class RequestStatus(enum.StrEnum):
    """Overall status of an approvable request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Stage(enum.StrEnum):
    """Approval stages in chain order."""

    MANAGER = "manager"
    HR = "hr"
    ADMIN = "admin"


class CurrentStage(enum.StrEnum):
    """Where a request sits in the chain. COMPLETED is terminal."""

    MANAGER = "manager"
    HR = "hr"
    ADMIN = "admin"
    COMPLETED = "completed"


class StageStatus(enum.StrEnum):
    """Outcome recorded for a single stage."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestDomain(enum.StrEnum):
    """Kind of request driven through the workflow."""

    LEAVE = "leave"
    REIMBURSEMENT = "reimbursement"
    REGULARIZATION = "regularization"


class BulkAction(enum.StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


class Role(enum.StrEnum):
    """Caller role carried in the auth context."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR = "hr"
    ADMIN = "admin"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE = "LEAVE"
    REIMBURSEMENT = "REIMBURSEMENT"
    REGULARIZATION = "REGULARIZATION"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    SUBMIT = "SUBMIT"
    AUTO_APPROVE = "AUTO_APPROVE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    UPDATE = "UPDATE"
    CANCEL = "CANCEL"
    DELETE = "DELETE"


STAGE_ORDER: tuple[Stage, ...] = (Stage.MANAGER, Stage.HR, Stage.ADMIN)


def next_stage(stage: Stage) -> CurrentStage:
    """Return the stage that follows ``stage``; admin is followed by COMPLETED."""
    index = STAGE_ORDER.index(stage)
    if index + 1 < len(STAGE_ORDER):
        return CurrentStage(STAGE_ORDER[index + 1].value)
    return CurrentStage.COMPLETED
