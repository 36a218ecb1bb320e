"""Capability table consulted by the workflow before any scope lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

from approvals.exceptions import UnauthorizedError
from approvals.models.enums import Role, Stage

if TYPE_CHECKING:
    from approvals.schemas.auth import AuthContext

STAGE_CAPABILITIES: frozenset[tuple[Role, Stage]] = frozenset(
    {
        (Role.MANAGER, Stage.MANAGER),
        (Role.HR, Stage.HR),
        (Role.ADMIN, Stage.ADMIN),
    }
)


def can_act_at_stage(role: str, stage: Stage) -> bool:
    """Whether a caller with ``role`` may approve or reject at ``stage``."""
    try:
        return (Role(role), stage) in STAGE_CAPABILITIES
    except ValueError:
        return False


def require_stage_capability(auth: AuthContext, stage: Stage) -> None:
    """Raise Unauthorized unless the caller's role may act at ``stage``."""
    if not can_act_at_stage(auth.role, stage):
        raise UnauthorizedError(f"Role '{auth.role}' cannot act at the {stage} stage")
