# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel

if TYPE_CHECKING:
    from approvals.services.cache import TTLCache

logger = logging.getLogger(__name__)


class LeaveTypeRule(BaseModel):
    """One leave type as configured in a company's leave policy."""

    name: str
    short_code: str
    is_active: bool = True
    requires_approval: bool = True
    min_per_request: float | None = None
    max_per_request: float | None = None


class LeavePolicy(BaseModel):
    """Company leave policy from the leave-policy service."""

    company_id: uuid.UUID
    leave_types: list[LeaveTypeRule]

    def find_leave_type(self, leave_type: str) -> LeaveTypeRule | None:
        """Match a leave type by short code or name."""
        for rule in self.leave_types:
            if leave_type in (rule.short_code, rule.name):
                return rule
        return None


@runtime_checkable
class LeavePolicyProvider(Protocol):
    """Interface for the leave-policy service."""

    async def get_policy(self, company_id: uuid.UUID) -> LeavePolicy | None:
        """Fetch the company's leave policy. Returns None if not configured."""
        ...


class InMemoryLeavePolicyProvider:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._policies: dict[uuid.UUID, LeavePolicy] = {}

    def seed(self, policy: LeavePolicy) -> None:
        """Seed a policy for testing."""
        self._policies[policy.company_id] = policy

    async def get_policy(self, company_id: uuid.UUID) -> LeavePolicy | None:
        return self._policies.get(company_id)


class CachedLeavePolicyProvider:
    """Read-through wrapper that keeps policies in a caller-owned TTL cache."""

    def __init__(self, inner: LeavePolicyProvider, cache: TTLCache) -> None:
        self._inner = inner
        self._cache = cache

    @staticmethod
    def _key(company_id: uuid.UUID) -> str:
        return f"leave-policy:{company_id}"

    async def get_policy(self, company_id: uuid.UUID) -> LeavePolicy | None:
        cached = await self._cache.get(self._key(company_id))
        if cached is not None:
            return cached
        policy = await self._inner.get_policy(company_id)
        if policy is not None:
            await self._cache.set(self._key(company_id), policy)
            logger.debug("Cached leave policy for company %s", company_id)
        return policy

    async def invalidate(self, company_id: uuid.UUID) -> None:
        await self._cache.delete(self._key(company_id))


_leave_policy_provider: LeavePolicyProvider = InMemoryLeavePolicyProvider()


def get_leave_policy_provider() -> LeavePolicyProvider:
    """FastAPI dependency for the leave-policy service."""
    return _leave_policy_provider


def set_leave_policy_provider(provider: LeavePolicyProvider) -> None:
    """Override the provider (for testing or production wiring)."""
    global _leave_policy_provider
    _leave_policy_provider = provider
