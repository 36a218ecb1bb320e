# ruff: noqa: TC003
"""Approvable request store.

All state transitions go through :func:`conditional_update`, a single
``UPDATE ... WHERE`` that only matches while the row still has the version
and stage state the caller observed. A zero rowcount means another writer got
there first; nothing is ever read, modified in memory and saved back.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import select, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import col

from approvals.config import get_settings
from approvals.exceptions import NotFoundError, StoreUnavailableError
from approvals.models.base import now_utc
from approvals.models.request import ApprovalRequest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from approvals.models.enums import RequestDomain

logger = logging.getLogger(__name__)


@asynccontextmanager
async def store_call(operation: str) -> AsyncIterator[None]:
    """Bound a block of store calls by the configured timeout.

    Timeouts and connectivity failures surface as StoreUnavailableError.
    """
    timeout = get_settings().store_timeout_seconds
    try:
        async with asyncio.timeout(timeout):
            yield
    except TimeoutError:
        logger.warning("Store call '%s' timed out after %.1fs", operation, timeout)
        raise StoreUnavailableError from None
    except (OperationalError, InterfaceError, PoolTimeoutError):
        logger.exception("Store call '%s' failed", operation)
        raise StoreUnavailableError from None


def _base_query(company_id: uuid.UUID, domain: RequestDomain) -> sa.Select[tuple[ApprovalRequest]]:
    return select(ApprovalRequest).where(
        col(ApprovalRequest.company_id) == company_id,
        col(ApprovalRequest.domain) == domain.value,
    )


async def load_request(
    session: AsyncSession,
    company_id: uuid.UUID,
    domain: RequestDomain,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> ApprovalRequest:
    """Fetch the latest committed state of a request. Raises NotFoundError."""
    query = _base_query(company_id, domain).where(col(ApprovalRequest.id) == request_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query.execution_options(populate_existing=True))
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError(f"{domain.value.capitalize()} request not found")
    return request


async def load_requests(
    session: AsyncSession,
    company_id: uuid.UUID,
    domain: RequestDomain,
    request_ids: Sequence[uuid.UUID],
    *,
    for_update: bool = False,
) -> list[ApprovalRequest]:
    """Fetch every listed request that exists, locking the rows when ``for_update``."""
    query = (
        _base_query(company_id, domain)
        .where(col(ApprovalRequest.id).in_(list(request_ids)))
        .order_by(col(ApprovalRequest.id))
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def conditional_update(
    session: AsyncSession,
    request: ApprovalRequest,
    conditions: Sequence[Any],
    values: dict[str, Any],
) -> bool:
    """Compare-and-swap a request row.

    The write only applies while the row still carries the version observed in
    ``request`` and every extra condition holds. Returns False when nothing
    matched. On success ``request`` is refreshed with the new state.
    """
    stmt = (
        update(ApprovalRequest)
        .where(
            col(ApprovalRequest.id) == request.id,
            col(ApprovalRequest.version) == request.version,
            *conditions,
        )
        .values(**values, version=col(ApprovalRequest.version) + 1, updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:  # type: ignore[attr-defined]
        return False
    await session.refresh(request)
    return True
