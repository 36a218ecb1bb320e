from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from approvals.db import get_session
from approvals.main import app
from approvals.models import SQLModel
from approvals.services.leave_policy import InMemoryLeavePolicyProvider, set_leave_policy_provider
from approvals.services.organization import (
    DepartmentInfo,
    EmployeeInfo,
    InMemoryOrganizationResolver,
    set_organization_resolver,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@dataclass
class OrgChart:
    """Two departments of one company plus a second company.

    Engineering: manager ``manager_id``, HR ``hr_id``, employees ``employee_id`` and ``colleague_id``.
    Sales: manager ``other_manager_id``, HR ``other_hr_id``, employee ``sales_employee_id``.
    """

    resolver: InMemoryOrganizationResolver
    company_id: uuid.UUID = field(default_factory=uuid.uuid4)
    other_company_id: uuid.UUID = field(default_factory=uuid.uuid4)
    engineering_id: uuid.UUID = field(default_factory=uuid.uuid4)
    sales_id: uuid.UUID = field(default_factory=uuid.uuid4)
    employee_id: uuid.UUID = field(default_factory=uuid.uuid4)
    colleague_id: uuid.UUID = field(default_factory=uuid.uuid4)
    sales_employee_id: uuid.UUID = field(default_factory=uuid.uuid4)
    manager_id: uuid.UUID = field(default_factory=uuid.uuid4)
    hr_id: uuid.UUID = field(default_factory=uuid.uuid4)
    other_manager_id: uuid.UUID = field(default_factory=uuid.uuid4)
    other_hr_id: uuid.UUID = field(default_factory=uuid.uuid4)
    admin_id: uuid.UUID = field(default_factory=uuid.uuid4)

    def headers(self, user_id: uuid.UUID, role: str = "employee") -> dict[str, str]:
        return {"X-Company-Id": str(self.company_id), "X-User-Id": str(user_id), "X-Role": role}


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A fresh SQLite database file per test with all tables created."""
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}")
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client where every request gets its own database session."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def leave_policies() -> Iterator[InMemoryLeavePolicyProvider]:
    """An empty leave-policy provider installed for the test."""
    provider = InMemoryLeavePolicyProvider()
    set_leave_policy_provider(provider)
    yield provider
    set_leave_policy_provider(InMemoryLeavePolicyProvider())


@pytest.fixture(autouse=True)
def org(leave_policies: InMemoryLeavePolicyProvider) -> Iterator[OrgChart]:
    """Seed the in-memory organization resolver for every test."""
    chart = OrgChart(resolver=InMemoryOrganizationResolver())
    resolver = chart.resolver
    resolver.seed_department(
        DepartmentInfo(
            id=chart.engineering_id,
            company_id=chart.company_id,
            name="Engineering",
            manager_employee_id=chart.manager_id,
            hr_employee_id=chart.hr_id,
        )
    )
    resolver.seed_department(
        DepartmentInfo(
            id=chart.sales_id,
            company_id=chart.company_id,
            name="Sales",
            manager_employee_id=chart.other_manager_id,
            hr_employee_id=chart.other_hr_id,
        )
    )
    for employee_id in (chart.employee_id, chart.colleague_id):
        resolver.seed_employee(
            EmployeeInfo(id=employee_id, company_id=chart.company_id, department_id=chart.engineering_id)
        )
    resolver.seed_employee(
        EmployeeInfo(id=chart.sales_employee_id, company_id=chart.company_id, department_id=chart.sales_id)
    )
    for staff_id in (chart.manager_id, chart.hr_id, chart.other_manager_id, chart.other_hr_id, chart.admin_id):
        resolver.seed_employee(EmployeeInfo(id=staff_id, company_id=chart.company_id))

    set_organization_resolver(resolver)
    yield chart
    set_organization_resolver(InMemoryOrganizationResolver())
