# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class EmployeeInfo(BaseModel):
    """Employee metadata from the Employee directory."""

    id: uuid.UUID
    company_id: uuid.UUID
    department_id: uuid.UUID | None = None
    name: str | None = None


class DepartmentInfo(BaseModel):
    """Department with its current manager and HR assignments."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    manager_employee_id: uuid.UUID | None = None
    hr_employee_id: uuid.UUID | None = None


@runtime_checkable
class OrganizationResolver(Protocol):
    """Read-only view of the organizational structure.

    Lookups are live: a reassignment of a department's manager or HR is
    visible to the very next call.
    """

    async def get_employee(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        ...

    async def list_departments_where(
        self, company_id: uuid.UUID, *, manager_id: uuid.UUID | None = None, hr_id: uuid.UUID | None = None
    ) -> list[DepartmentInfo]:
        """List departments whose manager (or HR) is the given employee."""
        ...

    async def list_department_employee_ids(
        self, company_id: uuid.UUID, department_ids: list[uuid.UUID]
    ) -> set[uuid.UUID]:
        """IDs of employees belonging to any of the given departments."""
        ...


class InMemoryOrganizationResolver:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[tuple[uuid.UUID, uuid.UUID], EmployeeInfo] = {}
        self._departments: dict[tuple[uuid.UUID, uuid.UUID], DepartmentInfo] = {}

    def seed_employee(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[(employee.company_id, employee.id)] = employee

    def seed_department(self, department: DepartmentInfo) -> None:
        """Seed (or replace) a department for testing."""
        self._departments[(department.company_id, department.id)] = department

    async def get_employee(self, company_id: uuid.UUID, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get((company_id, employee_id))

    async def list_departments_where(
        self, company_id: uuid.UUID, *, manager_id: uuid.UUID | None = None, hr_id: uuid.UUID | None = None
    ) -> list[DepartmentInfo]:
        result = []
        for dept in self._departments.values():
            if dept.company_id != company_id:
                continue
            if manager_id is not None and dept.manager_employee_id != manager_id:
                continue
            if hr_id is not None and dept.hr_employee_id != hr_id:
                continue
            result.append(dept)
        return result

    async def list_department_employee_ids(
        self, company_id: uuid.UUID, department_ids: list[uuid.UUID]
    ) -> set[uuid.UUID]:
        wanted = set(department_ids)
        return {
            e.id for e in self._employees.values() if e.company_id == company_id and e.department_id in wanted
        }


_organization_resolver: OrganizationResolver = InMemoryOrganizationResolver()


def get_organization_resolver() -> OrganizationResolver:
    """FastAPI dependency for the Organization Resolver."""
    return _organization_resolver


def set_organization_resolver(resolver: OrganizationResolver) -> None:
    """Override the resolver (for testing or production wiring)."""
    global _organization_resolver
    _organization_resolver = resolver
