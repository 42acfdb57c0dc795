from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class EmployeeInfo(BaseModel):
    """Employee metadata from the Employee Directory."""

    id: int
    full_name: str = ""
    department: str | None = None
    department_manager_id: int | None = None  # designated department approver
    scheduled_rest_dates: list[date] = Field(default_factory=list)


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Interface for the Employee Directory."""

    async def get_employee(self, employee_id: int) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        ...

    async def list_employees(self, department: str | None = None) -> list[EmployeeInfo]:
        """List employees, optionally restricted to one department."""
        ...


class InMemoryEmployeeDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[int, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.id] = employee

    async def get_employee(self, employee_id: int) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        return self._employees.get(employee_id)

    async def list_employees(self, department: str | None = None) -> list[EmployeeInfo]:
        """List employees, optionally restricted to one department."""
        employees = sorted(self._employees.values(), key=lambda e: e.id)
        if department is None:
            return employees
        return [e for e in employees if e.department == department]


_employee_directory: EmployeeDirectory = InMemoryEmployeeDirectory()


def get_employee_directory() -> EmployeeDirectory:
    """FastAPI dependency for the Employee Directory."""
    return _employee_directory


def set_employee_directory(directory: EmployeeDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _employee_directory
    _employee_directory = directory
