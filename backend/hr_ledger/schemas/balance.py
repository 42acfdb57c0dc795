# ruff: noqa: TC001, TC003
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from hr_ledger.models.enums import ResourceType

# ---------------------------------------------------------------------------
# Account response schemas
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """A single balance account."""

    employee_id: int
    resource_type: ResourceType
    accounting_period: int | None  # None for the perpetual offset account
    granted: Decimal
    consumed: Decimal
    remaining: Decimal
    version: int
    updated_at: datetime | None


class AccountListResponse(BaseModel):
    """All balance accounts for an employee."""

    items: list[AccountResponse]
    total: int


# ---------------------------------------------------------------------------
# Administrative payloads
# ---------------------------------------------------------------------------


class GrantPayload(BaseModel):
    """Request body for an administrative top-up."""

    employee_id: int
    resource_type: ResourceType
    accounting_period: int | None = None
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    reason: str | None = Field(default=None, max_length=1000)


class InitializeAccountsPayload(BaseModel):
    """Request body for opening a year's sick and vacation banks."""

    year: int = Field(ge=2000, le=2100)
    sick_days: Decimal = Field(default=Decimal("15"), ge=0, max_digits=12, decimal_places=2)
    vacation_days: Decimal = Field(default=Decimal("15"), ge=0, max_digits=12, decimal_places=2)
    department: str | None = None


class InitializeAccountsResponse(BaseModel):
    """Summary of an account initialization run."""

    year: int
    created: int
    skipped: int
