# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

from fastapi import APIRouter, Query, status

from hr_ledger.api.deps import AuthDep, DirectoryDep, EmployeeScopeDep
from hr_ledger.db import SessionDep
from hr_ledger.models.enums import ResourceType
from hr_ledger.schemas.balance import (
    AccountListResponse,
    AccountResponse,
    GrantPayload,
    InitializeAccountsPayload,
    InitializeAccountsResponse,
)
from hr_ledger.services import balance as balance_service

employee_accounts_router = APIRouter(
    prefix="/employees/{employee_id}/accounts",
    tags=["accounts"],
)

accounts_router = APIRouter(prefix="/accounts", tags=["accounts"])


@employee_accounts_router.get("", response_model=AccountListResponse)
async def list_employee_accounts(
    employee_id: int,
    session: SessionDep,
    auth: EmployeeScopeDep,
) -> AccountListResponse:
    """List every balance account of an employee (self, approver or HRD)."""
    return await balance_service.list_employee_accounts(session, employee_id)


@employee_accounts_router.get("/{resource_type}", response_model=AccountResponse)
async def get_account(
    employee_id: int,
    resource_type: ResourceType,
    session: SessionDep,
    auth: EmployeeScopeDep,
    accounting_period: int | None = Query(default=None),
) -> AccountResponse:
    """Get one balance account; leave accounts need an accounting period."""
    return await balance_service.get_account(session, employee_id, resource_type, accounting_period)


@accounts_router.post("/grants", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def grant_balance(
    payload: GrantPayload,
    session: SessionDep,
    auth: AuthDep,
) -> AccountResponse:
    """Administrative top-up of an account (HRD only)."""
    return await balance_service.grant_balance(session, auth, payload)


@accounts_router.post("/initialize", response_model=InitializeAccountsResponse)
async def initialize_leave_accounts(
    payload: InitializeAccountsPayload,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> InitializeAccountsResponse:
    """Open a year's sick and vacation banks (HRD only)."""
    return await balance_service.initialize_leave_accounts(session, auth, payload, directory)
