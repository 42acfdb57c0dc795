from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from hr_ledger.config import get_settings
from hr_ledger.exceptions import Unauthorized, ValidationError
from hr_ledger.models.balance import PERPETUAL_PERIOD, BalanceAccount
from hr_ledger.models.enums import ApprovalLevel, AuditAction, AuditEntityType, ResourceType
from hr_ledger.schemas.balance import AccountListResponse, AccountResponse, InitializeAccountsResponse
from hr_ledger.services.audit import account_entity_id, model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.schemas.auth import AuthContext
    from hr_ledger.schemas.balance import GrantPayload, InitializeAccountsPayload
    from hr_ledger.services.employee import EmployeeDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_account_response(account: BalanceAccount) -> AccountResponse:
    """Map an account model to its response schema."""
    return AccountResponse(
        employee_id=account.employee_id,
        resource_type=ResourceType(account.resource_type),
        accounting_period=None if account.accounting_period == PERPETUAL_PERIOD else account.accounting_period,
        granted=account.granted,
        consumed=account.consumed,
        remaining=account.remaining,
        version=account.version,
        updated_at=account.updated_at,
    )


def normalize_period(resource_type: ResourceType, accounting_period: int | None) -> int:
    """Resolve the stored period for an account key.

    Offset hours have one perpetual account; leave banks need an explicit
    year; overtime has no account at all.
    """
    if not resource_type.has_account:
        raise ValidationError(
            f"{resource_type} has no balance account",
            context={"resource_type": resource_type.value},
        )
    if resource_type is ResourceType.OFFSET_HOURS:
        if accounting_period not in (None, PERPETUAL_PERIOD):
            raise ValidationError(
                "Offset hours use a single perpetual account",
                context={"accounting_period": accounting_period},
            )
        return PERPETUAL_PERIOD
    if accounting_period is None or accounting_period == PERPETUAL_PERIOD:
        raise ValidationError(
            "accounting_period is required for leave accounts",
            context={"resource_type": resource_type.value},
        )
    return accounting_period


def default_grant(resource_type: ResourceType) -> Decimal:
    """Grant given to an account created on first reference."""
    settings = get_settings()
    return {
        ResourceType.OFFSET_HOURS: settings.default_offset_hours_grant,
        ResourceType.SICK_DAYS: settings.default_sick_days_grant,
        ResourceType.VACATION_DAYS: settings.default_vacation_days_grant,
    }[resource_type]


async def _find_account(
    session: AsyncSession,
    employee_id: int,
    resource_type: ResourceType,
    period: int,
    *,
    for_update: bool = False,
) -> BalanceAccount | None:
    query = select(BalanceAccount).where(
        col(BalanceAccount.employee_id) == employee_id,
        col(BalanceAccount.resource_type) == resource_type.value,
        col(BalanceAccount.accounting_period) == period,
    )
    if for_update:
        # Re-read the row under the lock so a stale identity-map copy is never used.
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_account_for_update(
    session: AsyncSession,
    employee_id: int,
    resource_type: ResourceType,
    accounting_period: int | None,
    *,
    actor_id: int,
) -> BalanceAccount:
    """Get the account with a FOR UPDATE lock, creating it if absent.

    Two transactions may both miss the row and race to insert it. The loser's
    insert is rolled back to a savepoint and the winner's row is read under
    the lock instead.
    """
    period = normalize_period(resource_type, accounting_period)
    account = await _find_account(session, employee_id, resource_type, period, for_update=True)
    if account is not None:
        return account

    account = BalanceAccount(
        employee_id=employee_id,
        resource_type=resource_type.value,
        accounting_period=period,
        granted=default_grant(resource_type),
        consumed=Decimal("0"),
    )
    try:
        async with session.begin_nested():
            session.add(account)
            await session.flush()
    except IntegrityError:
        logger.info("%s account for employee %s opened concurrently", resource_type, employee_id)
        existing = await _find_account(session, employee_id, resource_type, period, for_update=True)
        if existing is None:
            raise
        return existing

    logger.info("Opened %s account for employee %s (period %s)", resource_type, employee_id, period)
    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.ACCOUNT,
        entity_id=account_entity_id(employee_id, resource_type.value, period),
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(account),
    )
    return account


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_account(
    session: AsyncSession,
    employee_id: int,
    resource_type: ResourceType,
    accounting_period: int | None = None,
) -> AccountResponse:
    """Read one account.

    An account nobody has referenced yet is reported as it would be opened,
    with the default grant and version 0, without persisting it.
    """
    period = normalize_period(resource_type, accounting_period)
    account = await _find_account(session, employee_id, resource_type, period)
    if account is None:
        return AccountResponse(
            employee_id=employee_id,
            resource_type=resource_type,
            accounting_period=None if period == PERPETUAL_PERIOD else period,
            granted=default_grant(resource_type),
            consumed=Decimal("0"),
            remaining=default_grant(resource_type),
            version=0,
            updated_at=None,
        )
    return _build_account_response(account)


async def list_employee_accounts(session: AsyncSession, employee_id: int) -> AccountListResponse:
    """List every persisted account of an employee."""
    result = await session.execute(
        select(BalanceAccount)
        .where(col(BalanceAccount.employee_id) == employee_id)
        .order_by(col(BalanceAccount.resource_type), col(BalanceAccount.accounting_period).desc())
    )
    accounts = list(result.scalars().all())
    return AccountListResponse(
        items=[_build_account_response(a) for a in accounts],
        total=len(accounts),
    )


# ---------------------------------------------------------------------------
# Write path - administrative grants
# ---------------------------------------------------------------------------


async def grant_balance(
    session: AsyncSession,
    auth: AuthContext,
    payload: GrantPayload,
) -> AccountResponse:
    """Top up an account outside the request workflow (HRD only)."""
    if not auth.is_hrd:
        raise Unauthorized("Only HRD may grant balances", required_role=ApprovalLevel.HRD)

    account = await get_or_create_account_for_update(
        session, payload.employee_id, payload.resource_type, payload.accounting_period, actor_id=auth.actor_id
    )
    before_dict = model_to_audit_dict(account)

    account.grant(payload.amount)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.ACCOUNT,
        entity_id=account_entity_id(account.employee_id, account.resource_type, account.accounting_period),
        action=AuditAction.GRANT,
        before_json=before_dict,
        after_json={**model_to_audit_dict(account), "reason": payload.reason},
    )

    await session.commit()
    await session.refresh(account)
    return _build_account_response(account)


async def initialize_leave_accounts(
    session: AsyncSession,
    auth: AuthContext,
    payload: InitializeAccountsPayload,
    directory: EmployeeDirectory,
) -> InitializeAccountsResponse:
    """Open sick and vacation banks for a year.

    Employees come from the directory, optionally one department only.
    Accounts that already exist are left alone and counted as skipped.
    """
    if not auth.is_hrd:
        raise Unauthorized("Only HRD may initialize leave accounts", required_role=ApprovalLevel.HRD)

    grants = {
        ResourceType.SICK_DAYS: payload.sick_days,
        ResourceType.VACATION_DAYS: payload.vacation_days,
    }
    created = 0
    skipped = 0

    for employee in await directory.list_employees(payload.department):
        for resource_type, amount in grants.items():
            existing = await _find_account(session, employee.id, resource_type, payload.year, for_update=True)
            if existing is not None:
                skipped += 1
                continue

            account = BalanceAccount(
                employee_id=employee.id,
                resource_type=resource_type.value,
                accounting_period=payload.year,
                granted=amount,
                consumed=Decimal("0"),
            )
            session.add(account)
            await session.flush()

            await write_audit_log(
                session,
                actor_id=auth.actor_id,
                entity_type=AuditEntityType.ACCOUNT,
                entity_id=account_entity_id(employee.id, resource_type.value, payload.year),
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(account),
            )
            created += 1

    await session.commit()
    logger.info(
        "Leave accounts for %s initialized by actor %s: %s created, %s skipped",
        payload.year,
        auth.actor_id,
        created,
        skipped,
    )
    return InitializeAccountsResponse(year=payload.year, created=created, skipped=skipped)
