"""Keeps balance accounts in lockstep with request approvals.

Entering APPROVED applies the record's effect to its account, leaving
APPROVED applies the exact inverse. ``RequestRecord.is_applied`` is the only
thing consulted to decide whether an effect is currently posted, which is
what makes repeated calls harmless.

The caller owns the transaction: nothing here commits, so the ledger write
and the status write land together or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from hr_ledger.models.enums import AuditAction, AuditEntityType, Direction, RequestStatus, ResourceType
from hr_ledger.services.audit import account_entity_id, model_to_audit_dict, write_audit_log
from hr_ledger.services.balance import get_or_create_account_for_update

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.exceptions import ConsistencyWarning, InsufficientBalance
    from hr_ledger.models.balance import BalanceAccount
    from hr_ledger.models.request import RequestRecord

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile step.

    ``error`` is set when the ledger refused the mutation; the account and
    the record are then exactly as they were.
    """

    account: BalanceAccount | None = None
    applied: bool = False
    reversed: bool = False
    error: InsufficientBalance | None = None
    warning: ConsistencyWarning | None = None

    @property
    def changed(self) -> bool:
        return self.applied or self.reversed


def _is_approved(status: RequestStatus | str) -> bool:
    return RequestStatus(status) in (RequestStatus.APPROVED, RequestStatus.FORCE_APPROVED)


async def reconcile(
    session: AsyncSession,
    record: RequestRecord,
    old_status: RequestStatus | str,
    new_status: RequestStatus | str,
    *,
    actor_id: int,
) -> ReconcileResult:
    """Apply or reverse ``record``'s ledger effect for ``old -> new``."""
    if not record.affects_balance or not ResourceType(record.resource_type).has_account:
        return ReconcileResult()

    if not _is_approved(old_status) and _is_approved(new_status):
        if record.is_applied:
            return ReconcileResult()
        return await _apply(session, record, actor_id)

    if _is_approved(old_status) and not _is_approved(new_status):
        if not record.is_applied:
            return ReconcileResult()
        return await _reverse(session, record, actor_id)

    return ReconcileResult()


async def _lock_account(session: AsyncSession, record: RequestRecord, actor_id: int) -> BalanceAccount:
    return await get_or_create_account_for_update(
        session,
        record.employee_id,
        ResourceType(record.resource_type),
        record.accounting_period,
        actor_id=actor_id,
    )


async def _apply(session: AsyncSession, record: RequestRecord, actor_id: int) -> ReconcileResult:
    account = await _lock_account(session, record, actor_id)
    amount = Decimal(record.amount)
    before_dict = model_to_audit_dict(account)

    if Direction(record.direction) is Direction.DEBIT:
        error = account.check_debit(amount)
        if error is not None:
            logger.warning("Approval of request %s refused by the ledger: %s", record.id, error.message)
            return ReconcileResult(account=account, error=error)
        account.debit(amount)
    else:
        account.grant(amount)

    record.is_applied = True
    await _audit_account(session, account, actor_id, record, before_dict)
    return ReconcileResult(account=account, applied=True)


async def _reverse(session: AsyncSession, record: RequestRecord, actor_id: int) -> ReconcileResult:
    account = await _lock_account(session, record, actor_id)
    amount = Decimal(record.amount)
    before_dict = model_to_audit_dict(account)
    warning: ConsistencyWarning | None = None

    if Direction(record.direction) is Direction.DEBIT:
        warning = account.credit(amount)
    else:
        error = account.check_revoke(amount)
        if error is not None:
            logger.warning("Reversal of request %s refused by the ledger: %s", record.id, error.message)
            return ReconcileResult(account=account, error=error)
        account.revoke(amount)

    record.is_applied = False
    await _audit_account(session, account, actor_id, record, before_dict)
    return ReconcileResult(account=account, reversed=True, warning=warning)


async def _audit_account(
    session: AsyncSession,
    account: BalanceAccount,
    actor_id: int,
    record: RequestRecord,
    before_dict: dict[str, object],
) -> None:
    await session.flush()
    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.ACCOUNT,
        entity_id=account_entity_id(account.employee_id, account.resource_type, account.accounting_period),
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json={**model_to_audit_dict(account), "request_id": str(record.id)},
    )
