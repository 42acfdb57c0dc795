from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest

from hr_ledger.exceptions import ConsistencyWarning, InsufficientBalance, ValidationError
from hr_ledger.models import (
    PERPETUAL_PERIOD,
    AuditLog,
    BalanceAccount,
    CompanyHoliday,
    RequestRecord,
    SQLModel,
)
from hr_ledger.models.enums import Direction, RequestStatus, ResourceType

EXPECTED_TABLES = {
    "audit_log",
    "balance_account",
    "company_holiday",
    "request_record",
}


def _account(granted: str = "40", consumed: str = "0") -> BalanceAccount:
    return BalanceAccount(
        employee_id=7,
        resource_type=ResourceType.OFFSET_HOURS.value,
        accounting_period=PERPETUAL_PERIOD,
        granted=Decimal(granted),
        consumed=Decimal(consumed),
    )


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_balance_account_primary_key_is_identity_tuple() -> None:
    table = SQLModel.metadata.tables["balance_account"]
    assert [c.name for c in table.primary_key.columns] == ["employee_id", "resource_type", "accounting_period"]


def test_request_record_defaults() -> None:
    record = RequestRecord(
        employee_id=7,
        resource_type=ResourceType.SICK_DAYS.value,
        accounting_period=2025,
        amount=Decimal("3"),
        direction=Direction.DEBIT.value,
        requested_by=7,
    )
    assert record.status == RequestStatus.PENDING
    assert record.is_applied is False
    assert record.force_approved is False
    assert record.affects_balance is True
    assert record.id is not None


def test_holiday_and_audit_instantiation() -> None:
    holiday = CompanyHoliday(date=date(2025, 6, 12), name="Independence Day")
    assert holiday.id is not None
    entry = AuditLog(actor_id=1, entity_type="REQUEST", entity_id="x", action="SUBMIT")
    assert entry.before_json is None


# ---------------------------------------------------------------------------
# Mutators
# ---------------------------------------------------------------------------


def test_remaining_is_derived() -> None:
    account = _account("40", "8")
    assert account.remaining == Decimal("32")


def test_debit_within_balance() -> None:
    account = _account("40")
    account.debit(Decimal("8"))
    assert account.consumed == Decimal("8")
    assert account.remaining == Decimal("32")
    assert account.version == 2


def test_debit_beyond_balance_leaves_account_unchanged() -> None:
    account = _account("2")
    with pytest.raises(InsufficientBalance) as exc_info:
        account.debit(Decimal("5"))

    assert exc_info.value.remaining == Decimal("2")
    assert exc_info.value.requested == Decimal("5")
    assert exc_info.value.context is not None
    assert exc_info.value.context["account"]["accounting_period"] is None
    assert account.consumed == Decimal("0")
    assert account.version == 1


def test_debit_of_exact_remaining_is_allowed() -> None:
    account = _account("5", "3")
    account.debit(Decimal("2"))
    assert account.remaining == Decimal("0")


def test_credit_gives_back_consumed_units() -> None:
    account = _account("40", "8")
    assert account.credit(Decimal("8")) is None
    assert account.consumed == Decimal("0")


def test_credit_underflow_is_clamped_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    account = _account("40", "3")
    with caplog.at_level(logging.WARNING, logger="hr_ledger.models.balance"):
        warning = account.credit(Decimal("5"))

    assert isinstance(warning, ConsistencyWarning)
    assert account.consumed == Decimal("0")
    assert "ConsistencyWarning" in caplog.text


def test_grant_and_revoke() -> None:
    account = _account("10", "4")
    account.grant(Decimal("5"))
    assert account.granted == Decimal("15")
    account.revoke(Decimal("5"))
    assert account.granted == Decimal("10")


def test_revoke_of_spent_units_is_rejected() -> None:
    account = _account("10", "8")
    with pytest.raises(InsufficientBalance):
        account.revoke(Decimal("5"))
    assert account.granted == Decimal("10")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
def test_non_positive_amounts_rejected(amount: Decimal) -> None:
    account = _account()
    for mutator in (account.debit, account.credit, account.grant, account.revoke):
        with pytest.raises(ValidationError):
            mutator(amount)


def test_key_reports_perpetual_period_as_none() -> None:
    assert _account().key() == {"employee_id": 7, "resource_type": "OFFSET_HOURS", "accounting_period": None}

    leave = BalanceAccount(employee_id=7, resource_type="SICK_DAYS", accounting_period=2025)
    assert leave.key()["accounting_period"] == 2025
