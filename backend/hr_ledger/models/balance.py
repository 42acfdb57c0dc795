# ruff: noqa: TC003
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from hr_ledger.exceptions import ConsistencyWarning, InsufficientBalance, ValidationError
from hr_ledger.models.base import now_utc

logger = logging.getLogger(__name__)

# Offset hours live in a single perpetual account per employee.
PERPETUAL_PERIOD = 0

_ZERO = Decimal("0")


class BalanceAccount(SQLModel, table=True):
    """One bank per (employee, resource type, accounting period).

    ``remaining`` is always derived from ``granted`` and ``consumed``. The
    mutators below are the only supported way to change either column.
    """

    __tablename__ = "balance_account"
    __table_args__ = (
        sa.CheckConstraint("consumed >= 0 AND granted >= consumed", name="ck_balance_account_non_negative"),
    )

    employee_id: int = Field(primary_key=True)
    resource_type: str = Field(primary_key=True, max_length=50)
    accounting_period: int = Field(default=PERPETUAL_PERIOD, primary_key=True)
    granted: Decimal = Field(default=_ZERO, max_digits=12, decimal_places=2)
    consumed: Decimal = Field(default=_ZERO, max_digits=12, decimal_places=2)
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})

    @property
    def remaining(self) -> Decimal:
        return Decimal(self.granted) - Decimal(self.consumed)

    def key(self) -> dict[str, Any]:
        """Identity of the account, for error context and audit rows."""
        return {
            "employee_id": self.employee_id,
            "resource_type": self.resource_type,
            "accounting_period": None if self.accounting_period == PERPETUAL_PERIOD else self.accounting_period,
        }

    def check_debit(self, amount: Decimal) -> InsufficientBalance | None:
        """Return the error a debit of ``amount`` would raise, without mutating."""
        if self.remaining < amount:
            return InsufficientBalance(self.remaining, amount, self.key())
        return None

    def check_revoke(self, amount: Decimal) -> InsufficientBalance | None:
        """Return the error a revoke of ``amount`` would raise, without mutating."""
        return self.check_debit(amount)

    def debit(self, amount: Decimal) -> None:
        _require_positive(amount)
        error = self.check_debit(amount)
        if error is not None:
            raise error
        self.consumed = Decimal(self.consumed) + amount
        self._touch()

    def credit(self, amount: Decimal) -> ConsistencyWarning | None:
        """Give back previously consumed units, clamping ``consumed`` at zero.

        A clamp means a reversal was larger than anything ever consumed.
        It is logged and returned, never raised.
        """
        _require_positive(amount)
        consumed = Decimal(self.consumed)
        warning: ConsistencyWarning | None = None
        if amount > consumed:
            warning = ConsistencyWarning(
                f"Credit of {amount} exceeds consumed {consumed} on account {self.key()}; clamped to zero"
            )
            logger.warning("%s: %s", type(warning).__name__, warning)
            self.consumed = _ZERO
        else:
            self.consumed = consumed - amount
        self._touch()
        return warning

    def grant(self, amount: Decimal) -> None:
        _require_positive(amount)
        self.granted = Decimal(self.granted) + amount
        self._touch()

    def revoke(self, amount: Decimal) -> None:
        """Withdraw a previous grant; fails if those units are already spent."""
        _require_positive(amount)
        error = self.check_revoke(amount)
        if error is not None:
            raise error
        self.granted = Decimal(self.granted) - amount
        self._touch()

    def _touch(self) -> None:
        self.version += 1
        self.updated_at = now_utc()


def _require_positive(amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Ledger amounts must be positive", context={"amount": str(amount)})
