# ruff: noqa: TC003
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from hr_ledger.models.base import TimestampMixin, UUIDBase
from hr_ledger.models.enums import RequestStatus


class RequestRecord(UUIDBase, TimestampMixin, table=True):
    """A submitted offset, leave or overtime request and its workflow state.

    ``is_applied`` is the only source of truth for whether this record's
    ledger effect is currently posted to its balance account.
    """

    __tablename__ = "request_record"
    __table_args__ = (
        sa.Index("ix_request_employee_resource", "employee_id", "resource_type"),
        sa.Index("ix_request_resource_status", "resource_type", "status"),
    )

    employee_id: int = Field(index=True)
    resource_type: str = Field(max_length=50)
    accounting_period: int | None = None
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    direction: str = Field(max_length=20)
    affects_balance: bool = True
    status: str = Field(
        default=RequestStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    is_applied: bool = False
    force_approved: bool = False

    department: str | None = Field(default=None, max_length=255)
    dept_approver_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None
    details_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)

    requested_by: int
    submitted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    dept_decided_by: int | None = None
    dept_decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    dept_remarks: str | None = None
    final_decided_by: int | None = None
    final_decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    final_remarks: str | None = None
    decided_by: int | None = None
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    remarks: str | None = None
