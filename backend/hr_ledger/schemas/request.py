# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal, Self

from pydantic import BaseModel, Field, model_validator

from hr_ledger.models.enums import Direction, RequestStatus, ResourceType

# ---------------------------------------------------------------------------
# Submit payloads, discriminated by resource type
# ---------------------------------------------------------------------------


class OffsetRequestPayload(BaseModel):
    """Offset hours earned (credit) or used (debit)."""

    resource_type: Literal["OFFSET_HOURS"]
    employee_id: int
    direction: Direction
    hours: Decimal = Field(ge=Decimal("0.5"), le=Decimal("24"), max_digits=5, decimal_places=2)
    work_date: date
    reason: str | None = Field(default=None, max_length=1000)


class LeaveRequestPayload(BaseModel):
    """Sick or vacation leave drawn from a yearly bank."""

    resource_type: Literal["SICK_DAYS", "VACATION_DAYS"]
    employee_id: int
    start_date: date
    end_date: date
    accounting_period: int
    half_day: bool = False
    with_pay: bool = True
    reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        if self.half_day and self.end_date != self.start_date:
            msg = "a half-day leave must start and end on the same date"
            raise ValueError(msg)
        return self


class OvertimeRequestPayload(BaseModel):
    """Overtime claim; its amount comes from the rate calculator."""

    resource_type: Literal["OVERTIME_HOURS"]
    employee_id: int
    work_date: date
    start_time: time
    end_time: time
    ends_next_day: bool = False
    rate_multiplier: Decimal | None = Field(default=None, ge=Decimal("1"), le=Decimal("10"), decimal_places=3)
    reason: str | None = Field(default=None, max_length=1000)


# Told apart by the literal resource_type each variant accepts.
SubmitRequestPayload = OffsetRequestPayload | LeaveRequestPayload | OvertimeRequestPayload


class StatusUpdatePayload(BaseModel):
    """Request body for a workflow transition."""

    status: RequestStatus
    remarks: str | None = Field(default=None, max_length=1000)


class BulkStatusUpdatePayload(BaseModel):
    """Request body for applying one transition to many requests."""

    request_ids: list[uuid.UUID] = Field(min_length=1, max_length=500)
    status: RequestStatus
    remarks: str | None = Field(default=None, max_length=1000)


class RateUpdatePayload(BaseModel):
    """Request body for overriding the multiplier of a pending overtime."""

    rate_multiplier: Decimal = Field(ge=Decimal("1"), le=Decimal("10"), decimal_places=3)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    """Response schema for a single request."""

    id: uuid.UUID
    employee_id: int
    resource_type: ResourceType
    accounting_period: int | None
    amount: Decimal
    direction: Direction
    affects_balance: bool
    status: RequestStatus
    is_applied: bool
    force_approved: bool
    department: str | None
    start_date: date | None
    end_date: date | None
    reason: str | None
    details: dict[str, Any] | None
    requested_by: int
    submitted_at: datetime | None
    dept_decided_by: int | None
    dept_decided_at: datetime | None
    dept_remarks: str | None
    final_decided_by: int | None
    final_decided_at: datetime | None
    final_remarks: str | None
    decided_by: int | None
    decided_at: datetime | None
    remarks: str | None
    created_at: datetime
    warning: str | None = None


class RequestListResponse(BaseModel):
    """Paginated list of requests."""

    items: list[RequestResponse]
    total: int


class BulkItemError(BaseModel):
    """Why one request of a bulk update was skipped."""

    request_id: uuid.UUID
    error: str
    detail: str
    status_code: int
    context: dict[str, Any] | None = None


class BulkStatusResponse(BaseModel):
    """Aggregate result of a bulk status update."""

    status: RequestStatus
    succeeded: int
    failed: int
    succeeded_ids: list[uuid.UUID]
    errors: list[BulkItemError]
