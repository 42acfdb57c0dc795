# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select, true
from sqlmodel import col

from hr_ledger.config import get_settings
from hr_ledger.exceptions import (
    Conflict,
    InsufficientBalance,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from hr_ledger.models.base import now_utc
from hr_ledger.models.enums import (
    ApprovalLevel,
    AuditAction,
    AuditEntityType,
    Direction,
    RequestStatus,
    ResourceType,
)
from hr_ledger.models.request import RequestRecord
from hr_ledger.schemas.request import (
    LeaveRequestPayload,
    OffsetRequestPayload,
    RequestListResponse,
    RequestResponse,
)
from hr_ledger.services.audit import model_to_audit_dict, write_audit_log
from hr_ledger.services.balance import get_account
from hr_ledger.services.overtime import rate_interval, rate_shift
from hr_ledger.services.reconciler import reconcile
from hr_ledger.services.workflow import (
    authorize,
    decision_levels,
    is_department_approver,
    may_act_for,
    plan_transition,
    stamp_transition,
)

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.exceptions import AppError, ConsistencyWarning
    from hr_ledger.schemas.auth import AuthContext
    from hr_ledger.schemas.request import (
        OvertimeRequestPayload,
        RateUpdatePayload,
        StatusUpdatePayload,
        SubmitRequestPayload,
    )
    from hr_ledger.services.calendar import WorkCalendar
    from hr_ledger.services.employee import EmployeeDirectory, EmployeeInfo

logger = logging.getLogger(__name__)

HALF_DAY = Decimal("0.5")

# How far from the current year a leave may be posted.
_PERIOD_YEARS_BACK = 5
_PERIOD_YEARS_AHEAD = 2

# Statuses still waiting on someone's decision.
_OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)


@dataclass
class TransitionOutcome:
    """Result of one validate -> authorize -> reconcile -> stamp pass.

    Exactly one of ``record`` being updated or ``error`` being set holds.
    Nothing is committed; the caller decides.
    """

    record: RequestRecord | None = None
    error: AppError | None = None
    warning: ConsistencyWarning | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(record: RequestRecord, warning: ConsistencyWarning | None = None) -> RequestResponse:
    """Map a request model to its response schema."""
    return RequestResponse(
        id=record.id,
        employee_id=record.employee_id,
        resource_type=ResourceType(record.resource_type),
        accounting_period=record.accounting_period,
        amount=record.amount,
        direction=Direction(record.direction),
        affects_balance=record.affects_balance,
        status=RequestStatus(record.status),
        is_applied=record.is_applied,
        force_approved=record.force_approved,
        department=record.department,
        start_date=record.start_date,
        end_date=record.end_date,
        reason=record.reason,
        details=record.details_json,
        requested_by=record.requested_by,
        submitted_at=record.submitted_at,
        dept_decided_by=record.dept_decided_by,
        dept_decided_at=record.dept_decided_at,
        dept_remarks=record.dept_remarks,
        final_decided_by=record.final_decided_by,
        final_decided_at=record.final_decided_at,
        final_remarks=record.final_remarks,
        decided_by=record.decided_by,
        decided_at=record.decided_at,
        remarks=record.remarks,
        created_at=record.created_at,
        warning=str(warning) if warning is not None else None,
    )


async def _find_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> RequestRecord | None:
    query = select(RequestRecord).where(col(RequestRecord.id) == request_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def _get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> RequestRecord:
    record = await _find_request(session, request_id, for_update=for_update)
    if record is None:
        raise NotFound("Request not found", context={"request_id": str(request_id)})
    return record


async def _resolve_employee(directory: EmployeeDirectory, employee_id: int) -> EmployeeInfo:
    employee = await directory.get_employee(employee_id)
    if employee is None:
        raise NotFound("Employee not found", context={"employee_id": employee_id})
    return employee


def _may_manage(auth: AuthContext, record: RequestRecord) -> bool:
    """Requester, department approver, HRD or super-admin."""
    if auth.is_hrd or record.requested_by == auth.actor_id:
        return True
    if auth.roles.employee_id is not None and auth.roles.employee_id == record.employee_id:
        return True
    return is_department_approver(auth.roles, record)


def _department_clause(auth: AuthContext) -> ColumnElement[bool]:
    return or_(
        col(RequestRecord.dept_approver_id) == auth.actor_id,
        col(RequestRecord.department).in_(sorted(auth.roles.managed_departments)),
    )


def _visibility_clause(auth: AuthContext) -> ColumnElement[bool] | None:
    """Query form of ``_may_manage``. None means every row is visible."""
    if auth.is_hrd:
        return None
    own = [col(RequestRecord.requested_by) == auth.actor_id]
    if auth.roles.employee_id is not None:
        own.append(col(RequestRecord.employee_id) == auth.roles.employee_id)
    return or_(*own, _department_clause(auth))


def _authority_clause(auth: AuthContext, level: ApprovalLevel) -> ColumnElement[bool] | None:
    """Query form of ``has_authority``. None means the actor never holds ``level``."""
    if auth.is_super_admin:
        return true()
    if level is ApprovalLevel.HRD:
        return true() if auth.roles.is_hrd_manager else None
    if level is ApprovalLevel.DEPARTMENT:
        return _department_clause(auth)
    if level is ApprovalLevel.DEPARTMENT_OR_HRD:
        return true() if auth.roles.is_hrd_manager else _department_clause(auth)
    return None


def _validate_accounting_period(accounting_period: int) -> None:
    current_year = date.today().year
    if not current_year - _PERIOD_YEARS_BACK <= accounting_period <= current_year + _PERIOD_YEARS_AHEAD:
        raise ValidationError(
            "Accounting period is out of range",
            context={
                "accounting_period": accounting_period,
                "min": current_year - _PERIOD_YEARS_BACK,
                "max": current_year + _PERIOD_YEARS_AHEAD,
            },
        )


def leave_amount(start_date: date, end_date: date, half_day: bool = False) -> Decimal:
    """Days drawn by a leave: the inclusive day count, or half a day."""
    if half_day:
        return HALF_DAY
    return Decimal((end_date - start_date).days + 1)


async def _check_leave_overlap(
    session: AsyncSession,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> None:
    """Raise 409 if a non-rejected leave of the employee overlaps the dates."""
    result = await session.execute(
        select(col(RequestRecord.id)).where(
            col(RequestRecord.employee_id) == employee_id,
            col(RequestRecord.resource_type).in_([ResourceType.SICK_DAYS.value, ResourceType.VACATION_DAYS.value]),
            col(RequestRecord.status) != RequestStatus.REJECTED.value,
            col(RequestRecord.start_date) <= end_date,
            col(RequestRecord.end_date) >= start_date,
        )
    )
    existing = result.first()
    if existing is not None:
        raise Conflict(
            "Leave overlaps with an existing request",
            context={"conflicting_request_id": str(existing[0])},
        )


async def _check_overtime_duplicate(session: AsyncSession, employee_id: int, work_date: date) -> None:
    """Raise 409 if the employee already filed overtime for the work date."""
    result = await session.execute(
        select(col(RequestRecord.id)).where(
            col(RequestRecord.employee_id) == employee_id,
            col(RequestRecord.resource_type) == ResourceType.OVERTIME_HOURS.value,
            col(RequestRecord.start_date) == work_date,
        )
    )
    existing = result.first()
    if existing is not None:
        raise Conflict(
            "Overtime already filed for this date",
            context={"conflicting_request_id": str(existing[0]), "work_date": work_date.isoformat()},
        )


def _offset_record(payload: OffsetRequestPayload, requested_by: int) -> RequestRecord:
    return RequestRecord(
        employee_id=payload.employee_id,
        resource_type=ResourceType.OFFSET_HOURS.value,
        accounting_period=None,
        amount=payload.hours,
        direction=payload.direction.value,
        start_date=payload.work_date,
        end_date=payload.work_date,
        reason=payload.reason,
        details_json={"work_date": payload.work_date.isoformat(), "hours": str(payload.hours)},
        requested_by=requested_by,
    )


async def _leave_record(session: AsyncSession, payload: LeaveRequestPayload, requested_by: int) -> RequestRecord:
    _validate_accounting_period(payload.accounting_period)
    await _check_leave_overlap(session, payload.employee_id, payload.start_date, payload.end_date)
    amount = leave_amount(payload.start_date, payload.end_date, payload.half_day)
    return RequestRecord(
        employee_id=payload.employee_id,
        resource_type=payload.resource_type,
        accounting_period=payload.accounting_period,
        amount=amount,
        direction=Direction.DEBIT.value,
        affects_balance=payload.with_pay,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
        details_json={"half_day": payload.half_day, "with_pay": payload.with_pay, "days": str(amount)},
        requested_by=requested_by,
    )


async def _overtime_record(
    session: AsyncSession,
    payload: OvertimeRequestPayload,
    employee: EmployeeInfo,
    calendar: WorkCalendar | None,
    requested_by: int,
) -> RequestRecord:
    await _check_overtime_duplicate(session, payload.employee_id, payload.work_date)
    breakdown = await rate_shift(
        session,
        payload.work_date,
        payload.start_time,
        payload.end_time,
        payload.ends_next_day,
        employee=employee,
        rate_multiplier=payload.rate_multiplier,
        calendar=calendar,
    )
    return RequestRecord(
        employee_id=payload.employee_id,
        resource_type=ResourceType.OVERTIME_HOURS.value,
        accounting_period=None,
        amount=breakdown.effective_units,
        direction=Direction.CREDIT.value,
        affects_balance=False,
        start_date=payload.work_date,
        end_date=breakdown.end_at.date(),
        reason=payload.reason,
        details_json=breakdown.to_json(),
        requested_by=requested_by,
    )


async def _check_balance_on_submit(session: AsyncSession, record: RequestRecord) -> None:
    """Reject a debit that already exceeds the remaining balance."""
    if not record.affects_balance or record.direction != Direction.DEBIT.value:
        return
    account = await get_account(
        session, record.employee_id, ResourceType(record.resource_type), record.accounting_period
    )
    if account.remaining < record.amount:
        raise InsufficientBalance(account.remaining, Decimal(record.amount))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitRequestPayload,
    directory: EmployeeDirectory,
    calendar: WorkCalendar | None = None,
) -> RequestResponse:
    """Create a PENDING request with no ledger effect.

    Flow:
    1. Resolve the employee and check the actor may file for them
    2. Build the variant record (leave overlap / overtime duplicate checks,
       overtime rating)
    3. Optional balance pre-check
    4. Snapshot department and approver onto the record
    5. Write audit log and commit
    """
    employee = await _resolve_employee(directory, payload.employee_id)
    if not may_act_for(auth.roles, employee.id, employee):
        raise Unauthorized(
            "Actor may not file requests for this employee",
            required_role=ApprovalLevel.DEPARTMENT_OR_HRD,
        )

    if isinstance(payload, OffsetRequestPayload):
        record = _offset_record(payload, auth.actor_id)
    elif isinstance(payload, LeaveRequestPayload):
        record = await _leave_record(session, payload, auth.actor_id)
    else:
        record = await _overtime_record(session, payload, employee, calendar, auth.actor_id)

    if record.amount <= 0:
        raise ValidationError("Request amount must be positive", context={"amount": str(record.amount)})

    if get_settings().enforce_balance_on_submit:
        await _check_balance_on_submit(session, record)

    record.department = employee.department
    record.dept_approver_id = employee.department_manager_id
    record.submitted_at = now_utc()
    session.add(record)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=record.id,
        action=AuditAction.SUBMIT,
        after_json=model_to_audit_dict(record),
    )

    await session.commit()
    await session.refresh(record)
    logger.info(
        "Request %s submitted: %s %s for employee %s",
        record.id,
        record.amount,
        record.resource_type,
        record.employee_id,
    )
    return _build_request_response(record)


async def apply_transition(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    target: RequestStatus,
    remarks: str | None = None,
) -> TransitionOutcome:
    """Run one status change without committing.

    Every check happens before the first mutation, so a returned error
    leaves the record and its account untouched.
    """
    record = await _find_request(session, request_id, for_update=True)
    if record is None:
        return TransitionOutcome(error=NotFound("Request not found", context={"request_id": str(request_id)}))

    current = RequestStatus(record.status)
    transition = plan_transition(ResourceType(record.resource_type), current, target)
    if isinstance(transition, InvalidTransition):
        return TransitionOutcome(record=record, error=transition)

    denied = authorize(auth.roles, record, transition)
    if denied is not None:
        logger.info("Actor %s denied %s on request %s", auth.actor_id, target, record.id)
        return TransitionOutcome(record=record, error=denied)

    before_dict = model_to_audit_dict(record)
    warning = None

    if not transition.is_same_state:
        result = await reconcile(session, record, current, transition.target, actor_id=auth.actor_id)
        if result.error is not None:
            return TransitionOutcome(record=record, error=result.error)
        warning = result.warning

    stamp_transition(record, transition, auth.actor_id, remarks, now_utc())
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=record.id,
        action=transition.action,
        before_json=before_dict,
        after_json=model_to_audit_dict(record),
    )

    if not transition.is_same_state:
        logger.info("Request %s moved %s -> %s by actor %s", record.id, current, transition.target, auth.actor_id)
    return TransitionOutcome(record=record, warning=warning)


async def update_status(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: StatusUpdatePayload,
) -> RequestResponse:
    """Move a request through its workflow, posting or reversing its ledger effect."""
    outcome = await apply_transition(session, auth, request_id, payload.status, payload.remarks)
    if outcome.error is not None:
        raise outcome.error
    record = outcome.record
    if record is None:
        raise NotFound("Request not found", context={"request_id": str(request_id)})

    await session.commit()
    await session.refresh(record)
    return _build_request_response(record, outcome.warning)


async def get_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> RequestResponse:
    """Fetch a single request the actor may see."""
    record = await _get_request_or_404(session, request_id)
    if not _may_manage(auth, record):
        raise Unauthorized(
            "Actor may not view this request",
            required_role=ApprovalLevel.DEPARTMENT_OR_HRD,
        )
    return _build_request_response(record)


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    *,
    employee_id: int | None = None,
    resource_type: ResourceType | None = None,
    status: RequestStatus | None = None,
    department: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """List requests with optional filters, newest first.

    Employees see their own requests, department approvers also see their
    departments', and HRD sees everything.
    """
    base_filter = []
    visible = _visibility_clause(auth)
    if visible is not None:
        base_filter.append(visible)
    if employee_id is not None:
        base_filter.append(col(RequestRecord.employee_id) == employee_id)
    if resource_type is not None:
        base_filter.append(col(RequestRecord.resource_type) == resource_type.value)
    if status is not None:
        base_filter.append(col(RequestRecord.status) == status.value)
    if department is not None:
        base_filter.append(col(RequestRecord.department) == department)

    count_result = await session.execute(select(func.count()).select_from(RequestRecord).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(RequestRecord)
        .where(*base_filter)
        .order_by(col(RequestRecord.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    records = list(result.scalars().all())

    return RequestListResponse(
        items=[_build_request_response(r) for r in records],
        total=total,
    )


async def delete_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> None:
    """Delete a request that has not been decided yet."""
    record = await _get_request_or_404(session, request_id, for_update=True)

    if record.status != RequestStatus.PENDING.value or record.is_applied:
        raise Conflict(
            "Only pending requests can be deleted",
            context={"current_status": record.status},
        )
    if not _may_manage(auth, record):
        raise Unauthorized(
            "Actor may not delete this request",
            required_role=ApprovalLevel.DEPARTMENT_OR_HRD,
            current_status=record.status,
        )

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=record.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(record),
    )

    await session.delete(record)
    await session.commit()


async def update_overtime_rate(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: RateUpdatePayload,
    directory: EmployeeDirectory,
    calendar: WorkCalendar | None = None,
) -> RequestResponse:
    """Override the multiplier of a pending overtime and recompute its amount."""
    record = await _get_request_or_404(session, request_id, for_update=True)

    if record.resource_type != ResourceType.OVERTIME_HOURS.value:
        raise ValidationError("Only overtime requests carry a rate", context={"resource_type": record.resource_type})
    if record.status != RequestStatus.PENDING.value:
        raise Conflict("Only pending overtime can be re-rated", context={"current_status": record.status})
    if not _may_manage(auth, record):
        raise Unauthorized(
            "Actor may not edit the rate of this request",
            required_role=ApprovalLevel.DEPARTMENT_OR_HRD,
            current_status=record.status,
        )

    details = dict(record.details_json or {})
    start_at = datetime.fromisoformat(details["start_at"])
    end_at = datetime.fromisoformat(details["end_at"])
    employee = await directory.get_employee(record.employee_id)

    breakdown = await rate_interval(
        session,
        start_at,
        end_at,
        employee=employee,
        rate_multiplier=payload.rate_multiplier,
        calendar=calendar,
    )
    before_dict = model_to_audit_dict(record)

    edited_at = now_utc()
    record.amount = breakdown.effective_units
    record.details_json = {
        **breakdown.to_json(),
        "rate_edited_by": auth.actor_id,
        "rate_edited_at": edited_at.isoformat(),
    }
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=record.id,
        action=AuditAction.RATE_EDIT,
        before_json=before_dict,
        after_json=model_to_audit_dict(record),
    )

    await session.commit()
    await session.refresh(record)
    return _build_request_response(record)


async def pending_for_approver(session: AsyncSession, auth: AuthContext, limit: int = 100) -> RequestListResponse:
    """Requests waiting on a decision the actor is allowed to make.

    Each open status is matched against the authority level its next step
    requires, so a department manager never sees overtime awaiting HRD and
    an HRD manager never sees overtime awaiting its department.
    """
    decidable = []
    for resource_type in ResourceType:
        for current in _OPEN_STATUSES:
            for level in decision_levels(resource_type, current):
                authority = _authority_clause(auth, level)
                if authority is None:
                    continue
                decidable.append(
                    and_(
                        col(RequestRecord.resource_type) == resource_type.value,
                        col(RequestRecord.status) == current.value,
                        authority,
                    )
                )
    if not decidable:
        return RequestListResponse(items=[], total=0)

    query = select(RequestRecord).where(or_(*decidable))
    result = await session.execute(query.order_by(col(RequestRecord.submitted_at)).limit(limit))
    records = list(result.scalars().all())
    return RequestListResponse(items=[_build_request_response(r) for r in records], total=len(records))
