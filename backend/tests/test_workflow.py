"""Tests for the approval state machine and its authorization gate."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from hr_ledger.exceptions import InvalidTransition, Unauthorized
from hr_ledger.models.enums import ApprovalLevel, AuditAction, Direction, RequestStatus, ResourceType, TransitionStage
from hr_ledger.models.request import RequestRecord
from hr_ledger.services.employee import EmployeeInfo
from hr_ledger.services.roles import RoleSnapshot
from hr_ledger.services.workflow import (
    Transition,
    allowed_targets,
    authorize,
    decision_levels,
    may_act_for,
    plan_transition,
    stamp_transition,
)

EMPLOYEE = RoleSnapshot(actor_id=7, employee_id=7)
ENGINEERING_MANAGER = RoleSnapshot(actor_id=100, managed_departments=frozenset({"Engineering"}))
SALES_MANAGER = RoleSnapshot(actor_id=101, managed_departments=frozenset({"Sales"}))
HRD = RoleSnapshot(actor_id=200, is_hrd_manager=True)
SUPER_ADMIN = RoleSnapshot(actor_id=300, is_super_admin=True)
NOW = datetime(2025, 6, 1, 9, 0, tzinfo=UTC)


def _record(resource_type: ResourceType = ResourceType.OFFSET_HOURS, status: RequestStatus = RequestStatus.PENDING) -> RequestRecord:
    return RequestRecord(
        employee_id=7,
        resource_type=resource_type.value,
        amount=Decimal("8"),
        direction=Direction.DEBIT.value,
        status=status.value,
        department="Engineering",
        dept_approver_id=None,
        requested_by=7,
    )


def _plan(resource_type: ResourceType, current: RequestStatus, target: RequestStatus) -> Transition:
    transition = plan_transition(resource_type, current, target)
    assert isinstance(transition, Transition)
    return transition


# ---------------------------------------------------------------------------
# Transition tables
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("resource_type", [ResourceType.OFFSET_HOURS, ResourceType.SICK_DAYS, ResourceType.VACATION_DAYS])
def test_two_stage_approve(resource_type: ResourceType) -> None:
    transition = _plan(resource_type, RequestStatus.PENDING, RequestStatus.APPROVED)
    assert transition.stage is TransitionStage.FINAL
    assert transition.level is ApprovalLevel.DEPARTMENT_OR_HRD
    assert transition.enters_approved


def test_two_stage_revert_leaves_approved() -> None:
    for target in (RequestStatus.PENDING, RequestStatus.REJECTED):
        transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.APPROVED, target)
        assert transition.stage is TransitionStage.REVERT
        assert transition.level is ApprovalLevel.HRD
        assert transition.leaves_approved


def test_approving_a_rejected_record_is_invalid() -> None:
    result = plan_transition(ResourceType.OFFSET_HOURS, RequestStatus.REJECTED, RequestStatus.APPROVED)
    assert isinstance(result, InvalidTransition)
    assert result.context == {
        "current_status": "REJECTED",
        "target_status": "APPROVED",
        "resource_type": "OFFSET_HOURS",
    }


def test_two_stage_has_no_manager_stage() -> None:
    result = plan_transition(ResourceType.SICK_DAYS, RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)
    assert isinstance(result, InvalidTransition)


def test_overtime_requires_department_stage_first() -> None:
    result = plan_transition(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.APPROVED)
    assert isinstance(result, InvalidTransition)

    first = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)
    assert first.level is ApprovalLevel.DEPARTMENT
    second = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED, RequestStatus.APPROVED)
    assert second.level is ApprovalLevel.HRD


def test_force_approval_is_stored_as_approved() -> None:
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED, RequestStatus.FORCE_APPROVED)
    assert transition.target is RequestStatus.APPROVED
    assert transition.level is ApprovalLevel.SUPER_ADMIN
    assert transition.action is AuditAction.FORCE_APPROVE


def test_force_approval_of_approved_record_is_invalid() -> None:
    result = plan_transition(ResourceType.OFFSET_HOURS, RequestStatus.APPROVED, RequestStatus.FORCE_APPROVED)
    assert isinstance(result, InvalidTransition)


def test_same_state_update_is_remarks_only() -> None:
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.APPROVED, RequestStatus.APPROVED)
    assert transition.is_same_state
    assert not transition.enters_approved
    assert not transition.leaves_approved


def test_allowed_targets_for_pending_overtime() -> None:
    targets = allowed_targets(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING)
    assert set(targets) == {RequestStatus.MANAGER_APPROVED, RequestStatus.REJECTED, RequestStatus.FORCE_APPROVED}


# ---------------------------------------------------------------------------
# Authorization gate
# ---------------------------------------------------------------------------


def test_department_manager_may_approve_own_department() -> None:
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.PENDING, RequestStatus.APPROVED)
    assert authorize(ENGINEERING_MANAGER, _record(), transition) is None


def test_other_department_manager_is_unauthorized() -> None:
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.PENDING, RequestStatus.APPROVED)
    error = authorize(SALES_MANAGER, _record(), transition)
    assert isinstance(error, Unauthorized)
    assert error.required_role == ApprovalLevel.DEPARTMENT_OR_HRD
    assert error.current_status == "PENDING"


def test_employee_cannot_approve_own_request() -> None:
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.PENDING, RequestStatus.APPROVED)
    assert isinstance(authorize(EMPLOYEE, _record(), transition), Unauthorized)


def test_designated_approver_is_a_department_approver() -> None:
    record = _record(ResourceType.OVERTIME_HOURS)
    record.dept_approver_id = 55
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)
    assert authorize(RoleSnapshot(actor_id=55), record, transition) is None


def test_hrd_cannot_take_the_department_stage() -> None:
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)
    assert isinstance(authorize(HRD, _record(ResourceType.OVERTIME_HOURS), transition), Unauthorized)


def test_department_manager_cannot_take_the_final_overtime_stage() -> None:
    record = _record(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED)
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED, RequestStatus.APPROVED)
    assert isinstance(authorize(ENGINEERING_MANAGER, record, transition), Unauthorized)
    assert authorize(HRD, record, transition) is None


def test_revert_requires_hrd() -> None:
    record = _record(status=RequestStatus.APPROVED)
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.APPROVED, RequestStatus.PENDING)
    assert isinstance(authorize(ENGINEERING_MANAGER, record, transition), Unauthorized)
    assert authorize(HRD, record, transition) is None


def test_only_super_admin_may_force_approve() -> None:
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.PENDING, RequestStatus.FORCE_APPROVED)
    assert isinstance(authorize(HRD, _record(), transition), Unauthorized)
    assert authorize(SUPER_ADMIN, _record(), transition) is None


def test_super_admin_may_take_any_stage() -> None:
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)
    assert authorize(SUPER_ADMIN, _record(ResourceType.OVERTIME_HOURS), transition) is None


# ---------------------------------------------------------------------------
# Decision levels and employee scope
# ---------------------------------------------------------------------------


def test_decision_levels_per_stage() -> None:
    assert decision_levels(ResourceType.SICK_DAYS, RequestStatus.PENDING) == {ApprovalLevel.DEPARTMENT_OR_HRD}
    assert decision_levels(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING) == {ApprovalLevel.DEPARTMENT}
    assert decision_levels(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED) == {ApprovalLevel.HRD}
    assert decision_levels(ResourceType.OFFSET_HOURS, RequestStatus.MANAGER_APPROVED) == set()
    assert decision_levels(ResourceType.OVERTIME_HOURS, RequestStatus.REJECTED) == set()


def test_may_act_for_employee() -> None:
    engineer = EmployeeInfo(id=8, department="Engineering", department_manager_id=100)

    assert may_act_for(RoleSnapshot(actor_id=8, employee_id=8), 8, engineer)
    assert may_act_for(ENGINEERING_MANAGER, 8, engineer)
    assert may_act_for(RoleSnapshot(actor_id=100), 8, engineer)
    assert may_act_for(HRD, 8, None)
    assert may_act_for(SUPER_ADMIN, 8, engineer)
    assert not may_act_for(EMPLOYEE, 8, engineer)
    assert not may_act_for(SALES_MANAGER, 8, engineer)
    assert not may_act_for(ENGINEERING_MANAGER, 8, None)


# ---------------------------------------------------------------------------
# Provenance
# ---------------------------------------------------------------------------


def test_department_stage_stamps_department_fields() -> None:
    record = _record(ResourceType.OVERTIME_HOURS)
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED)
    stamp_transition(record, transition, 100, "ok", NOW)

    assert record.status == RequestStatus.MANAGER_APPROVED
    assert record.dept_decided_by == 100
    assert record.dept_remarks == "ok"
    assert record.final_decided_by is None


def test_force_approval_backfills_department_stage() -> None:
    record = _record(ResourceType.OVERTIME_HOURS)
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.PENDING, RequestStatus.FORCE_APPROVED)
    stamp_transition(record, transition, 300, "urgent payroll", NOW)

    assert record.status == RequestStatus.APPROVED
    assert record.force_approved
    assert record.dept_decided_by == 300
    assert record.dept_remarks == "Administrative override: urgent payroll"
    assert record.final_decided_by == 300
    assert record.remarks == "Force approved by admin: urgent payroll"


def test_force_approval_keeps_existing_department_decision() -> None:
    record = _record(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED)
    record.dept_decided_by = 100
    record.dept_remarks = "fine by me"
    transition = _plan(ResourceType.OVERTIME_HOURS, RequestStatus.MANAGER_APPROVED, RequestStatus.FORCE_APPROVED)
    stamp_transition(record, transition, 300, None, NOW)

    assert record.dept_decided_by == 100
    assert record.dept_remarks == "fine by me"
    assert record.remarks == "Force approved by admin"


def test_revert_to_pending_clears_final_decision() -> None:
    record = _record(status=RequestStatus.APPROVED)
    record.final_decided_by = 100
    record.force_approved = True
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.APPROVED, RequestStatus.PENDING)
    stamp_transition(record, transition, 200, "wrong dates", NOW)

    assert record.status == RequestStatus.PENDING
    assert record.final_decided_by is None
    assert not record.force_approved
    assert record.decided_by == 200
    assert record.remarks == "wrong dates"


def test_same_state_stamp_changes_only_remarks() -> None:
    record = _record(status=RequestStatus.APPROVED)
    transition = _plan(ResourceType.OFFSET_HOURS, RequestStatus.APPROVED, RequestStatus.APPROVED)
    stamp_transition(record, transition, 100, "note", NOW)

    assert record.status == RequestStatus.APPROVED
    assert record.remarks == "note"
    assert record.decided_by is None
