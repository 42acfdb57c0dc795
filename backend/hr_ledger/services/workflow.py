"""Approval state machine and authorization gate.

Nothing in here touches the database. ``plan_transition`` and ``authorize``
return their errors as values so a caller can record them per item
instead of unwinding a transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from hr_ledger.exceptions import InvalidTransition, Unauthorized
from hr_ledger.models.enums import (
    ApprovalLevel,
    AuditAction,
    RequestStatus,
    ResourceType,
    TransitionStage,
)

if TYPE_CHECKING:
    from datetime import datetime

    from hr_ledger.models.request import RequestRecord
    from hr_ledger.services.employee import EmployeeInfo
    from hr_ledger.services.roles import RoleSnapshot

FORCE_APPROVAL_NOTE = "Force approved by admin"

_Rule = tuple[TransitionStage, ApprovalLevel, AuditAction]

# Offset and leave: one approval decides.
_TWO_STAGE: dict[tuple[RequestStatus, RequestStatus], _Rule] = {
    (RequestStatus.PENDING, RequestStatus.APPROVED): (
        TransitionStage.FINAL,
        ApprovalLevel.DEPARTMENT_OR_HRD,
        AuditAction.APPROVE,
    ),
    (RequestStatus.PENDING, RequestStatus.REJECTED): (
        TransitionStage.FINAL,
        ApprovalLevel.DEPARTMENT_OR_HRD,
        AuditAction.REJECT,
    ),
    (RequestStatus.APPROVED, RequestStatus.PENDING): (
        TransitionStage.REVERT,
        ApprovalLevel.HRD,
        AuditAction.REVERT,
    ),
    (RequestStatus.APPROVED, RequestStatus.REJECTED): (
        TransitionStage.REVERT,
        ApprovalLevel.HRD,
        AuditAction.REVERT,
    ),
    (RequestStatus.PENDING, RequestStatus.FORCE_APPROVED): (
        TransitionStage.FORCE,
        ApprovalLevel.SUPER_ADMIN,
        AuditAction.FORCE_APPROVE,
    ),
}

# Overtime: department first, then HRD.
_THREE_STAGE: dict[tuple[RequestStatus, RequestStatus], _Rule] = {
    (RequestStatus.PENDING, RequestStatus.MANAGER_APPROVED): (
        TransitionStage.DEPARTMENT,
        ApprovalLevel.DEPARTMENT,
        AuditAction.MANAGER_APPROVE,
    ),
    (RequestStatus.PENDING, RequestStatus.REJECTED): (
        TransitionStage.DEPARTMENT,
        ApprovalLevel.DEPARTMENT,
        AuditAction.REJECT,
    ),
    (RequestStatus.MANAGER_APPROVED, RequestStatus.APPROVED): (
        TransitionStage.FINAL,
        ApprovalLevel.HRD,
        AuditAction.APPROVE,
    ),
    (RequestStatus.MANAGER_APPROVED, RequestStatus.REJECTED): (
        TransitionStage.FINAL,
        ApprovalLevel.HRD,
        AuditAction.REJECT,
    ),
    (RequestStatus.PENDING, RequestStatus.FORCE_APPROVED): (
        TransitionStage.FORCE,
        ApprovalLevel.SUPER_ADMIN,
        AuditAction.FORCE_APPROVE,
    ),
    (RequestStatus.MANAGER_APPROVED, RequestStatus.FORCE_APPROVED): (
        TransitionStage.FORCE,
        ApprovalLevel.SUPER_ADMIN,
        AuditAction.FORCE_APPROVE,
    ),
}


@dataclass(frozen=True)
class Transition:
    """A validated move between two stored statuses.

    ``stage`` is None for a same-state update, which only edits remarks.
    """

    resource_type: ResourceType
    current: RequestStatus
    requested: RequestStatus
    stage: TransitionStage | None
    level: ApprovalLevel
    action: AuditAction

    @property
    def target(self) -> RequestStatus:
        """The status actually stored; FORCE_APPROVED is kept as APPROVED."""
        if self.requested is RequestStatus.FORCE_APPROVED:
            return RequestStatus.APPROVED
        return self.requested

    @property
    def is_same_state(self) -> bool:
        return self.stage is None

    @property
    def enters_approved(self) -> bool:
        return self.current is not RequestStatus.APPROVED and self.target is RequestStatus.APPROVED

    @property
    def leaves_approved(self) -> bool:
        return self.current is RequestStatus.APPROVED and self.target is not RequestStatus.APPROVED


def is_three_stage(resource_type: ResourceType) -> bool:
    return resource_type is ResourceType.OVERTIME_HOURS


def transition_table(resource_type: ResourceType) -> dict[tuple[RequestStatus, RequestStatus], _Rule]:
    return _THREE_STAGE if is_three_stage(resource_type) else _TWO_STAGE


def allowed_targets(resource_type: ResourceType, current: RequestStatus) -> list[RequestStatus]:
    """Statuses reachable from ``current`` in one step."""
    return [target for (source, target) in transition_table(resource_type) if source is current]


def decision_levels(resource_type: ResourceType, current: RequestStatus) -> set[ApprovalLevel]:
    """Authority levels that may move a request out of ``current``, force approval aside."""
    return {
        level
        for (source, _), (stage, level, _) in transition_table(resource_type).items()
        if source is current and stage is not TransitionStage.FORCE
    }


def plan_transition(
    resource_type: ResourceType,
    current: RequestStatus,
    requested: RequestStatus,
) -> Transition | InvalidTransition:
    """Validate ``current -> requested`` for the resource's approval chain."""
    if requested is current and requested is not RequestStatus.FORCE_APPROVED:
        return Transition(
            resource_type=resource_type,
            current=current,
            requested=requested,
            stage=None,
            level=ApprovalLevel.DEPARTMENT_OR_HRD,
            action=AuditAction.UPDATE,
        )

    rule = transition_table(resource_type).get((current, requested))
    if rule is None:
        return InvalidTransition(current.value, requested.value, resource_type.value)

    stage, level, action = rule
    return Transition(
        resource_type=resource_type,
        current=current,
        requested=requested,
        stage=stage,
        level=level,
        action=action,
    )


def is_department_approver(roles: RoleSnapshot, record: RequestRecord) -> bool:
    """Manager of the record's department, or its designated approver."""
    if record.dept_approver_id is not None and record.dept_approver_id == roles.actor_id:
        return True
    return roles.manages(record.department)


def has_authority(roles: RoleSnapshot, level: ApprovalLevel, record: RequestRecord) -> bool:
    if roles.is_super_admin:
        return True
    if level is ApprovalLevel.SUPER_ADMIN:
        return False
    if level is ApprovalLevel.HRD:
        return roles.is_hrd_manager
    if level is ApprovalLevel.DEPARTMENT:
        return is_department_approver(roles, record)
    return roles.is_hrd_manager or is_department_approver(roles, record)


def may_act_for(roles: RoleSnapshot, employee_id: int, employee: EmployeeInfo | None) -> bool:
    """The employee themself, their department approver, HRD or super-admin."""
    if roles.is_hrd_manager or roles.is_super_admin or roles.employee_id == employee_id:
        return True
    if employee is None:
        return False
    if employee.department_manager_id is not None and employee.department_manager_id == roles.actor_id:
        return True
    return roles.manages(employee.department)


def authorize(roles: RoleSnapshot, record: RequestRecord, transition: Transition) -> Unauthorized | None:
    """Return ``Unauthorized`` if the actor may not perform ``transition``."""
    if has_authority(roles, transition.level, record):
        return None
    return Unauthorized(
        f"Actor {roles.actor_id} may not move this request from {transition.current} to {transition.requested}",
        required_role=transition.level.value,
        current_status=transition.current.value,
    )


def stamp_transition(
    record: RequestRecord,
    transition: Transition,
    actor_id: int,
    remarks: str | None,
    now: datetime,
) -> None:
    """Write the new status and its provenance onto the record."""
    if transition.is_same_state:
        record.remarks = remarks
        return

    record.status = transition.target.value
    record.decided_by = actor_id
    record.decided_at = now

    if transition.stage is TransitionStage.DEPARTMENT:
        record.dept_decided_by = actor_id
        record.dept_decided_at = now
        record.dept_remarks = remarks
        record.remarks = remarks
    elif transition.stage is TransitionStage.FINAL:
        record.final_decided_by = actor_id
        record.final_decided_at = now
        record.final_remarks = remarks
        record.remarks = remarks
    elif transition.stage is TransitionStage.REVERT:
        record.force_approved = False
        if transition.target is RequestStatus.PENDING:
            record.final_decided_by = None
            record.final_decided_at = None
            record.final_remarks = None
        else:
            record.final_decided_by = actor_id
            record.final_decided_at = now
            record.final_remarks = remarks
        record.remarks = remarks
    elif transition.stage is TransitionStage.FORCE:
        note = f"{FORCE_APPROVAL_NOTE}: {remarks}" if remarks else FORCE_APPROVAL_NOTE
        record.force_approved = True
        if is_three_stage(transition.resource_type) and record.dept_decided_by is None:
            record.dept_decided_by = actor_id
            record.dept_decided_at = now
            record.dept_remarks = f"Administrative override: {remarks or FORCE_APPROVAL_NOTE}"
        record.final_decided_by = actor_id
        record.final_decided_at = now
        record.final_remarks = note
        record.remarks = note
