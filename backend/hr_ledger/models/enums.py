from __future__ import annotations

import enum


class ResourceType(enum.StrEnum):
    """Kind of resource a request consumes or grants."""

    OFFSET_HOURS = "OFFSET_HOURS"
    SICK_DAYS = "SICK_DAYS"
    VACATION_DAYS = "VACATION_DAYS"
    OVERTIME_HOURS = "OVERTIME_HOURS"

    @property
    def is_leave(self) -> bool:
        return self in (ResourceType.SICK_DAYS, ResourceType.VACATION_DAYS)

    @property
    def has_account(self) -> bool:
        """Whether approvals of this type post against a balance account."""
        return self is not ResourceType.OVERTIME_HOURS


class Direction(enum.StrEnum):
    """Direction of a ledger transaction."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class RequestStatus(enum.StrEnum):
    """State machine for requests.

    FORCE_APPROVED is only ever a target; it is stored as APPROVED.
    """

    PENDING = "PENDING"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FORCE_APPROVED = "FORCE_APPROVED"


class ApprovalLevel(enum.StrEnum):
    """Role required to perform a workflow transition."""

    DEPARTMENT = "DEPARTMENT"
    DEPARTMENT_OR_HRD = "DEPARTMENT_OR_HRD"
    HRD = "HRD"
    SUPER_ADMIN = "SUPER_ADMIN"


class TransitionStage(enum.StrEnum):
    """Which provenance fields a transition writes."""

    DEPARTMENT = "DEPARTMENT"
    FINAL = "FINAL"
    REVERT = "REVERT"
    FORCE = "FORCE"


class DayType(enum.StrEnum):
    """Calendar classification of a day for overtime rates."""

    ORDINARY = "ORDINARY"
    REST_DAY = "REST_DAY"
    SCHEDULED_REST_DAY = "SCHEDULED_REST_DAY"
    REGULAR_HOLIDAY = "REGULAR_HOLIDAY"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    ACCOUNT = "ACCOUNT"
    HOLIDAY = "HOLIDAY"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    MANAGER_APPROVE = "MANAGER_APPROVE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REVERT = "REVERT"
    FORCE_APPROVE = "FORCE_APPROVE"
    GRANT = "GRANT"
    RATE_EDIT = "RATE_EDIT"
