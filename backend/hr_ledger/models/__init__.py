from sqlmodel import SQLModel

from hr_ledger.models.audit import AuditLog
from hr_ledger.models.balance import PERPETUAL_PERIOD, BalanceAccount
from hr_ledger.models.base import TimestampMixin, UUIDBase
from hr_ledger.models.enums import (
    ApprovalLevel,
    AuditAction,
    AuditEntityType,
    DayType,
    Direction,
    RequestStatus,
    ResourceType,
    TransitionStage,
)
from hr_ledger.models.holiday import CompanyHoliday
from hr_ledger.models.request import RequestRecord

__all__ = [
    "PERPETUAL_PERIOD",
    "ApprovalLevel",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "BalanceAccount",
    "CompanyHoliday",
    "DayType",
    "Direction",
    "RequestRecord",
    "RequestStatus",
    "ResourceType",
    "SQLModel",
    "TimestampMixin",
    "TransitionStage",
    "UUIDBase",
]
