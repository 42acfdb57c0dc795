from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import extract, func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from hr_ledger.exceptions import Conflict, NotFound, Unauthorized
from hr_ledger.models.enums import ApprovalLevel, AuditAction, AuditEntityType
from hr_ledger.models.holiday import CompanyHoliday
from hr_ledger.schemas.holiday import HolidayListResponse, HolidayResponse
from hr_ledger.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.schemas.auth import AuthContext
    from hr_ledger.schemas.holiday import CreateHolidayRequest


def _build_holiday_response(holiday: CompanyHoliday) -> HolidayResponse:
    return HolidayResponse(
        id=holiday.id,
        date=holiday.date,
        name=holiday.name,
    )


def _require_hrd(auth: AuthContext) -> None:
    if not auth.is_hrd:
        raise Unauthorized("Only HRD may manage the holiday calendar", required_role=ApprovalLevel.HRD)


async def create_holiday(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateHolidayRequest,
) -> HolidayResponse:
    """Add a regular holiday to the calendar."""
    _require_hrd(auth)
    existing = await session.execute(select(CompanyHoliday).where(col(CompanyHoliday.date) == payload.date))
    if existing.scalar_one_or_none() is not None:
        raise Conflict("Holiday already exists for this date", context={"date": payload.date.isoformat()})

    holiday = CompanyHoliday(date=payload.date, name=payload.name)
    session.add(holiday)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Holiday already exists for this date", context={"date": payload.date.isoformat()}) from None

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(holiday),
    )

    await session.commit()
    await session.refresh(holiday)
    return _build_holiday_response(holiday)


async def list_holidays(
    session: AsyncSession,
    year: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> HolidayListResponse:
    """List holidays with optional year filter."""
    base_filter = []
    if year is not None:
        base_filter.append(extract("year", col(CompanyHoliday.date)) == year)

    count_result = await session.execute(select(func.count()).select_from(CompanyHoliday).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(CompanyHoliday).where(*base_filter).order_by(col(CompanyHoliday.date)).offset(offset).limit(limit)
    )
    holidays = list(result.scalars().all())

    return HolidayListResponse(
        items=[_build_holiday_response(h) for h in holidays],
        total=total,
    )


async def get_holiday(session: AsyncSession, holiday_id: uuid.UUID) -> CompanyHoliday:
    """Get a single holiday or raise 404."""
    holiday = await session.get(CompanyHoliday, holiday_id)
    if holiday is None:
        raise NotFound("Holiday not found", context={"holiday_id": str(holiday_id)})
    return holiday


async def delete_holiday(
    session: AsyncSession,
    auth: AuthContext,
    holiday_id: uuid.UUID,
) -> None:
    """Remove a holiday. Overtime already rated against it keeps its amount."""
    _require_hrd(auth)
    holiday = await get_holiday(session, holiday_id)

    await write_audit_log(
        session,
        actor_id=auth.actor_id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(holiday),
    )

    await session.delete(holiday)
    await session.commit()
