# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter

from hr_ledger.api.deps import AuthDep, DirectoryDep
from hr_ledger.db import SessionDep
from hr_ledger.schemas.rate import RateBreakdownResponse, RateQuery
from hr_ledger.services import overtime as overtime_service

overtime_router = APIRouter(prefix="/overtime", tags=["overtime"])


@overtime_router.post("/rate", response_model=RateBreakdownResponse)
async def compute_overtime_rate(
    payload: RateQuery,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> RateBreakdownResponse:
    """Preview the multiplier and breakdown for an overtime shift."""
    return await overtime_service.preview_overtime_rate(session, directory, payload)
