# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Body, Query, status

from hr_ledger.api.deps import AuthDep, DirectoryDep
from hr_ledger.db import SessionDep
from hr_ledger.models.enums import RequestStatus, ResourceType
from hr_ledger.schemas.request import (
    BulkStatusResponse,
    BulkStatusUpdatePayload,
    RateUpdatePayload,
    RequestListResponse,
    RequestResponse,
    StatusUpdatePayload,
    SubmitRequestPayload,
)
from hr_ledger.services import bulk as bulk_service
from hr_ledger.services import request as request_service

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: Annotated[SubmitRequestPayload, Body()],
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> RequestResponse:
    """Submit an offset, leave or overtime request."""
    return await request_service.submit_request(session, auth, payload, directory)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    resource_type: ResourceType | None = Query(default=None),
    employee_id: int | None = Query(default=None),
    department: str | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List the requests visible to the actor, with optional filters."""
    return await request_service.list_requests(
        session,
        auth,
        employee_id=employee_id,
        resource_type=resource_type,
        status=status_filter,
        department=department,
        offset=offset,
        limit=limit,
    )


@requests_router.get("/pending", response_model=RequestListResponse)
async def pending_for_approver(
    session: SessionDep,
    auth: AuthDep,
    limit: int = Query(default=100, ge=1, le=500),
) -> RequestListResponse:
    """Open requests the acting user can decide on."""
    return await request_service.pending_for_approver(session, auth, limit)


@requests_router.post("/bulk-status", response_model=BulkStatusResponse)
async def bulk_update_status(
    payload: BulkStatusUpdatePayload,
    session: SessionDep,
    auth: AuthDep,
) -> BulkStatusResponse:
    """Apply one transition to many requests, reporting failures per item."""
    result = await bulk_service.bulk_update_status(session, auth, payload)
    return result.to_response()


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Get a single request."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.post("/{request_id}/status", response_model=RequestResponse)
async def update_status(
    request_id: uuid.UUID,
    payload: StatusUpdatePayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Move a request to another workflow status."""
    return await request_service.update_status(session, auth, request_id, payload)


@requests_router.patch("/{request_id}/rate", response_model=RequestResponse)
async def update_overtime_rate(
    request_id: uuid.UUID,
    payload: RateUpdatePayload,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> RequestResponse:
    """Override the multiplier of a pending overtime request."""
    return await request_service.update_overtime_rate(session, auth, request_id, payload, directory)


@requests_router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> None:
    """Delete a pending request."""
    await request_service.delete_request(session, auth, request_id)
