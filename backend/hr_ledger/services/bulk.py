"""Applies one workflow transition to many requests.

Each item is its own unit of work inside a savepoint: it is committed
as soon as it succeeds, and a failure is rolled back to the savepoint and
recorded against the item without touching anything already committed. Items run one after another, so two items
drawing on the same account are serialized.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from hr_ledger.schemas.request import BulkItemError, BulkStatusResponse
from hr_ledger.services.request import apply_transition

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from hr_ledger.exceptions import AppError
    from hr_ledger.models.enums import RequestStatus
    from hr_ledger.schemas.auth import AuthContext
    from hr_ledger.schemas.request import BulkStatusUpdatePayload

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Tally of a bulk run."""

    target_status: RequestStatus
    succeeded_ids: list[uuid.UUID] = field(default_factory=list)
    errors: list[BulkItemError] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.succeeded_ids)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def record_failure(self, request_id: uuid.UUID, error: AppError) -> None:
        self.errors.append(
            BulkItemError(
                request_id=request_id,
                error=type(error).__name__,
                detail=error.message,
                status_code=error.status_code,
                context=error.context,
            )
        )

    def to_response(self) -> BulkStatusResponse:
        return BulkStatusResponse(
            status=self.target_status,
            succeeded=self.succeeded,
            failed=self.failed,
            succeeded_ids=list(self.succeeded_ids),
            errors=list(self.errors),
        )


async def bulk_update_status(
    session: AsyncSession,
    auth: AuthContext,
    payload: BulkStatusUpdatePayload,
) -> BatchResult:
    """Apply ``payload.status`` to every id in ``payload.request_ids``.

    Never raises for a single item. Duplicate ids are processed once.
    """
    result = BatchResult(target_status=payload.status)

    for request_id in dict.fromkeys(payload.request_ids):
        try:
            savepoint = await session.begin_nested()
            outcome = await apply_transition(session, auth, request_id, payload.status, payload.remarks)
            if outcome.error is not None:
                # Drops accounts opened while reconciling a refused item.
                await savepoint.rollback()
            else:
                await savepoint.commit()
        except SQLAlchemyError:
            logger.exception("Bulk update of request %s failed", request_id)
            await session.rollback()
            result.errors.append(
                BulkItemError(
                    request_id=request_id,
                    error="DatabaseError",
                    detail="Unexpected database error",
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
            )
            continue

        if outcome.error is not None:
            result.record_failure(request_id, outcome.error)
            continue

        await session.commit()
        result.succeeded_ids.append(request_id)

    logger.info(
        "Bulk %s by actor %s: %s succeeded, %s failed",
        payload.status,
        auth.actor_id,
        result.succeeded,
        result.failed,
    )
    return result
