"""
Admin Operations API Endpoints.

Dead-letter inspection and reconciliation for side effects that failed after
their primary write committed.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query

from profast.app.core.dependencies import get_dead_letter_reconciler
from profast.app.core.guards import require_admin
from profast.app.core.jwt import CallerIdentity
from profast.app.domain.reconciliation import DeadLetterReconciler
from profast.app.models.dlq import DLQStatus
from profast.app.schemas.admin import DeadLetterResponse, RetryAllResponse, RetryResult

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.get("/dlq", response_model=List[DeadLetterResponse])
async def list_dead_letters(
    status: Optional[DLQStatus] = Query(None, description="Filter by DLQ status"),
    admin: CallerIdentity = Depends(require_admin),
    reconciler: DeadLetterReconciler = Depends(get_dead_letter_reconciler),
):
    items = await reconciler.list_dead_letters(status)
    return [DeadLetterResponse.model_validate(item) for item in items]


@router.post("/dlq/{dlq_id}/retry", response_model=RetryResult)
async def retry_dlq_item(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    admin: CallerIdentity = Depends(require_admin),
    reconciler: DeadLetterReconciler = Depends(get_dead_letter_reconciler),
):
    """
    Retry a failed task from the Dead Letter Queue.

    Returns 404 for an unknown item and 409 if it was already processed or
    archived. A failed retry is reported in the body, not as an error.
    """
    outcome = await reconciler.retry(dlq_id)
    return RetryResult(**outcome._asdict())


@router.post("/dlq/retry-all", response_model=RetryAllResponse)
async def retry_all_dlq_items(
    admin: CallerIdentity = Depends(require_admin),
    reconciler: DeadLetterReconciler = Depends(get_dead_letter_reconciler),
):
    """Retry every FAILED item, oldest first."""
    outcomes = await reconciler.retry_all()
    processed = sum(1 for o in outcomes if o.status == DLQStatus.PROCESSED)
    return RetryAllResponse(
        results=[RetryResult(**o._asdict()) for o in outcomes],
        processed=processed,
        failed=len(outcomes) - processed,
    )
