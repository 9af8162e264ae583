"""
Dead-letter reconciliation pass.

Re-runs side effects that failed after their primary write committed.
Every handler is idempotent, so retrying an entry that partly succeeded is
safe.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional

from profast.app.core.config import settings
from profast.app.core.exceptions import ConflictError, NotFoundError, PreconditionError
from profast.app.db.session import utcnow
from profast.app.domain.parcels.lifecycle_engine import ParcelLifecycleEngine
from profast.app.domain.riders.activation import RiderActivationService
from profast.app.models.dlq import DeadLetterQueue, DLQStatus, DLQTask
from profast.app.models.enums import RiderStatus
from profast.app.services.payment_gateway import GatewayEvent
from profast.app.services.record_store import RecordStore

logger = logging.getLogger("profast.dlq")


class RetryOutcome(NamedTuple):
    id: int
    task_name: str
    status: DLQStatus
    error: Optional[str] = None


class DeadLetterReconciler:

    def __init__(
        self,
        store: RecordStore,
        engine: ParcelLifecycleEngine,
        riders: RiderActivationService,
        max_retries: Optional[int] = None,
    ):
        self.store = store
        self.engine = engine
        self.riders = riders
        self.max_retries = max_retries or settings.dlq_max_retries

    async def list_dead_letters(self, status: Optional[DLQStatus] = None) -> List[DeadLetterQueue]:
        return await self.store.list_dead_letters(status)

    async def retry(self, dlq_id: int) -> RetryOutcome:
        """
        Retry one dead letter.

        Success marks it PROCESSED. Failure keeps it FAILED with the new
        error, or ARCHIVED once max_retries attempts have been made.
        """
        item = await self.store.get_dead_letter(dlq_id)
        if not item:
            raise NotFoundError("Dead letter", dlq_id)
        if item.status in (DLQStatus.PROCESSED, DLQStatus.ARCHIVED):
            raise ConflictError(
                f"Dead letter is already {item.status.value}",
                details={"id": dlq_id, "status": item.status.value}
            )

        task_name = item.task_name
        payload = item.payload or {}
        attempts = item.retry_count + 1

        await self.store.update_dead_letter(
            dlq_id,
            {"status": DLQStatus.RETRYING, "retry_count": attempts, "last_retry_at": utcnow()},
        )
        await self.store.commit()

        try:
            await self._dispatch(task_name, payload)
        except Exception as e:
            logger.exception("Dead letter retry failed", extra={"dlq_id": dlq_id, "task_name": task_name})
            await self.store.rollback()
            status = DLQStatus.ARCHIVED if attempts >= self.max_retries else DLQStatus.FAILED
            error = f"{type(e).__name__}: {e}"
            await self.store.update_dead_letter(dlq_id, {"status": status, "error_message": error})
            await self.store.commit()
            return RetryOutcome(dlq_id, task_name, status, error)

        await self.store.update_dead_letter(dlq_id, {"status": DLQStatus.PROCESSED})
        await self.store.commit()
        logger.info("Dead letter processed", extra={"dlq_id": dlq_id, "task_name": task_name})
        return RetryOutcome(dlq_id, task_name, DLQStatus.PROCESSED)

    async def retry_all(self) -> List[RetryOutcome]:
        """Retry every FAILED entry, oldest first."""
        pending = [item.id for item in await self.store.list_dead_letters(DLQStatus.FAILED)]
        return [await self.retry(dlq_id) for dlq_id in pending]

    async def _dispatch(self, task_name: str, payload: Dict[str, Any]) -> None:
        if task_name == DLQTask.PROVISION_RIDER_USER:
            rider = await self.store.get_rider(payload.get("riderId"))
            if not rider:
                raise NotFoundError("Rider", payload.get("riderId"))
            if rider.status != RiderStatus.ACTIVE:
                # Deactivated since the failure; nothing left to provision
                return
            await self.riders.provision_rider_user(rider)
            await self.store.commit()
            return

        if task_name == DLQTask.RECONCILE_PAYMENT_EVENT:
            await self.engine.dispatch_event(GatewayEvent.from_payload(payload))
            return

        raise PreconditionError(f"No handler for task '{task_name}'")
