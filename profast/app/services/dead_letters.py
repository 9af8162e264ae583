"""
Dead-letter recording.

Side effects that fail after their primary write committed are stored here
instead of being dropped, so the reconciliation pass can retry them.
"""

import logging
from typing import Any, Dict, Optional

from profast.app.models.dlq import DeadLetterQueue, DLQStatus
from profast.app.services.record_store import RecordStore

logger = logging.getLogger("profast.dlq")


async def record_dead_letter(
    store: RecordStore,
    task_name: str,
    error: Exception,
    payload: Optional[Dict[str, Any]] = None,
) -> Optional[int]:
    """
    Persist a failed side effect.

    The caller must have rolled back its own failed work first. Returns the
    dead-letter id, or None when the dead letter itself could not be written
    (the failure is then only in the logs).
    """
    try:
        item = await store.insert_dead_letter(
            DeadLetterQueue(
                task_name=task_name,
                error_message=f"{type(error).__name__}: {error}",
                payload=payload,
                status=DLQStatus.FAILED,
                retry_count=0,
            )
        )
        dlq_id = item.id
        await store.commit()
    except Exception:
        logger.exception("Could not write dead letter", extra={"task_name": task_name, "payload": payload})
        await store.rollback()
        return None

    logger.warning(
        "Side effect dead-lettered",
        extra={"task_name": task_name, "dlq_id": dlq_id, "error": str(error)}
    )
    return dlq_id
