"""
Webhook event log backed by Redis.

Remembers gateway event ids that were fully applied so redeliveries can be
acknowledged without touching the database. The payment ledger stays the
authoritative idempotency gate: when Redis is unavailable every check
answers "not processed" and the event goes through the normal path.
"""

import logging

from profast.app.core.config import settings

logger = logging.getLogger("profast.webhooks")

# Redis key prefix for applied webhook events
PROCESSED_EVENT_PREFIX = "webhook:processed:"


class WebhookEventLog:
    """Fail-open record of applied gateway events."""

    def __init__(self, redis_client, ttl_seconds: int = None):
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds or settings.webhook_event_ttl_seconds

    async def is_processed(self, event_id: str) -> bool:
        try:
            exists = await self.redis_client.exists(f"{PROCESSED_EVENT_PREFIX}{event_id}")
            return exists > 0
        except Exception as e:
            logger.warning("Webhook dedup check failed", extra={"event_id": event_id, "error": str(e)})
            return False

    async def mark_processed(self, event_id: str) -> bool:
        try:
            await self.redis_client.set(f"{PROCESSED_EVENT_PREFIX}{event_id}", "1", ex=self.ttl_seconds)
            return True
        except Exception as e:
            logger.warning("Webhook dedup mark failed", extra={"event_id": event_id, "error": str(e)})
            return False
