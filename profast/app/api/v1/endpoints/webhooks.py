"""
Payment gateway webhook receiver.

The raw request body is passed through unparsed; signature verification
needs the exact bytes the gateway signed.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request

from profast.app.core.config import settings
from profast.app.core.dependencies import get_parcel_engine
from profast.app.domain.parcels.lifecycle_engine import ParcelLifecycleEngine
from profast.app.schemas.payment import WebhookAck

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    Reconcile a signed gateway event.

    Returns 400 for a missing or invalid signature. Any verified event is
    acknowledged with 200, including duplicates and events that were
    dead-lettered.
    """
    raw_body = await request.body()
    result = await engine.reconcile_webhook_event(
        raw_body, stripe_signature, settings.stripe_webhook_secret
    )
    return WebhookAck(
        event_id=result.event_id,
        event_type=result.event_type,
        outcome=result.outcome,
        dead_letter_id=result.dead_letter_id,
    )
