"""
Payment API Endpoints.

Client-side payment confirmation, payment history and gateway payment
intents.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from profast.app.core.dependencies import get_current_identity, get_parcel_engine, get_record_store
from profast.app.core.guards import OwnershipGuard, is_admin
from profast.app.core.jwt import CallerIdentity
from profast.app.domain.parcels.lifecycle_engine import ParcelLifecycleEngine
from profast.app.schemas.base import ModifiedCountResponse
from profast.app.schemas.payment import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentRecordCreate,
    PaymentRecordResponse,
)
from profast.app.services.record_store import RecordStore

router = APIRouter(prefix="/payments", tags=["Payments"])
ownership_guard = OwnershipGuard()


@router.post("", response_model=ModifiedCountResponse)
async def record_payment(
    payment: PaymentRecordCreate,
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    Record a payment confirmed on the client.

    Writes one ledger entry per payment intent; replays only refresh the
    parcel's payment fields.
    """
    parcel = await engine.get_parcel(payment.parcel_id)
    await ownership_guard.enforce(parcel.user_email, identity, store, "parcel")

    # Only admins record payments on behalf of another payer
    payer_email = identity.email
    if payment.email and await is_admin(identity, store):
        payer_email = payment.email

    modified = await engine.record_payment(
        payment.parcel_id,
        payment_intent_id=payment.payment_intent_id,
        status=payment.status,
        amount=payment.amount,
        date=payment.date,
        payer_email=payer_email,
        actor_email=identity.email,
    )
    return ModifiedCountResponse(modified_count=modified)


@router.get("", response_model=List[PaymentRecordResponse])
async def list_payments(
    email: Optional[str] = Query(None, description="Payer email (defaults to the caller)"),
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """Payment history, most recent first. Admins may omit the email to list all."""
    if email:
        await ownership_guard.enforce(email, identity, store, "payment history")
    elif not await is_admin(identity, store):
        email = identity.email

    payments = await engine.list_payments(email)
    return [PaymentRecordResponse.model_validate(p) for p in payments]


@router.post("/create-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    Create a gateway payment intent for a parcel's cost.

    Returns 502 when the gateway is unavailable or its circuit is open.
    """
    parcel = await engine.get_parcel(request.parcel_id)
    await ownership_guard.enforce(parcel.user_email, identity, store, "parcel")

    intent = await engine.create_payment_intent(request.parcel_id)
    return PaymentIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.payment_intent_id,
    )
