"""
Payment schemas: client payment confirmation, ledger entries, intents and
webhook acknowledgments.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional
from profast.app.models.parcel_enums import PaymentStatus, PaymentSource
from profast.app.schemas.base import APIModel


class PaymentRecordCreate(APIModel):
    """Client-side payment confirmation."""
    parcel_id: str
    payment_intent_id: Optional[str] = None
    status: str = Field("paid", description="Payment status reported by the client")
    amount: float = Field(..., ge=0)
    date: Optional[datetime] = None
    email: Optional[str] = Field(None, description="Payer email (defaults to the caller)")


class PaymentRecordResponse(APIModel):
    """Ledger entry."""
    id: str
    parcel_id: str
    tracking_number: Optional[str] = None
    title: Optional[str] = None
    sender_name: Optional[str] = None
    sender_region: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_region: Optional[str] = None
    user_email: str
    payment_intent_id: str
    payment_amount: float
    payment_date: datetime
    payment_status: PaymentStatus
    source: PaymentSource
    created_at: datetime


class PaymentIntentRequest(APIModel):
    parcel_id: str


class PaymentIntentResponse(APIModel):
    client_secret: str
    payment_intent_id: str


class WebhookAck(APIModel):
    """Acknowledgment returned to the gateway once the signature is valid."""
    received: bool = True
    event_id: str
    event_type: str
    outcome: str
    dead_letter_id: Optional[int] = None
