"""
Parcel Pydantic schemas.

Defines request and response models for parcel management. Domain-required
fields are optional here so that the lifecycle engine reports missing input
with its own ValidationError.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional
from profast.app.models.parcel_enums import ParcelStatus, PaymentStatus
from profast.app.schemas.base import APIModel


class ParcelCreate(APIModel):
    """Schema for creating a new parcel."""
    title: Optional[str] = Field(None, max_length=255)
    parcel_type: Optional[str] = Field(None, max_length=50, description="document / non-document")
    weight: Optional[float] = Field(None, ge=0, description="Weight in kilograms")
    cost: Optional[float] = Field(None, ge=0, description="Delivery cost")
    tracking_number: Optional[str] = Field(None, max_length=64, description="Generated when omitted")
    user_email: Optional[str] = Field(None, description="Owner email (defaults to the caller)")

    sender_name: Optional[str] = None
    sender_region: Optional[str] = None
    sender_address: Optional[str] = None
    sender_contact: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_region: Optional[str] = None
    receiver_address: Optional[str] = None
    receiver_contact: Optional[str] = None


class ParcelCreated(APIModel):
    """Insert confirmation."""
    inserted_id: str
    tracking_number: str


class AssignedRider(APIModel):
    """Rider snapshot embedded in a parcel."""
    rider_id: str
    rider_name: str
    rider_email: str
    rider_phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    assigned_at: datetime


class ParcelResponse(APIModel):
    """Schema for parcel response."""
    id: str
    tracking_number: str
    user_email: str
    title: str
    parcel_type: Optional[str] = None
    weight: Optional[float] = None
    cost: float

    sender_name: str
    sender_region: str
    sender_address: Optional[str] = None
    sender_contact: Optional[str] = None
    receiver_name: str
    receiver_region: str
    receiver_address: Optional[str] = None
    receiver_contact: Optional[str] = None

    status: ParcelStatus
    last_update_note: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    payment_intent_id: Optional[str] = None
    payment_amount: Optional[float] = None
    payment_date: Optional[datetime] = None
    payment_confirmed_at: Optional[datetime] = None

    assigned_rider: Optional[AssignedRider] = None
    assigned_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime


class StatusUpdate(APIModel):
    """Schema for a parcel status change."""
    status: str = Field(..., description="One of the parcel statuses")
    note: Optional[str] = Field(None, max_length=1000)


class RiderAssignment(APIModel):
    """Schema for assigning a rider to a parcel."""
    rider_id: Optional[str] = None
    rider_name: Optional[str] = None
    rider_email: Optional[str] = None
    rider_phone: Optional[str] = None
    vehicle_type: Optional[str] = None


class RiderAssignmentResponse(APIModel):
    """Response after rider assignment."""
    parcel_id: str
    tracking_number: str
    status: ParcelStatus
    assigned_rider: AssignedRider
