"""
Rider application schemas.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional
from profast.app.models.enums import RiderStatus
from profast.app.schemas.base import APIModel


class RiderApply(APIModel):
    """Schema for a rider application."""
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, description="Applicant email (defaults to the caller)")
    phone: Optional[str] = Field(None, max_length=50)
    age: Optional[int] = Field(None, ge=16, le=100)
    region: Optional[str] = None
    district: Optional[str] = None
    national_id: Optional[str] = Field(None, max_length=50)
    vehicle_type: Optional[str] = Field(None, max_length=50)
    vehicle_number: Optional[str] = Field(None, max_length=50)


class RiderResponse(APIModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    age: Optional[int] = None
    region: Optional[str] = None
    district: Optional[str] = None
    national_id: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    status: RiderStatus
    created_at: datetime
    updated_at: datetime


class RiderStatusUpdate(APIModel):
    status: str = Field(..., description="pending, active or rejected")


class RiderStatusResponse(APIModel):
    """Rider status change with the outcome of user provisioning."""
    rider: RiderResponse
    user_provisioned: bool
    dead_letter_id: Optional[int] = None
