"""
User schemas.
"""

from pydantic import Field
from datetime import datetime
from typing import Optional
from profast.app.models.enums import UserRole
from profast.app.schemas.base import APIModel


class UserSignIn(APIModel):
    """Profile details sent on sign-in; the email comes from the token."""
    name: Optional[str] = Field(None, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=500)


class UserResponse(APIModel):
    id: str
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
    role: UserRole
    phone: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    rider_id: Optional[str] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None
    updated_at: datetime


class SignInResponse(APIModel):
    inserted: bool
    user: UserResponse


class RoleUpdate(APIModel):
    role: str = Field(..., description="admin, user or rider")


class RoleResponse(APIModel):
    email: str
    role: UserRole
