"""
Rider application model.
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum
from profast.app.db.session import Base, utcnow
from profast.app.models.enums import RiderStatus
from profast.app.models.parcel import new_id
from profast.app.models.parcel_enums import enum_values


class Rider(Base):
    """
    Rider onboarding application.

    Moves pending → active | rejected. Activation provisions a User with
    role rider for the same email.
    """
    __tablename__ = "riders"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    age = Column(Integer, nullable=True)
    region = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    national_id = Column(String(50), nullable=True)
    vehicle_type = Column(String(50), nullable=True)
    vehicle_number = Column(String(50), nullable=True)

    status = Column(
        Enum(RiderStatus, name="rider_status", values_callable=enum_values),
        default=RiderStatus.PENDING,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Rider(id={self.id}, email='{self.email}', status='{self.status.value}')>"
