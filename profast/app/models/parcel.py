"""
Parcel database model.

A parcel carries two independent state axes (logistics status and payment
status) plus an optional rider assignment snapshot.
"""

import uuid

from sqlalchemy import Column, String, Float, DateTime, Enum, JSON, Text
from profast.app.db.session import Base, utcnow
from profast.app.models.parcel_enums import ParcelStatus, PaymentStatus, enum_values


def new_id() -> str:
    """Opaque identifier for stored documents."""
    return uuid.uuid4().hex


class Parcel(Base):
    """
    Parcel model for the delivery marketplace.

    `assigned_rider` is null until a rider assignment succeeds; the
    assignment update is conditional on it still being null.
    """
    __tablename__ = "parcels"

    id = Column(String(32), primary_key=True, default=new_id)
    tracking_number = Column(String(64), unique=True, nullable=False, index=True)

    # Ownership
    user_email = Column(String(255), nullable=False, index=True)

    # Shipment description
    title = Column(String(255), nullable=False)
    parcel_type = Column(String(50), nullable=True)
    weight = Column(Float, nullable=True)
    cost = Column(Float, nullable=False)

    sender_name = Column(String(255), nullable=False)
    sender_region = Column(String(100), nullable=False)
    sender_address = Column(String(500), nullable=True)
    sender_contact = Column(String(50), nullable=True)
    receiver_name = Column(String(255), nullable=False)
    receiver_region = Column(String(100), nullable=False)
    receiver_address = Column(String(500), nullable=True)
    receiver_contact = Column(String(50), nullable=True)

    # Logistics status
    status = Column(
        Enum(ParcelStatus, name="parcel_status", values_callable=enum_values),
        default=ParcelStatus.PENDING,
        nullable=False,
        index=True
    )
    last_update_note = Column(Text, nullable=True)

    # Payment axis (null payment_status means unset)
    payment_status = Column(
        Enum(PaymentStatus, name="parcel_payment_status", values_callable=enum_values),
        nullable=True,
        index=True
    )
    payment_intent_id = Column(String(255), nullable=True, index=True)
    payment_amount = Column(Float, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)

    # Rider assignment snapshot
    assigned_rider = Column(JSON(none_as_null=True), nullable=True)
    assigned_rider_email = Column(String(255), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking='{self.tracking_number}', status='{self.status.value}')>"
