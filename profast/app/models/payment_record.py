"""
Payment ledger model.

Append-only record of a reconciled payment event.
"""

from sqlalchemy import Column, String, Float, DateTime, Enum
from profast.app.db.session import Base, utcnow
from profast.app.models.parcel import new_id
from profast.app.models.parcel_enums import PaymentStatus, PaymentSource, enum_values


class PaymentRecord(Base):
    """
    Payment record model.

    Snapshots the parcel at payment time. One row per payment intent
    (unique payment_intent_id). NO updates or deletions allowed.
    """
    __tablename__ = "payment_records"

    id = Column(String(32), primary_key=True, default=new_id)

    # Parcel snapshot
    parcel_id = Column(String(32), nullable=False, index=True)
    tracking_number = Column(String(64), nullable=True)
    title = Column(String(255), nullable=True)
    sender_name = Column(String(255), nullable=True)
    sender_region = Column(String(100), nullable=True)
    receiver_name = Column(String(255), nullable=True)
    receiver_region = Column(String(100), nullable=True)

    # Payer
    user_email = Column(String(255), nullable=False, index=True)

    # Gateway details
    payment_intent_id = Column(String(255), unique=True, nullable=False, index=True)
    payment_amount = Column(Float, nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    payment_status = Column(
        Enum(PaymentStatus, name="ledger_payment_status", values_callable=enum_values),
        nullable=False
    )
    source = Column(
        Enum(PaymentSource, name="payment_source", values_callable=enum_values),
        nullable=False
    )

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<PaymentRecord(id={self.id}, intent='{self.payment_intent_id}', source='{self.source.value}')>"
