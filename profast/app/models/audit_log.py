"""
Audit Log Database Model.

Tracks state-changing actions on parcels, payments, riders and users.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from profast.app.db.session import Base, utcnow


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - PARCEL_CREATED / PARCEL_STATUS_UPDATED / PARCEL_DELETED
    - PAYMENT_RECORDED / PAYMENT_CONFIRMED
    - RIDER_ASSIGNED
    - RIDER_STATUS_CHANGED / RIDER_DELETED
    - ROLE_CHANGED / USER_DELETED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for gateway/system actions)
    actor_email = Column(String(255), nullable=True, index=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What entity was acted upon
    target_id = Column(String(64), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, target={self.target_id})>"
