"""
Dead Letter Queue (DLQ) Model.

Stores side effects that failed after their primary write had committed,
so an admin reconciliation pass can retry them.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum
from profast.app.db.session import Base, utcnow
import enum


class DLQStatus(str, enum.Enum):
    FAILED = "FAILED"
    RETRYING = "RETRYING"
    PROCESSED = "PROCESSED"
    ARCHIVED = "ARCHIVED"  # Gave up


class DLQTask:
    """Task names understood by the reconciliation pass."""
    PROVISION_RIDER_USER = "provision_rider_user"
    RECONCILE_PAYMENT_EVENT = "reconcile_payment_event"


class DeadLetterQueue(Base):
    """
    Dead Letter Queue table.
    Captures failed side effects.
    """
    __tablename__ = "dead_letter_queue"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    task_name = Column(String(100), nullable=False, index=True)
    error_message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)  # Task arguments

    status = Column(Enum(DLQStatus), default=DLQStatus.FAILED, nullable=False, index=True)
    retry_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<DLQ(id={self.id}, task='{self.task_name}', status='{self.status}')>"
