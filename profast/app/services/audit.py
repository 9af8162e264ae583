"""
Audit logging service for tracking state changes and admin actions.

Provides centralized logging for compliance and dispute resolution.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from profast.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    PARCEL_CREATED = "PARCEL_CREATED"
    PARCEL_STATUS_UPDATED = "PARCEL_STATUS_UPDATED"
    PARCEL_DELETED = "PARCEL_DELETED"

    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"

    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    RIDER_APPLIED = "RIDER_APPLIED"
    RIDER_STATUS_CHANGED = "RIDER_STATUS_CHANGED"
    RIDER_DELETED = "RIDER_DELETED"

    USER_CREATED = "USER_CREATED"
    ROLE_CHANGED = "ROLE_CHANGED"
    USER_DELETED = "USER_DELETED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_email: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Log an event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_email: Email of the caller performing the action (None for gateway events)
        target_id: ID of the entity acted upon
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_email=actor_email,
        action=action,
        target_id=target_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.commit()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        target_id: Filter by target entity ID
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditLog entries, newest first
    """
    query = select(AuditLog)

    if target_id:
        query = query.where(AuditLog.target_id == target_id)
    if action:
        query = query.where(AuditLog.action == action)

    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
