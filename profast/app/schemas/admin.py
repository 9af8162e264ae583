"""
Admin API Schema Definitions.

Pydantic schemas for dead-letter reconciliation endpoints.
"""

from datetime import datetime
from typing import Optional, List, Any, Dict
from profast.app.models.dlq import DLQStatus
from profast.app.schemas.base import APIModel


class DeadLetterResponse(APIModel):
    id: int
    task_name: str
    error_message: str
    payload: Optional[Dict[str, Any]] = None
    status: DLQStatus
    retry_count: int
    created_at: datetime
    last_retry_at: Optional[datetime] = None


class RetryResult(APIModel):
    id: int
    task_name: str
    status: DLQStatus
    error: Optional[str] = None


class RetryAllResponse(APIModel):
    results: List[RetryResult]
    processed: int
    failed: int
