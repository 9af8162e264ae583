"""
FastAPI dependencies.

Builds the authenticated caller and the per-request domain services. Every
collaborator comes from a dependency so tests can swap it through
app.dependency_overrides.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from profast.app.core.jwt import CallerIdentity, identity_verifier
from profast.app.core.redis_client import get_redis
from profast.app.db.session import get_db
from profast.app.domain.parcels.lifecycle_engine import ParcelLifecycleEngine
from profast.app.domain.reconciliation import DeadLetterReconciler
from profast.app.domain.riders.activation import RiderActivationService
from profast.app.domain.users.accounts import UserAccountService
from profast.app.services.payment_gateway import payment_gateway
from profast.app.services.record_store import RecordStore
from profast.app.services.webhook_events import WebhookEventLog

# Missing credentials are reported by the verifier as 401, not by HTTPBearer as 403
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CallerIdentity:
    """
    FastAPI dependency for bearer-token authentication.

    Raises:
        UnauthorizedError: 401 if the token is missing or invalid
    """
    token = credentials.credentials if credentials else None
    return identity_verifier.verify(token)


async def get_record_store(db: AsyncSession = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_payment_gateway():
    return payment_gateway


async def get_webhook_event_log(redis=Depends(get_redis)) -> WebhookEventLog:
    return WebhookEventLog(redis)


async def get_parcel_engine(
    store: RecordStore = Depends(get_record_store),
    gateway=Depends(get_payment_gateway),
    event_log: WebhookEventLog = Depends(get_webhook_event_log),
) -> ParcelLifecycleEngine:
    return ParcelLifecycleEngine(store, gateway=gateway, event_log=event_log)


async def get_rider_service(store: RecordStore = Depends(get_record_store)) -> RiderActivationService:
    return RiderActivationService(store)


async def get_user_service(store: RecordStore = Depends(get_record_store)) -> UserAccountService:
    return UserAccountService(store)


async def get_dead_letter_reconciler(
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
    riders: RiderActivationService = Depends(get_rider_service),
) -> DeadLetterReconciler:
    return DeadLetterReconciler(store, engine, riders)
