"""
Centralized Test Configuration.
"""

import hashlib
import hmac
import json
import time

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from profast.app.main import app
from profast.app.core.config import settings
from profast.app.core.dependencies import get_payment_gateway
from profast.app.core.jwt import create_access_token
from profast.app.core.redis_client import get_redis
from profast.app.core.reliability import CircuitBreaker
from profast.app.db.session import get_db, Base, utcnow
from profast.app.models.enums import UserRole
from profast.app.models.user import User
from profast.app.services.payment_gateway import StripePaymentGateway
import profast.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_EMAIL = "admin@profast.test"
OWNER_EMAIL = "sender@profast.test"
OTHER_EMAIL = "stranger@profast.test"

PARCEL_PAYLOAD = {
    "title": "Birthday gift",
    "parcelType": "non-document",
    "weight": 2.5,
    "cost": 150,
    "senderName": "Sam Sender",
    "senderRegion": "Dhaka",
    "senderAddress": "12 Lake Road",
    "senderContact": "01700000000",
    "receiverName": "Rita Receiver",
    "receiverRegion": "Chattogram",
    "receiverAddress": "4 Hill Street",
    "receiverContact": "01800000000",
}


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            raise ConnectionError("Redis connection closed")
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


def auth_headers(email: str) -> dict:
    """Bearer header for a caller identified by email."""
    token = create_access_token({"sub": email, "email": email})
    return {"Authorization": f"Bearer {token}"}


def sign_payload(payload: str, secret: str = None, timestamp: int = None) -> str:
    """Stripe-Signature header value for a raw webhook body."""
    secret = secret or settings.stripe_webhook_secret
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def succeeded_event(parcel_id: str, event_id: str = "evt_test_1", intent_id: str = "pi_test_1",
                    amount_received: int = 15000) -> str:
    """Raw body of a payment_intent.succeeded event."""
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "amount": amount_received,
                "amount_received": amount_received,
                "created": 1760000000,
                "currency": "usd",
                "metadata": {"parcelId": parcel_id},
            }
        },
    })


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def gateway():
    """Real gateway adapter with its own breaker; Stripe API calls are patched per test."""
    breaker = CircuitBreaker("test_gateway", failure_threshold=2, reset_timeout=60)
    return StripePaymentGateway(api_key="sk_test_dummy", circuit_breaker=breaker)


@pytest.fixture(autouse=True)
def apply_overrides(session_factory, mock_redis, gateway):
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def admin_headers(db_session):
    """Seed an admin user and return its auth header."""
    now = utcnow()
    db_session.add(User(email=ADMIN_EMAIL, name="Admin", role=UserRole.ADMIN, created_at=now, updated_at=now))
    await db_session.commit()
    return auth_headers(ADMIN_EMAIL)


@pytest.fixture
def owner_headers():
    return auth_headers(OWNER_EMAIL)


@pytest.fixture
def other_headers():
    return auth_headers(OTHER_EMAIL)


@pytest.fixture
async def parcel(client, owner_headers):
    """A pending parcel owned by OWNER_EMAIL."""
    response = await client.post("/v1/parcels", json=PARCEL_PAYLOAD, headers=owner_headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def paid_parcel(client, owner_headers, parcel):
    """The parcel after a client-side payment confirmation."""
    response = await client.post(
        "/v1/payments",
        json={
            "parcelId": parcel["insertedId"],
            "paymentIntentId": "pi_client_1",
            "status": "paid",
            "amount": 150,
        },
        headers=owner_headers,
    )
    assert response.status_code == 200
    return parcel


@pytest.fixture
async def active_rider(client, admin_headers):
    """A rider application approved by the admin."""
    rider_headers = auth_headers("rider@profast.test")
    response = await client.post(
        "/v1/riders",
        json={"name": "Rafi Rider", "phone": "01900000000", "region": "Dhaka", "vehicleType": "bike"},
        headers=rider_headers,
    )
    assert response.status_code == 201
    rider = response.json()

    response = await client.patch(
        f"/v1/riders/{rider['id']}/status", json={"status": "active"}, headers=admin_headers
    )
    assert response.status_code == 200
    return response.json()["rider"]
