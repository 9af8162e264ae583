"""
Integration tests for parcel creation, lookup, status updates and deletion.
"""

import re

import pytest

from conftest import PARCEL_PAYLOAD, OWNER_EMAIL
from profast.app.domain.parcels.lifecycle_engine import generate_tracking_number
from profast.app.services.audit import AuditAction, get_audit_trail


# TEST 1: Create Parcel
@pytest.mark.asyncio
async def test_create_parcel_success(client, owner_headers):
    """A signed-in user creates a pending parcel with a generated tracking number."""
    response = await client.post("/v1/parcels", json=PARCEL_PAYLOAD, headers=owner_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["insertedId"]
    assert re.fullmatch(r"PF\d{8}[0-9A-F]{6}", data["trackingNumber"])

    detail = await client.get(f"/v1/parcels/{data['insertedId']}", headers=owner_headers)
    assert detail.status_code == 200
    parcel = detail.json()
    assert parcel["status"] == "pending"
    assert parcel["paymentStatus"] is None
    assert parcel["assignedRider"] is None
    assert parcel["userEmail"] == OWNER_EMAIL
    assert parcel["cost"] == 150


@pytest.mark.asyncio
async def test_create_parcel_missing_fields(client, owner_headers):
    """Missing required fields are rejected with a validation error naming them."""
    payload = {key: value for key, value in PARCEL_PAYLOAD.items() if key not in ("title", "receiverRegion")}

    response = await client.post("/v1/parcels", json=payload, headers=owner_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_001"
    assert set(body["details"]["missing"]) == {"title", "receiverRegion"}


@pytest.mark.asyncio
async def test_create_parcel_duplicate_tracking_number(client, owner_headers):
    payload = dict(PARCEL_PAYLOAD, trackingNumber="PF20260101ABCDEF")

    first = await client.post("/v1/parcels", json=payload, headers=owner_headers)
    second = await client.post("/v1/parcels", json=payload, headers=owner_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error_code"] == "ERR_CONFLICT"


@pytest.mark.asyncio
async def test_create_parcel_for_another_user_requires_admin(client, owner_headers, admin_headers):
    payload = dict(PARCEL_PAYLOAD, userEmail="someone.else@profast.test")

    denied = await client.post("/v1/parcels", json=payload, headers=owner_headers)
    allowed = await client.post("/v1/parcels", json=payload, headers=admin_headers)

    assert denied.status_code == 403
    assert allowed.status_code == 201


def test_tracking_numbers_are_unique():
    numbers = {generate_tracking_number() for _ in range(200)}
    assert len(numbers) == 200


# TEST 2: Lookup
@pytest.mark.asyncio
async def test_track_parcel_is_public(client, parcel):
    response = await client.get(f"/v1/parcels/track/{parcel['trackingNumber']}")

    assert response.status_code == 200
    assert response.json()["id"] == parcel["insertedId"]


@pytest.mark.asyncio
async def test_track_unknown_parcel(client):
    response = await client.get("/v1/parcels/track/PF00000000000000")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_parcels_newest_first(client, owner_headers):
    first = await client.post("/v1/parcels", json=dict(PARCEL_PAYLOAD, title="First"), headers=owner_headers)
    second = await client.post("/v1/parcels", json=dict(PARCEL_PAYLOAD, title="Second"), headers=owner_headers)
    assert first.status_code == second.status_code == 201

    response = await client.get("/v1/parcels", params={"email": OWNER_EMAIL}, headers=owner_headers)

    assert response.status_code == 200
    titles = [p["title"] for p in response.json()]
    assert titles == ["Second", "First"]


@pytest.mark.asyncio
async def test_get_unknown_parcel(client, owner_headers):
    response = await client.get("/v1/parcels/does-not-exist", headers=owner_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


# TEST 3: Status updates
@pytest.mark.asyncio
async def test_update_status(client, owner_headers, parcel):
    parcel_id = parcel["insertedId"]

    response = await client.patch(
        f"/v1/parcels/{parcel_id}/status",
        json={"status": "in-transit", "note": "Left the Dhaka hub"},
        headers=owner_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"modifiedCount": 1}

    detail = (await client.get(f"/v1/parcels/{parcel_id}", headers=owner_headers)).json()
    assert detail["status"] == "in-transit"
    assert detail["lastUpdateNote"] == "Left the Dhaka hub"


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_status(client, owner_headers, parcel):
    response = await client.patch(
        f"/v1/parcels/{parcel['insertedId']}/status",
        json={"status": "teleported"},
        headers=owner_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_INVALID_STATUS"
    assert "delivered" in body["details"]["allowed"]


@pytest.mark.asyncio
async def test_update_status_unknown_parcel(client, owner_headers):
    response = await client.patch(
        "/v1/parcels/missing/status", json={"status": "delivered"}, headers=owner_headers
    )
    assert response.status_code == 404


# TEST 4: Deletion
@pytest.mark.asyncio
async def test_delete_parcel(client, owner_headers, parcel):
    parcel_id = parcel["insertedId"]

    response = await client.delete(f"/v1/parcels/{parcel_id}", headers=owner_headers)

    assert response.status_code == 200
    assert response.json() == {"deletedCount": 1}
    assert (await client.get(f"/v1/parcels/{parcel_id}", headers=owner_headers)).status_code == 404


# TEST 5: Audit trail
@pytest.mark.asyncio
async def test_status_changes_are_audited(client, owner_headers, parcel, db_session):
    parcel_id = parcel["insertedId"]
    await client.patch(f"/v1/parcels/{parcel_id}/status", json={"status": "processing"}, headers=owner_headers)

    trail = await get_audit_trail(db_session, target_id=parcel_id)

    assert [entry.action for entry in trail] == [AuditAction.PARCEL_STATUS_UPDATED, AuditAction.PARCEL_CREATED]
    assert trail[0].actor_email == OWNER_EMAIL
    assert trail[0].meta_data["status"] == "processing"
