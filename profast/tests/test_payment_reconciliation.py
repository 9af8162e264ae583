"""
Payment reconciliation tests.

Covers the client confirmation path, the signed webhook path and the
at-most-once ledger guarantee shared by both.
"""

import json

import pytest
from sqlalchemy import select, func

from conftest import OTHER_EMAIL, OWNER_EMAIL, sign_payload, succeeded_event
from profast.app.models.payment_record import PaymentRecord
from profast.app.services.webhook_events import PROCESSED_EVENT_PREFIX


async def ledger_count(db_session, payment_intent_id):
    result = await db_session.execute(
        select(func.count()).select_from(PaymentRecord).where(PaymentRecord.payment_intent_id == payment_intent_id)
    )
    return result.scalar_one()


async def post_webhook(client, body: str, signature: str = None):
    return await client.post(
        "/v1/webhooks/stripe",
        content=body.encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            "stripe-signature": signature if signature is not None else sign_payload(body),
        },
    )


# TEST 1: Client-side payment
@pytest.mark.asyncio
async def test_record_payment_marks_parcel_paid(client, owner_headers, parcel, db_session):
    parcel_id = parcel["insertedId"]

    response = await client.post(
        "/v1/payments",
        json={"parcelId": parcel_id, "paymentIntentId": "pi_abc", "status": "paid", "amount": 150},
        headers=owner_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"modifiedCount": 1}

    detail = (await client.get(f"/v1/parcels/{parcel_id}", headers=owner_headers)).json()
    assert detail["status"] == "paid"
    assert detail["paymentStatus"] == "paid"
    assert detail["paymentIntentId"] == "pi_abc"
    assert detail["paymentAmount"] == 150
    assert await ledger_count(db_session, "pi_abc") == 1


@pytest.mark.asyncio
async def test_record_payment_twice_writes_one_ledger_entry(client, owner_headers, parcel, db_session):
    body = {"parcelId": parcel["insertedId"], "paymentIntentId": "pi_twice", "status": "paid", "amount": 150}

    first = await client.post("/v1/payments", json=body, headers=owner_headers)
    second = await client.post("/v1/payments", json=body, headers=owner_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert await ledger_count(db_session, "pi_twice") == 1


@pytest.mark.asyncio
async def test_record_payment_requires_intent_id(client, owner_headers, parcel):
    response = await client.post(
        "/v1/payments",
        json={"parcelId": parcel["insertedId"], "status": "paid", "amount": 150},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_001"


@pytest.mark.asyncio
async def test_record_payment_rejects_unknown_status(client, owner_headers, parcel):
    response = await client.post(
        "/v1/payments",
        json={"parcelId": parcel["insertedId"], "paymentIntentId": "pi_x", "status": "refunded", "amount": 150},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_INVALID_STATUS"


@pytest.mark.asyncio
async def test_record_payment_unknown_parcel(client, owner_headers, db_session):
    response = await client.post(
        "/v1/payments",
        json={"parcelId": "no-such-parcel", "paymentIntentId": "pi_orphan", "status": "paid", "amount": 150},
        headers=owner_headers,
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"
    assert await ledger_count(db_session, "pi_orphan") == 0


@pytest.mark.asyncio
async def test_record_payment_payer_email_is_the_caller(client, owner_headers, other_headers, parcel, db_session):
    """A regular user cannot file a ledger entry under someone else's email."""
    response = await client.post(
        "/v1/payments",
        json={
            "parcelId": parcel["insertedId"], "paymentIntentId": "pi_spoof",
            "status": "paid", "amount": 150, "email": OTHER_EMAIL,
        },
        headers=owner_headers,
    )
    assert response.status_code == 200

    record = (await db_session.execute(
        select(PaymentRecord).where(PaymentRecord.payment_intent_id == "pi_spoof")
    )).scalar_one()
    assert record.user_email == OWNER_EMAIL

    history = await client.get("/v1/payments", headers=other_headers)
    assert history.json() == []


@pytest.mark.asyncio
async def test_admin_records_payment_for_another_payer(client, admin_headers, parcel, db_session):
    response = await client.post(
        "/v1/payments",
        json={
            "parcelId": parcel["insertedId"], "paymentIntentId": "pi_on_behalf",
            "status": "paid", "amount": 150, "email": OWNER_EMAIL,
        },
        headers=admin_headers,
    )
    assert response.status_code == 200

    record = (await db_session.execute(
        select(PaymentRecord).where(PaymentRecord.payment_intent_id == "pi_on_behalf")
    )).scalar_one()
    assert record.user_email == OWNER_EMAIL


@pytest.mark.asyncio
async def test_payment_history_newest_first(client, owner_headers, db_session):
    for title, intent, day in (("Older", "pi_old", "2026-01-01"), ("Newer", "pi_new", "2026-02-01")):
        created = await client.post(
            "/v1/parcels",
            json={
                "title": title, "cost": 80, "senderName": "S", "senderRegion": "Dhaka",
                "receiverName": "R", "receiverRegion": "Sylhet",
            },
            headers=owner_headers,
        )
        await client.post(
            "/v1/payments",
            json={
                "parcelId": created.json()["insertedId"], "paymentIntentId": intent,
                "status": "paid", "amount": 80, "date": f"{day}T10:00:00Z",
            },
            headers=owner_headers,
        )

    response = await client.get("/v1/payments", params={"email": OWNER_EMAIL}, headers=owner_headers)

    assert response.status_code == 200
    history = response.json()
    assert [entry["paymentIntentId"] for entry in history] == ["pi_new", "pi_old"]
    assert all(entry["source"] == "client" for entry in history)


# TEST 2: Payment intents
@pytest.mark.asyncio
async def test_create_payment_intent(client, owner_headers, parcel, mocker):
    create = mocker.patch(
        "stripe.PaymentIntent.create",
        return_value=mocker.Mock(id="pi_new_intent", client_secret="pi_new_intent_secret_123"),
    )

    response = await client.post(
        "/v1/payments/create-intent", json={"parcelId": parcel["insertedId"]}, headers=owner_headers
    )

    assert response.status_code == 200
    assert response.json() == {
        "clientSecret": "pi_new_intent_secret_123",
        "paymentIntentId": "pi_new_intent",
    }
    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 15000
    assert kwargs["currency"] == "usd"
    assert kwargs["metadata"]["parcelId"] == parcel["insertedId"]
    assert kwargs["metadata"]["trackingNumber"] == parcel["trackingNumber"]


@pytest.mark.asyncio
async def test_create_payment_intent_for_paid_parcel(client, owner_headers, paid_parcel, mocker):
    create = mocker.patch("stripe.PaymentIntent.create")

    response = await client.post(
        "/v1/payments/create-intent", json={"parcelId": paid_parcel["insertedId"]}, headers=owner_headers
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_PRECONDITION"
    create.assert_not_called()


# TEST 3: Webhook reconciliation
@pytest.mark.asyncio
async def test_webhook_confirms_payment(client, owner_headers, parcel, db_session):
    parcel_id = parcel["insertedId"]
    body = succeeded_event(parcel_id)

    response = await post_webhook(client, body)

    assert response.status_code == 200
    ack = response.json()
    assert ack["received"] is True
    assert ack["outcome"] == "applied"

    detail = (await client.get(f"/v1/parcels/{parcel_id}", headers=owner_headers)).json()
    assert detail["status"] == "paid"
    assert detail["paymentStatus"] == "confirmed"
    assert detail["paymentIntentId"] == "pi_test_1"
    assert detail["paymentAmount"] == 150
    assert detail["paymentConfirmedAt"] is not None
    assert await ledger_count(db_session, "pi_test_1") == 1


@pytest.mark.asyncio
async def test_webhook_redelivery_is_idempotent(client, parcel, db_session, mock_redis):
    body = succeeded_event(parcel["insertedId"])

    first = await post_webhook(client, body)
    second = await post_webhook(client, body)

    assert first.json()["outcome"] == "applied"
    assert second.status_code == 200
    assert second.json()["outcome"] == "duplicate"
    assert f"{PROCESSED_EVENT_PREFIX}evt_test_1" in mock_redis.store
    assert await ledger_count(db_session, "pi_test_1") == 1


@pytest.mark.asyncio
async def test_webhook_idempotent_without_redis(client, parcel, db_session, mock_redis):
    """With the event log down every delivery is re-applied; the ledger still holds one entry."""
    await mock_redis.aclose()
    body = succeeded_event(parcel["insertedId"])

    first = await post_webhook(client, body)
    second = await post_webhook(client, body)

    assert first.json()["outcome"] == "applied"
    assert second.json()["outcome"] == "applied"
    assert await ledger_count(db_session, "pi_test_1") == 1


@pytest.mark.asyncio
async def test_webhook_after_client_payment_keeps_single_entry(client, owner_headers, parcel, db_session):
    parcel_id = parcel["insertedId"]
    await client.post(
        "/v1/payments",
        json={"parcelId": parcel_id, "paymentIntentId": "pi_test_1", "status": "paid", "amount": 150},
        headers=owner_headers,
    )

    response = await post_webhook(client, succeeded_event(parcel_id))

    assert response.status_code == 200
    assert await ledger_count(db_session, "pi_test_1") == 1
    detail = (await client.get(f"/v1/parcels/{parcel_id}", headers=owner_headers)).json()
    assert detail["paymentStatus"] == "confirmed"


@pytest.mark.asyncio
async def test_webhook_unknown_parcel_is_acknowledged(client, db_session):
    response = await post_webhook(client, succeeded_event("no-such-parcel"))

    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"
    assert await ledger_count(db_session, "pi_test_1") == 0


@pytest.mark.asyncio
async def test_webhook_failed_payment_is_logged_only(client, owner_headers, parcel):
    body = json.dumps({
        "id": "evt_failed_1",
        "type": "payment_intent.payment_failed",
        "data": {"object": {
            "id": "pi_failed",
            "metadata": {"parcelId": parcel["insertedId"]},
            "last_payment_error": {"message": "Your card was declined."},
        }},
    })

    response = await post_webhook(client, body)

    assert response.status_code == 200
    assert response.json()["outcome"] == "logged"
    detail = (await client.get(f"/v1/parcels/{parcel['insertedId']}", headers=owner_headers)).json()
    assert detail["status"] == "pending"
    assert detail["paymentStatus"] is None


@pytest.mark.asyncio
async def test_webhook_other_event_types_are_ignored(client):
    body = json.dumps({"id": "evt_other", "type": "customer.created", "data": {"object": {}}})

    response = await post_webhook(client, body)

    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"


@pytest.mark.asyncio
async def test_webhook_bad_signature(client, owner_headers, parcel):
    body = succeeded_event(parcel["insertedId"])

    response = await post_webhook(client, body, signature=sign_payload(body, secret="whsec_wrong"))

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_SIGNATURE"
    detail = (await client.get(f"/v1/parcels/{parcel['insertedId']}", headers=owner_headers)).json()
    assert detail["paymentStatus"] is None


@pytest.mark.asyncio
async def test_webhook_missing_signature(client):
    response = await client.post(
        "/v1/webhooks/stripe", content=b"{}", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_SIGNATURE"


@pytest.mark.asyncio
async def test_webhook_undecodable_body(client):
    response = await client.post(
        "/v1/webhooks/stripe",
        content=b'{"id": "evt_x", "type": "x"}\xff\xfe',
        headers={"Content-Type": "application/json", "stripe-signature": "t=1,v1=deadbeef"},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_SIGNATURE"
