"""
Parcel Lifecycle Engine (Domain Logic).

Owns the parcel state machine, payment reconciliation and rider assignment.
Updates reach a parcel from three unordered sources (client requests, gateway
webhooks, admin/rider actions), so every write is either idempotent or
conditional on the state it was validated against.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError

from profast.app.core.config import settings
from profast.app.core.exceptions import (
    ConflictError,
    InvalidStatusError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from profast.app.db.session import utcnow
from profast.app.models.dlq import DLQTask
from profast.app.models.enums import RiderStatus
from profast.app.models.parcel import Parcel
from profast.app.models.parcel_enums import (
    ParcelStatus,
    PaymentSource,
    PaymentStatus,
    enum_values,
)
from profast.app.models.payment_record import PaymentRecord
from profast.app.services.audit import AuditAction, log_event
from profast.app.services.dead_letters import record_dead_letter
from profast.app.services.payment_gateway import GatewayEvent, PaymentIntentResult
from profast.app.services.record_store import RecordStore

logger = logging.getLogger("profast.parcels")

REQUIRED_PARCEL_FIELDS = (
    "title",
    "user_email",
    "sender_name",
    "sender_region",
    "receiver_name",
    "receiver_region",
    "cost",
)

OPTIONAL_PARCEL_FIELDS = (
    "parcel_type",
    "weight",
    "sender_address",
    "sender_contact",
    "receiver_address",
    "receiver_contact",
)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class WebhookOutcome:
    """What a webhook delivery did to the store."""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    LOGGED = "logged"
    DEAD_LETTERED = "dead_lettered"


class WebhookResult(NamedTuple):
    event_id: str
    event_type: str
    outcome: str
    dead_letter_id: Optional[int] = None


class AssignmentResult(NamedTuple):
    parcel: Parcel
    assigned_rider: Dict[str, Any]


def _camel(field: str) -> str:
    head, *rest = field.split("_")
    return head + "".join(part.title() for part in rest)


def generate_tracking_number(now: Optional[datetime] = None) -> str:
    """Tracking number like PF20261019A1B2C3."""
    now = now or utcnow()
    return f"PF{now:%Y%m%d}{uuid.uuid4().hex[:6].upper()}"


def parse_parcel_status(value: Any) -> ParcelStatus:
    try:
        return ParcelStatus(value)
    except ValueError:
        raise InvalidStatusError(value, enum_values(ParcelStatus))


def parse_payment_status(value: Any) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidStatusError(value, enum_values(PaymentStatus))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ParcelLifecycleEngine:
    """
    Parcel state machine and payment reconciliation.

    Collaborators are injected so tests can run against an in-memory store
    and a fake gateway. The engine keeps no state between calls.
    """

    def __init__(self, store: RecordStore, gateway=None, event_log=None):
        self.store = store
        self.gateway = gateway
        self.event_log = event_log

    # Parcel lifecycle

    async def create_parcel(self, data: Dict[str, Any], actor_email: Optional[str] = None) -> Parcel:
        """
        Insert a new parcel in `pending` status with no payment status.

        Raises:
            ValidationError: Required fields missing or cost invalid
            ConflictError: Supplied tracking number already in use
        """
        missing = [_camel(field) for field in REQUIRED_PARCEL_FIELDS if _is_blank(data.get(field))]
        if missing:
            raise ValidationError("Missing required parcel fields", details={"missing": missing})

        try:
            cost = float(data["cost"])
        except (TypeError, ValueError):
            raise ValidationError("Parcel cost must be a number", details={"cost": data["cost"]})
        if cost < 0:
            raise ValidationError("Parcel cost cannot be negative", details={"cost": cost})

        now = utcnow()
        tracking_number = data.get("tracking_number") or generate_tracking_number(now)

        parcel = Parcel(
            tracking_number=tracking_number,
            user_email=data["user_email"].strip().lower(),
            title=data["title"].strip(),
            cost=cost,
            sender_name=data["sender_name"],
            sender_region=data["sender_region"],
            receiver_name=data["receiver_name"],
            receiver_region=data["receiver_region"],
            status=ParcelStatus.PENDING,
            payment_status=None,
            created_at=now,
            updated_at=now,
            **{field: data.get(field) for field in OPTIONAL_PARCEL_FIELDS},
        )

        try:
            await self.store.insert_parcel(parcel)
            await self.store.commit()
        except IntegrityError:
            await self.store.rollback()
            raise ConflictError(
                f"Tracking number '{tracking_number}' already exists",
                details={"trackingNumber": tracking_number}
            )

        logger.info("Parcel created", extra={"parcel_id": parcel.id, "tracking_number": tracking_number})
        await log_event(
            self.store.session,
            action=AuditAction.PARCEL_CREATED,
            actor_email=actor_email,
            target_id=parcel.id,
            metadata={"tracking_number": tracking_number, "cost": cost},
        )
        return parcel

    async def get_parcel(self, parcel_id: str) -> Parcel:
        parcel = await self.store.get_parcel(parcel_id)
        if not parcel:
            raise NotFoundError("Parcel", parcel_id)
        return parcel

    async def get_parcel_by_tracking_number(self, tracking_number: str) -> Parcel:
        parcel = await self.store.get_parcel_by_tracking_number(tracking_number)
        if not parcel:
            raise NotFoundError("Parcel", tracking_number)
        return parcel

    async def list_parcels(self, user_email: Optional[str] = None) -> List[Parcel]:
        return await self.store.list_parcels(user_email.lower() if user_email else None)

    async def list_parcels_for_rider(self, rider_email: str) -> List[Parcel]:
        return await self.store.list_parcels_for_rider(rider_email.lower())

    async def delete_parcel(self, parcel_id: str, actor_email: Optional[str] = None) -> int:
        deleted = await self.store.delete_parcel(parcel_id)
        if not deleted:
            raise NotFoundError("Parcel", parcel_id)
        await self.store.commit()

        await log_event(
            self.store.session,
            action=AuditAction.PARCEL_DELETED,
            actor_email=actor_email,
            target_id=parcel_id,
        )
        return deleted

    async def update_status(
        self,
        parcel_id: str,
        new_status: Any,
        note: Optional[str] = None,
        actor_email: Optional[str] = None,
    ) -> int:
        """
        Set a parcel's logistics status.

        Any status in the closed set is accepted from any current status;
        ordering is left to the admins and riders issuing updates.

        Returns:
            Modified count (always 1 on success)
        """
        status = parse_parcel_status(new_status)

        values = {"status": status, "updated_at": utcnow()}
        if note is not None:
            values["last_update_note"] = note

        modified = await self.store.update_parcel(parcel_id, values)
        if not modified:
            raise NotFoundError("Parcel", parcel_id)
        await self.store.commit()

        logger.info("Parcel status updated", extra={"parcel_id": parcel_id, "status": status.value})
        await log_event(
            self.store.session,
            action=AuditAction.PARCEL_STATUS_UPDATED,
            actor_email=actor_email,
            target_id=parcel_id,
            metadata={"status": status.value, "note": note},
        )
        return modified

    # Payments

    async def _append_ledger(self, record: PaymentRecord) -> bool:
        """
        Insert a ledger entry unless one exists for its payment intent.

        Returns:
            True if this call wrote the entry

        A concurrent writer for the same intent trips the unique key; the
        transaction is rolled back, so callers must not rely on ORM objects
        loaded before this call.
        """
        if await self.store.get_payment_by_intent(record.payment_intent_id):
            return False
        try:
            await self.store.insert_payment(record)
        except IntegrityError:
            await self.store.rollback()
            logger.info(
                "Ledger entry written concurrently",
                extra={"payment_intent_id": record.payment_intent_id}
            )
            return False
        return True

    @staticmethod
    def _ledger_snapshot(parcel: Parcel, **fields) -> PaymentRecord:
        return PaymentRecord(
            parcel_id=parcel.id,
            tracking_number=parcel.tracking_number,
            title=parcel.title,
            sender_name=parcel.sender_name,
            sender_region=parcel.sender_region,
            receiver_name=parcel.receiver_name,
            receiver_region=parcel.receiver_region,
            created_at=utcnow(),
            **fields,
        )

    async def record_payment(
        self,
        parcel_id: str,
        payment_intent_id: Optional[str],
        status: Any,
        amount: Any,
        date: Optional[datetime],
        payer_email: Optional[str],
        actor_email: Optional[str] = None,
    ) -> int:
        """
        Client-initiated payment confirmation.

        Writes at most one ledger entry per payment intent and updates the
        parcel in the same transaction.

        Returns:
            Modified count
        """
        if _is_blank(payment_intent_id) or amount is None or _is_blank(payer_email):
            raise ValidationError(
                "paymentIntentId, amount and payer email are required",
                details={"paymentIntentId": payment_intent_id, "amount": amount}
            )
        payment_status = parse_payment_status(status)

        parcel = await self.get_parcel(parcel_id)
        tracking_number = parcel.tracking_number
        now = utcnow()
        paid_at = date or now

        record = self._ledger_snapshot(
            parcel,
            user_email=payer_email.strip().lower(),
            payment_intent_id=payment_intent_id,
            payment_amount=float(amount),
            payment_date=paid_at,
            payment_status=payment_status,
            source=PaymentSource.CLIENT,
        )
        recorded = await self._append_ledger(record)

        values = {
            "status": ParcelStatus.PAID if payment_status == PaymentStatus.PAID else ParcelStatus.PENDING,
            "payment_status": payment_status,
            "payment_intent_id": payment_intent_id,
            "payment_amount": float(amount),
            "payment_date": paid_at,
            "updated_at": now,
        }
        modified = await self.store.update_parcel(parcel_id, values)
        await self.store.commit()

        logger.info(
            "Client payment recorded",
            extra={
                "parcel_id": parcel_id,
                "payment_intent_id": payment_intent_id,
                "ledger_written": recorded,
            }
        )
        await log_event(
            self.store.session,
            action=AuditAction.PAYMENT_RECORDED,
            actor_email=actor_email,
            target_id=parcel_id,
            metadata={
                "tracking_number": tracking_number,
                "payment_intent_id": payment_intent_id,
                "payment_status": payment_status.value,
                "ledger_written": recorded,
            },
        )
        return modified

    async def list_payments(self, user_email: Optional[str] = None) -> List[PaymentRecord]:
        return await self.store.list_payments(user_email.lower() if user_email else None)

    async def create_payment_intent(self, parcel_id: str) -> PaymentIntentResult:
        """
        Create a gateway payment intent for the parcel's cost.

        Raises:
            NotFoundError: Unknown parcel
            ValidationError: Parcel has no positive cost
            PreconditionError: Parcel is already paid
            UpstreamError: Gateway call failed
        """
        parcel = await self.get_parcel(parcel_id)
        if not parcel.cost or parcel.cost <= 0:
            raise ValidationError("Parcel has no payable cost", details={"cost": parcel.cost})
        if parcel.payment_status in (PaymentStatus.PAID, PaymentStatus.CONFIRMED):
            raise PreconditionError(
                "Parcel is already paid",
                details={"paymentStatus": parcel.payment_status.value}
            )

        return await self.gateway.create_payment_intent(
            amount=int(round(parcel.cost * 100)),
            currency=settings.payment_currency,
            metadata={
                "parcelId": parcel.id,
                "trackingNumber": parcel.tracking_number,
                "userEmail": parcel.user_email,
            },
        )

    async def reconcile_webhook_event(
        self,
        raw_body: bytes,
        signature: Optional[str],
        secret: str,
    ) -> WebhookResult:
        """
        Apply a signed gateway event.

        Only signature failures raise. Once the event is verified the result
        always acknowledges it: failures while applying the event are rolled
        back, logged and dead-lettered, because a gateway retry cannot fix
        them.

        Raises:
            SignatureError: Signature or payload invalid
        """
        event = self.gateway.construct_event(raw_body, signature, secret)

        if self.event_log and await self.event_log.is_processed(event.id):
            logger.info("Webhook event already applied", extra={"event_id": event.id, "event_type": event.type})
            return WebhookResult(event.id, event.type, WebhookOutcome.DUPLICATE)

        try:
            outcome = await self.dispatch_event(event)
        except Exception as e:
            logger.exception(
                "Webhook event could not be applied",
                extra={"event_id": event.id, "event_type": event.type}
            )
            await self.store.rollback()
            dead_letter_id = await record_dead_letter(
                self.store, DLQTask.RECONCILE_PAYMENT_EVENT, e, event.payload
            )
            return WebhookResult(event.id, event.type, WebhookOutcome.DEAD_LETTERED, dead_letter_id)

        if self.event_log and outcome == WebhookOutcome.APPLIED:
            await self.event_log.mark_processed(event.id)
        return WebhookResult(event.id, event.type, outcome)

    async def dispatch_event(self, event: GatewayEvent) -> str:
        """Route a verified event by type."""
        if event.type == PAYMENT_SUCCEEDED:
            return await self.apply_payment_succeeded(event)

        if event.type == PAYMENT_FAILED:
            # Failed intents are observed only; the parcel keeps its state
            error = event.data_object.get("last_payment_error") or {}
            logger.warning(
                "Payment intent failed",
                extra={
                    "event_id": event.id,
                    "payment_intent_id": event.data_object.get("id"),
                    "reason": error.get("message"),
                }
            )
            return WebhookOutcome.LOGGED

        logger.info("Unhandled webhook event type", extra={"event_id": event.id, "event_type": event.type})
        return WebhookOutcome.IGNORED

    async def apply_payment_succeeded(self, event: GatewayEvent) -> str:
        """
        Confirm a parcel's payment from a `payment_intent.succeeded` event.

        Safe to run any number of times for the same event: the ledger entry
        is written once and the parcel update is absolute.
        """
        intent = event.data_object
        payment_intent_id = intent.get("id")
        parcel_id = (intent.get("metadata") or {}).get("parcelId")

        if not parcel_id or not payment_intent_id:
            logger.warning(
                "Succeeded event without parcel reference",
                extra={"event_id": event.id, "payment_intent_id": payment_intent_id}
            )
            return WebhookOutcome.IGNORED

        parcel = await self.store.get_parcel(parcel_id)
        if not parcel:
            logger.warning(
                "Succeeded event for unknown parcel",
                extra={"event_id": event.id, "parcel_id": parcel_id}
            )
            return WebhookOutcome.IGNORED

        now = utcnow()
        amount = (intent.get("amount_received") or intent.get("amount") or 0) / 100
        created = intent.get("created")
        paid_at = datetime.fromtimestamp(created, tz=timezone.utc) if created else now

        record = self._ledger_snapshot(
            parcel,
            user_email=parcel.user_email,
            payment_intent_id=payment_intent_id,
            payment_amount=amount,
            payment_date=paid_at,
            payment_status=PaymentStatus.CONFIRMED,
            source=PaymentSource.WEBHOOK,
        )
        recorded = await self._append_ledger(record)

        await self.store.update_parcel(
            parcel_id,
            {
                "status": ParcelStatus.PAID,
                "payment_status": PaymentStatus.CONFIRMED,
                "payment_intent_id": payment_intent_id,
                "payment_amount": amount,
                "payment_confirmed_at": now,
                "updated_at": now,
            },
        )
        await self.store.commit()

        logger.info(
            "Payment confirmed by gateway",
            extra={
                "event_id": event.id,
                "parcel_id": parcel_id,
                "payment_intent_id": payment_intent_id,
                "ledger_written": recorded,
            }
        )
        await log_event(
            self.store.session,
            action=AuditAction.PAYMENT_CONFIRMED,
            target_id=parcel_id,
            metadata={
                "event_id": event.id,
                "payment_intent_id": payment_intent_id,
                "ledger_written": recorded,
            },
        )
        return WebhookOutcome.APPLIED

    # Rider assignment

    @staticmethod
    def assignment_conditions():
        """Row conditions under which a parcel can still take a rider."""
        return (
            Parcel.assigned_rider.is_(None),
            Parcel.status == ParcelStatus.PAID,
            Parcel.payment_status == PaymentStatus.PAID,
        )

    async def assign_rider(
        self,
        parcel_id: str,
        rider_id: Optional[str],
        rider_name: Optional[str],
        rider_email: Optional[str],
        rider_phone: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        actor_email: Optional[str] = None,
    ) -> AssignmentResult:
        """
        Assign an active rider to a paid, unassigned parcel.

        Validates:
        - Rider id, name and email are present
        - Parcel exists and has no rider yet
        - Parcel status and payment status are both `paid`
        - Rider exists and is active

        Assignment is one-shot; there is no reassignment path.
        """
        missing = [
            label for label, value in (
                ("riderId", rider_id),
                ("riderName", rider_name),
                ("riderEmail", rider_email),
            )
            if _is_blank(value)
        ]
        if missing:
            raise ValidationError("Missing rider details", details={"missing": missing})

        parcel = await self.get_parcel(parcel_id)

        if parcel.assigned_rider:
            raise ConflictError(
                "Parcel already has a rider assigned",
                details={"riderId": parcel.assigned_rider.get("riderId")}
            )

        if parcel.payment_status != PaymentStatus.PAID or parcel.status != ParcelStatus.PAID:
            raise PreconditionError(
                "Parcel must be paid before assignment",
                details={
                    "status": parcel.status.value,
                    "paymentStatus": parcel.payment_status.value if parcel.payment_status else None,
                }
            )

        rider = await self.store.get_rider(rider_id)
        if not rider or rider.status != RiderStatus.ACTIVE:
            raise NotFoundError("Active rider", rider_id)

        now = utcnow()
        snapshot = {
            "riderId": rider_id,
            "riderName": rider_name,
            "riderEmail": rider_email.strip().lower(),
            "riderPhone": rider_phone,
            "vehicleType": vehicle_type,
            "assignedAt": now.isoformat(),
        }

        matched = await self.store.update_parcel(
            parcel_id,
            {
                "assigned_rider": snapshot,
                "assigned_rider_email": snapshot["riderEmail"],
                "status": ParcelStatus.ASSIGNED,
                "assigned_at": now,
                "updated_at": now,
            },
            *self.assignment_conditions(),
        )
        if not matched:
            await self.store.rollback()
            raise ConflictError("Parcel was assigned or changed concurrently", details={"parcelId": parcel_id})
        await self.store.commit()

        parcel = await self.get_parcel(parcel_id)
        logger.info("Rider assigned", extra={"parcel_id": parcel_id, "rider_id": rider_id})
        await log_event(
            self.store.session,
            action=AuditAction.RIDER_ASSIGNED,
            actor_email=actor_email,
            target_id=parcel_id,
            metadata={"rider_id": rider_id, "rider_email": snapshot["riderEmail"]},
        )
        return AssignmentResult(parcel, snapshot)
