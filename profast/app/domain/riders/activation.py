"""
Rider onboarding and activation.

Activating a rider provisions (or upgrades) the User record the rider signs
in with. Provisioning runs after the status change has committed; when it
fails the rider stays active and the failure is dead-lettered for the
reconciliation pass.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional

from profast.app.core.exceptions import ConflictError, InvalidStatusError, NotFoundError
from profast.app.db.session import utcnow
from profast.app.models.dlq import DLQTask
from profast.app.models.enums import RiderStatus, UserRole
from profast.app.models.parcel_enums import enum_values
from profast.app.models.rider import Rider
from profast.app.models.user import User
from profast.app.services.audit import AuditAction, log_event
from profast.app.services.dead_letters import record_dead_letter
from profast.app.services.record_store import RecordStore

logger = logging.getLogger("profast.riders")

RIDER_PROFILE_FIELDS = (
    "phone",
    "age",
    "region",
    "district",
    "national_id",
    "vehicle_type",
    "vehicle_number",
)


class RiderStatusResult(NamedTuple):
    rider: Rider
    user_provisioned: bool
    dead_letter_id: Optional[int] = None


def parse_rider_status(value: Any) -> RiderStatus:
    try:
        return RiderStatus(value)
    except ValueError:
        raise InvalidStatusError(value, enum_values(RiderStatus))


class RiderActivationService:
    """Rider application state machine: pending → active | rejected."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def apply(self, data: Dict[str, Any], actor_email: Optional[str] = None) -> Rider:
        """
        Submit a rider application in `pending` status.

        Raises:
            ConflictError: The email already has a pending or active application
        """
        email = data["email"].strip().lower()
        if await self.store.find_open_rider_application(email):
            raise ConflictError("A rider application for this email is already open", details={"email": email})

        now = utcnow()
        rider = Rider(
            name=data["name"],
            email=email,
            status=RiderStatus.PENDING,
            created_at=now,
            updated_at=now,
            **{field: data.get(field) for field in RIDER_PROFILE_FIELDS},
        )
        await self.store.insert_rider(rider)
        await self.store.commit()

        await log_event(
            self.store.session,
            action=AuditAction.RIDER_APPLIED,
            actor_email=actor_email,
            target_id=rider.id,
            metadata={"email": email},
        )
        return rider

    async def get_rider(self, rider_id: str) -> Rider:
        rider = await self.store.get_rider(rider_id)
        if not rider:
            raise NotFoundError("Rider", rider_id)
        return rider

    async def list_riders(self, status: Optional[str] = None) -> List[Rider]:
        return await self.store.list_riders(parse_rider_status(status) if status else None)

    async def set_rider_status(
        self,
        rider_id: str,
        new_status: Any,
        actor_email: Optional[str] = None,
    ) -> RiderStatusResult:
        """
        Change a rider's status; on activation, provision the rider's User.

        Returns:
            The updated rider, whether user provisioning succeeded, and the
            dead-letter id when it did not
        """
        status = parse_rider_status(new_status)
        rider = await self.get_rider(rider_id)
        previous = rider.status

        await self.store.update_rider(rider_id, {"status": status, "updated_at": utcnow()})
        await self.store.commit()
        rider = await self.get_rider(rider_id)

        user_provisioned = False
        dead_letter_id = None
        if status == RiderStatus.ACTIVE:
            try:
                await self.provision_rider_user(rider)
                await self.store.commit()
                user_provisioned = True
            except Exception as e:
                logger.exception("Rider user provisioning failed", extra={"rider_id": rider_id})
                await self.store.rollback()
                dead_letter_id = await record_dead_letter(
                    self.store, DLQTask.PROVISION_RIDER_USER, e, {"riderId": rider_id}
                )
            rider = await self.get_rider(rider_id)

        logger.info(
            "Rider status changed",
            extra={"rider_id": rider_id, "from_status": previous.value, "to_status": status.value}
        )
        await log_event(
            self.store.session,
            action=AuditAction.RIDER_STATUS_CHANGED,
            actor_email=actor_email,
            target_id=rider_id,
            metadata={
                "from": previous.value,
                "to": status.value,
                "user_provisioned": user_provisioned,
                "dead_letter_id": dead_letter_id,
            },
        )
        return RiderStatusResult(rider, user_provisioned, dead_letter_id)

    async def provision_rider_user(self, rider: Rider) -> User:
        """
        Make sure the rider's email maps to exactly one User with role rider.

        Creates the user when absent, upgrades the role and merges vehicle
        details when the user has another role, and only refreshes the
        back-reference when the user is already a rider. Does not commit.
        """
        now = utcnow()
        user = await self.store.get_user_by_email(rider.email)

        if user is None:
            user = User(
                email=rider.email,
                name=rider.name,
                role=UserRole.RIDER,
                phone=rider.phone,
                vehicle_type=rider.vehicle_type,
                vehicle_number=rider.vehicle_number,
                rider_id=rider.id,
                created_at=now,
                updated_at=now,
            )
            await self.store.insert_user(user)
            logger.info("Rider user created", extra={"rider_id": rider.id, "user_id": user.id})
            return user

        values = {"rider_id": rider.id, "updated_at": now}
        if user.role != UserRole.RIDER:
            values.update(
                role=UserRole.RIDER,
                phone=rider.phone or user.phone,
                vehicle_type=rider.vehicle_type or user.vehicle_type,
                vehicle_number=rider.vehicle_number or user.vehicle_number,
            )
            logger.info(
                "User upgraded to rider",
                extra={"rider_id": rider.id, "user_id": user.id, "previous_role": user.role.value}
            )
        await self.store.update_user(user.id, values)
        return user

    async def delete_rider(self, rider_id: str, actor_email: Optional[str] = None) -> int:
        deleted = await self.store.delete_rider(rider_id)
        if not deleted:
            raise NotFoundError("Rider", rider_id)
        await self.store.commit()

        await log_event(
            self.store.session,
            action=AuditAction.RIDER_DELETED,
            actor_email=actor_email,
            target_id=rider_id,
        )
        return deleted
