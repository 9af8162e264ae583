"""
Record store adapter.

Uniform find/insert/update operations over the parcel, payment, user, rider
and dead-letter collections. Writes are flushed but never committed here;
callers own the transaction boundary through commit()/rollback().
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from profast.app.models.parcel import Parcel
from profast.app.models.payment_record import PaymentRecord
from profast.app.models.user import User
from profast.app.models.rider import Rider
from profast.app.models.dlq import DeadLetterQueue, DLQStatus
from profast.app.models.enums import RiderStatus


class RecordStore:
    """Async SQLAlchemy implementation of the record store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Transaction control

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _insert(self, instance):
        self.session.add(instance)
        await self.session.flush()  # Surfaces IntegrityError before commit
        return instance

    async def _select(self, query):
        # Bulk updates bypass the identity map, so reads always reload rows
        return await self.session.execute(query.execution_options(populate_existing=True))

    async def _update(self, model, key, values: Dict[str, Any], *conditions) -> int:
        stmt = (
            update(model)
            .where(key, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def _delete(self, model, key) -> int:
        stmt = delete(model).where(key).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return result.rowcount

    # Parcels

    async def insert_parcel(self, parcel: Parcel) -> Parcel:
        return await self._insert(parcel)

    async def get_parcel(self, parcel_id: str) -> Optional[Parcel]:
        result = await self._select(select(Parcel).where(Parcel.id == parcel_id))
        return result.scalar_one_or_none()

    async def get_parcel_by_tracking_number(self, tracking_number: str) -> Optional[Parcel]:
        result = await self._select(
            select(Parcel).where(Parcel.tracking_number == tracking_number)
        )
        return result.scalar_one_or_none()

    async def list_parcels(self, user_email: Optional[str] = None) -> List[Parcel]:
        """Parcels (optionally for one owner), newest first."""
        query = select(Parcel)
        if user_email:
            query = query.where(Parcel.user_email == user_email)
        result = await self._select(query.order_by(Parcel.created_at.desc()))
        return list(result.scalars().all())

    async def list_parcels_for_rider(self, rider_email: str) -> List[Parcel]:
        """Parcels assigned to a rider, most recently assigned first."""
        result = await self._select(
            select(Parcel)
            .where(Parcel.assigned_rider_email == rider_email)
            .order_by(Parcel.assigned_at.desc())
        )
        return list(result.scalars().all())

    async def update_parcel(self, parcel_id: str, values: Dict[str, Any], *conditions) -> int:
        """
        Update one parcel by id, optionally only while `conditions` still hold.

        The check and the write happen in a single UPDATE statement, so two
        concurrent callers cannot both match the same conditions.

        Returns:
            Number of rows matched (0 or 1)
        """
        return await self._update(Parcel, Parcel.id == parcel_id, values, *conditions)

    async def delete_parcel(self, parcel_id: str) -> int:
        return await self._delete(Parcel, Parcel.id == parcel_id)

    # Payment ledger

    async def insert_payment(self, record: PaymentRecord) -> PaymentRecord:
        return await self._insert(record)

    async def get_payment_by_intent(self, payment_intent_id: str) -> Optional[PaymentRecord]:
        result = await self._select(
            select(PaymentRecord).where(PaymentRecord.payment_intent_id == payment_intent_id)
        )
        return result.scalar_one_or_none()

    async def list_payments(self, user_email: Optional[str] = None) -> List[PaymentRecord]:
        """Ledger entries (optionally for one payer), newest first."""
        query = select(PaymentRecord)
        if user_email:
            query = query.where(PaymentRecord.user_email == user_email)
        result = await self._select(
            query.order_by(PaymentRecord.payment_date.desc(), PaymentRecord.created_at.desc())
        )
        return list(result.scalars().all())

    # Users

    async def insert_user(self, user: User) -> User:
        return await self._insert(user)

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self._select(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self._select(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def list_users(self, search: Optional[str] = None, limit: int = 100) -> List[User]:
        query = select(User)
        if search:
            query = query.where(User.email.ilike(f"%{search}%"))
        result = await self._select(query.order_by(User.created_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def update_user(self, user_id: str, values: Dict[str, Any]) -> int:
        return await self._update(User, User.id == user_id, values)

    async def delete_user(self, user_id: str) -> int:
        return await self._delete(User, User.id == user_id)

    # Riders

    async def insert_rider(self, rider: Rider) -> Rider:
        return await self._insert(rider)

    async def get_rider(self, rider_id: str) -> Optional[Rider]:
        result = await self._select(select(Rider).where(Rider.id == rider_id))
        return result.scalar_one_or_none()

    async def find_open_rider_application(self, email: str) -> Optional[Rider]:
        """A pending or active application for this email, if any."""
        result = await self._select(
            select(Rider).where(
                Rider.email == email,
                Rider.status.in_([RiderStatus.PENDING, RiderStatus.ACTIVE])
            )
        )
        return result.scalars().first()

    async def list_riders(self, status: Optional[RiderStatus] = None) -> List[Rider]:
        query = select(Rider)
        if status:
            query = query.where(Rider.status == status)
        result = await self._select(query.order_by(Rider.created_at.desc()))
        return list(result.scalars().all())

    async def update_rider(self, rider_id: str, values: Dict[str, Any]) -> int:
        return await self._update(Rider, Rider.id == rider_id, values)

    async def delete_rider(self, rider_id: str) -> int:
        return await self._delete(Rider, Rider.id == rider_id)

    # Dead letters

    async def insert_dead_letter(self, item: DeadLetterQueue) -> DeadLetterQueue:
        return await self._insert(item)

    async def get_dead_letter(self, dlq_id: int) -> Optional[DeadLetterQueue]:
        result = await self._select(
            select(DeadLetterQueue).where(DeadLetterQueue.id == dlq_id)
        )
        return result.scalar_one_or_none()

    async def list_dead_letters(self, status: Optional[DLQStatus] = None) -> List[DeadLetterQueue]:
        query = select(DeadLetterQueue)
        if status:
            query = query.where(DeadLetterQueue.status == status)
        result = await self._select(query.order_by(DeadLetterQueue.id.asc()))
        return list(result.scalars().all())

    async def update_dead_letter(self, dlq_id: int, values: Dict[str, Any]) -> int:
        return await self._update(DeadLetterQueue, DeadLetterQueue.id == dlq_id, values)
