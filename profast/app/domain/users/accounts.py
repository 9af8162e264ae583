"""
User accounts: first sign-in registration and admin role management.
"""

import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from profast.app.core.exceptions import InvalidRoleError, NotFoundError
from profast.app.db.session import utcnow
from profast.app.models.enums import UserRole
from profast.app.models.parcel_enums import enum_values
from profast.app.models.user import User
from profast.app.services.audit import AuditAction, log_event
from profast.app.services.record_store import RecordStore

logger = logging.getLogger("profast.users")


def parse_user_role(value: Any) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise InvalidRoleError(value, enum_values(UserRole))


class UserAccountService:

    def __init__(self, store: RecordStore):
        self.store = store

    async def sign_in(
        self,
        email: str,
        name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> Tuple[User, bool]:
        """
        Register the caller on first sign-in, otherwise refresh last login.

        Returns:
            (user, inserted)
        """
        email = email.strip().lower()
        now = utcnow()
        user = await self.store.get_user_by_email(email)

        if user is None:
            try:
                user = await self.store.insert_user(
                    User(
                        email=email,
                        name=name,
                        photo_url=photo_url,
                        role=UserRole.USER,
                        created_at=now,
                        last_login_at=now,
                        updated_at=now,
                    )
                )
                await self.store.commit()
            except IntegrityError:
                # Signed in concurrently from another client
                await self.store.rollback()
            else:
                await log_event(
                    self.store.session,
                    action=AuditAction.USER_CREATED,
                    actor_email=email,
                    target_id=user.id,
                )
                return user, True

        user = await self.store.get_user_by_email(email)
        await self.store.update_user(user.id, {"last_login_at": now})
        await self.store.commit()
        return await self.store.get_user_by_email(email), False

    async def get_user_by_email(self, email: str) -> User:
        user = await self.store.get_user_by_email(email.strip().lower())
        if not user:
            raise NotFoundError("User", email)
        return user

    async def list_users(self, search: Optional[str] = None) -> List[User]:
        return await self.store.list_users(search)

    async def update_role(self, user_id: str, new_role: Any, actor_email: Optional[str] = None) -> User:
        role = parse_user_role(new_role)
        user = await self.store.get_user(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        previous = user.role

        await self.store.update_user(user_id, {"role": role, "updated_at": utcnow()})
        await self.store.commit()

        logger.info(
            "User role changed",
            extra={"user_id": user_id, "from_role": previous.value, "to_role": role.value}
        )
        await log_event(
            self.store.session,
            action=AuditAction.ROLE_CHANGED,
            actor_email=actor_email,
            target_id=user_id,
            metadata={"from": previous.value, "to": role.value},
        )
        return await self.store.get_user(user_id)

    async def delete_user(self, user_id: str, actor_email: Optional[str] = None) -> int:
        deleted = await self.store.delete_user(user_id)
        if not deleted:
            raise NotFoundError("User", user_id)
        await self.store.commit()

        await log_event(
            self.store.session,
            action=AuditAction.USER_DELETED,
            actor_email=actor_email,
            target_id=user_id,
        )
        return deleted
