"""
Security guards for role-based and ownership-based access control.

Roles are read from the caller's User record, not from token claims.
"""

from fastapi import Depends
from profast.app.core.dependencies import get_current_identity, get_record_store
from profast.app.core.exceptions import ForbiddenError
from profast.app.core.jwt import CallerIdentity
from profast.app.models.enums import UserRole
from profast.app.services.record_store import RecordStore


async def is_admin(identity: CallerIdentity, store: RecordStore) -> bool:
    """True if the caller's User record has the admin role."""
    user = await store.get_user_by_email(identity.email)
    return user is not None and user.role == UserRole.ADMIN


async def require_admin(
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
) -> CallerIdentity:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.patch("/riders/{rider_id}/status")
        async def set_rider_status(
            rider_id: str,
            admin: CallerIdentity = Depends(require_admin)
        ):
            ...

    Raises:
        UnauthorizedError: 401 without a valid token
        ForbiddenError: 403 if the caller is not an admin
    """
    if not await is_admin(identity, store):
        raise ForbiddenError("Admin access required")
    return identity


class OwnershipGuard:
    """
    Owner-or-admin check for resources keyed by an owner email.

    Usage:
        ownership_guard = OwnershipGuard()

        @router.get("/parcels/{parcel_id}")
        async def get_parcel(parcel_id: str, identity=..., store=..., engine=...):
            parcel = await engine.get_parcel(parcel_id)
            await ownership_guard.enforce(parcel.user_email, identity, store, "parcel")
            return parcel
    """

    async def enforce(
        self,
        owner_email: str,
        identity: CallerIdentity,
        store: RecordStore,
        resource_name: str = "resource"
    ):
        """
        Raises:
            ForbiddenError: 403 if the caller neither owns the resource nor is an admin
        """
        if owner_email and owner_email.lower() == identity.email:
            return
        if await is_admin(identity, store):
            return
        raise ForbiddenError(
            f"Access denied. You do not have permission to access this {resource_name}."
        )
