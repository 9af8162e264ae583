"""
User API Endpoints.

Sign-in registration, role lookup and admin user management.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query

from profast.app.core.dependencies import get_current_identity, get_user_service
from profast.app.core.guards import require_admin
from profast.app.core.jwt import CallerIdentity
from profast.app.domain.users.accounts import UserAccountService
from profast.app.schemas.base import DeletedCountResponse
from profast.app.schemas.user import RoleResponse, RoleUpdate, SignInResponse, UserResponse, UserSignIn

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=SignInResponse)
async def sign_in(
    profile: UserSignIn,
    identity: CallerIdentity = Depends(get_current_identity),
    users: UserAccountService = Depends(get_user_service),
):
    """Register the caller on first sign-in; later calls refresh the last login."""
    user, inserted = await users.sign_in(identity.email, name=profile.name, photo_url=profile.photo_url)
    return SignInResponse(inserted=inserted, user=UserResponse.model_validate(user))


@router.get("/{email}/role", response_model=RoleResponse)
async def get_user_role(
    email: str = Path(..., description="User email"),
    identity: CallerIdentity = Depends(get_current_identity),
    users: UserAccountService = Depends(get_user_service),
):
    user = await users.get_user_by_email(email)
    return RoleResponse(email=user.email, role=user.role)


@router.get("", response_model=List[UserResponse])
async def list_users(
    search: Optional[str] = Query(None, description="Substring of email or name"),
    admin: CallerIdentity = Depends(require_admin),
    users: UserAccountService = Depends(get_user_service),
):
    return [UserResponse.model_validate(u) for u in await users.list_users(search)]


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    update: RoleUpdate,
    user_id: str = Path(..., description="User ID"),
    admin: CallerIdentity = Depends(require_admin),
    users: UserAccountService = Depends(get_user_service),
):
    """Change a user's role (admin only). Returns 400 for an unknown role."""
    user = await users.update_role(user_id, update.role, actor_email=admin.email)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=DeletedCountResponse)
async def delete_user(
    user_id: str = Path(..., description="User ID"),
    admin: CallerIdentity = Depends(require_admin),
    users: UserAccountService = Depends(get_user_service),
):
    deleted = await users.delete_user(user_id, actor_email=admin.email)
    return DeletedCountResponse(deleted_count=deleted)
