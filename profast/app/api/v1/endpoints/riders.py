"""
Rider API Endpoints.

Rider applications and admin activation. Activating a rider provisions the
rider's User account; a provisioning failure is reported in the response and
left for the dead-letter reconciliation pass.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status, Path, Query

from profast.app.core.dependencies import get_current_identity, get_rider_service
from profast.app.core.guards import require_admin
from profast.app.core.jwt import CallerIdentity
from profast.app.domain.riders.activation import RiderActivationService
from profast.app.schemas.base import DeletedCountResponse
from profast.app.schemas.rider import RiderApply, RiderResponse, RiderStatusResponse, RiderStatusUpdate

router = APIRouter(prefix="/riders", tags=["Riders"])


@router.post("", response_model=RiderResponse, status_code=status.HTTP_201_CREATED)
async def apply_as_rider(
    application: RiderApply,
    identity: CallerIdentity = Depends(get_current_identity),
    riders: RiderActivationService = Depends(get_rider_service),
):
    """
    Submit a rider application in `pending` status.

    The applicant email defaults to the caller. Returns 409 when the email
    already has a pending or active application.
    """
    data = application.model_dump()
    data["email"] = data.get("email") or identity.email

    rider = await riders.apply(data, actor_email=identity.email)
    return RiderResponse.model_validate(rider)


@router.get("", response_model=List[RiderResponse])
async def list_riders(
    status: Optional[str] = Query(None, description="Filter by rider status"),
    admin: CallerIdentity = Depends(require_admin),
    riders: RiderActivationService = Depends(get_rider_service),
):
    return [RiderResponse.model_validate(r) for r in await riders.list_riders(status)]


@router.patch("/{rider_id}/status", response_model=RiderStatusResponse)
async def set_rider_status(
    update: RiderStatusUpdate,
    rider_id: str = Path(..., description="Rider ID"),
    admin: CallerIdentity = Depends(require_admin),
    riders: RiderActivationService = Depends(get_rider_service),
):
    """
    Change a rider's status (admin only).

    Activation creates or upgrades the rider's User. The status change is
    kept even when provisioning fails; `userProvisioned` is then false and
    `deadLetterId` names the queued retry.
    """
    result = await riders.set_rider_status(rider_id, update.status, actor_email=admin.email)
    return RiderStatusResponse(
        rider=RiderResponse.model_validate(result.rider),
        user_provisioned=result.user_provisioned,
        dead_letter_id=result.dead_letter_id,
    )


@router.delete("/{rider_id}", response_model=DeletedCountResponse)
async def delete_rider(
    rider_id: str = Path(..., description="Rider ID"),
    admin: CallerIdentity = Depends(require_admin),
    riders: RiderActivationService = Depends(get_rider_service),
):
    deleted = await riders.delete_rider(rider_id, actor_email=admin.email)
    return DeletedCountResponse(deleted_count=deleted)
