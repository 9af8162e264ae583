"""
Parcel API Endpoints.

Parcel creation, lookup, status updates and rider assignment. Reads and
deletes are limited to the parcel's owner or an admin; tracking lookups are
public.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status, Path, Query

from profast.app.core.dependencies import get_current_identity, get_parcel_engine, get_record_store
from profast.app.core.guards import OwnershipGuard, is_admin
from profast.app.core.jwt import CallerIdentity
from profast.app.domain.parcels.lifecycle_engine import ParcelLifecycleEngine
from profast.app.schemas.base import DeletedCountResponse, ModifiedCountResponse
from profast.app.schemas.parcel import (
    AssignedRider,
    ParcelCreate,
    ParcelCreated,
    ParcelResponse,
    RiderAssignment,
    RiderAssignmentResponse,
    StatusUpdate,
)
from profast.app.services.record_store import RecordStore

router = APIRouter(prefix="/parcels", tags=["Parcels"])
ownership_guard = OwnershipGuard()


@router.post("", response_model=ParcelCreated, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    Create a parcel in `pending` status.

    The owner defaults to the caller; only admins may create parcels on
    behalf of another email.
    """
    data = parcel_data.model_dump()
    data["user_email"] = data.get("user_email") or identity.email
    await ownership_guard.enforce(data["user_email"], identity, store, "parcel")

    parcel = await engine.create_parcel(data, actor_email=identity.email)
    return ParcelCreated(inserted_id=parcel.id, tracking_number=parcel.tracking_number)


@router.get("", response_model=List[ParcelResponse])
async def list_parcels(
    email: Optional[str] = Query(None, description="Owner email (defaults to the caller)"),
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    List parcels for an owner, newest first.

    Admins may omit the email to list every parcel.
    """
    if email:
        await ownership_guard.enforce(email, identity, store, "parcel list")
    elif not await is_admin(identity, store):
        email = identity.email

    parcels = await engine.list_parcels(email)
    return [ParcelResponse.model_validate(p) for p in parcels]


@router.get("/assigned", response_model=List[ParcelResponse])
async def list_assigned_parcels(
    rider_email: Optional[str] = Query(None, alias="riderEmail", description="Rider email (defaults to the caller)"),
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """List parcels assigned to a rider (the rider themself or an admin)."""
    rider_email = rider_email or identity.email
    await ownership_guard.enforce(rider_email, identity, store, "rider's parcels")

    parcels = await engine.list_parcels_for_rider(rider_email)
    return [ParcelResponse.model_validate(p) for p in parcels]


@router.get("/track/{tracking_number}", response_model=ParcelResponse)
async def track_parcel(
    tracking_number: str = Path(..., description="Parcel tracking number"),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """Public tracking lookup."""
    parcel = await engine.get_parcel_by_tracking_number(tracking_number)
    return ParcelResponse.model_validate(parcel)


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """Get a parcel (owner or admin)."""
    parcel = await engine.get_parcel(parcel_id)
    await ownership_guard.enforce(parcel.user_email, identity, store, "parcel")
    return ParcelResponse.model_validate(parcel)


@router.delete("/{parcel_id}", response_model=DeletedCountResponse)
async def delete_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    identity: CallerIdentity = Depends(get_current_identity),
    store: RecordStore = Depends(get_record_store),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """Delete a parcel (owner or admin)."""
    parcel = await engine.get_parcel(parcel_id)
    await ownership_guard.enforce(parcel.user_email, identity, store, "parcel")

    deleted = await engine.delete_parcel(parcel_id, actor_email=identity.email)
    return DeletedCountResponse(deleted_count=deleted)


@router.patch("/{parcel_id}/status", response_model=ModifiedCountResponse)
async def update_parcel_status(
    update: StatusUpdate,
    parcel_id: str = Path(..., description="Parcel ID"),
    identity: CallerIdentity = Depends(get_current_identity),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    Update a parcel's logistics status.

    Returns 400 for a status outside the known set and 404 for an unknown
    parcel.
    """
    modified = await engine.update_status(
        parcel_id, update.status, note=update.note, actor_email=identity.email
    )
    return ModifiedCountResponse(modified_count=modified)


@router.patch("/{parcel_id}/assign-rider", response_model=RiderAssignmentResponse)
async def assign_rider(
    assignment: RiderAssignment,
    parcel_id: str = Path(..., description="Parcel ID"),
    identity: CallerIdentity = Depends(get_current_identity),
    engine: ParcelLifecycleEngine = Depends(get_parcel_engine),
):
    """
    Assign an active rider to a paid parcel.

    Returns 400 when details are missing or the parcel is unpaid, 404 for an
    unknown parcel or inactive rider, and 409 when a rider is already
    assigned.
    """
    result = await engine.assign_rider(
        parcel_id,
        rider_id=assignment.rider_id,
        rider_name=assignment.rider_name,
        rider_email=assignment.rider_email,
        rider_phone=assignment.rider_phone,
        vehicle_type=assignment.vehicle_type,
        actor_email=identity.email,
    )
    return RiderAssignmentResponse(
        parcel_id=result.parcel.id,
        tracking_number=result.parcel.tracking_number,
        status=result.parcel.status,
        assigned_rider=AssignedRider.model_validate(result.assigned_rider),
    )
