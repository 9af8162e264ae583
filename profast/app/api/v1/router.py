"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from profast.app.api.v1.endpoints import (
    parcels, payments, webhooks,
    users, riders, admin_ops
)

router = APIRouter()

# Parcel lifecycle
router.include_router(parcels.router)
router.include_router(payments.router)

# Gateway callbacks (signature-authenticated, no bearer token)
router.include_router(webhooks.router)

# Accounts and rider onboarding
router.include_router(users.router)
router.include_router(riders.router)

# Reconciliation
router.include_router(admin_ops.router)
