from fastapi import APIRouter

from promohub.api.v1.endpoints import (
    auth,
    commissions,
    affiliates,
    tracking,
    products,
    campaigns,
    analytics,
)
from promohub.schemas.base import ErrorResponse

api_router = APIRouter(
    prefix="/api",
    responses={
        400: {"model": ErrorResponse, "description": "Validation or conflict error"},
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
        404: {"model": ErrorResponse, "description": "Not found in the caller's tenant"},
    },
)

# ==================== Authentication ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# ==================== Commission Tiers, Rules & Product Rates ====================
api_router.include_router(
    commissions.router,
    prefix="/commissions",
    tags=["Commissions"]
)

# ==================== Affiliates & Commission Ledger ====================
api_router.include_router(
    affiliates.router,
    prefix="/affiliates",
    tags=["Affiliates"]
)

# ==================== Tracking Links ====================
api_router.include_router(
    tracking.router,
    prefix="/tracking",
    tags=["Tracking"]
)

# ==================== Products ====================
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)

# ==================== Campaigns & Participation ====================
api_router.include_router(
    campaigns.router,
    prefix="/campaigns",
    tags=["Campaigns"]
)

# ==================== Analytics ====================
api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["Analytics"]
)
