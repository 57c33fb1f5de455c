"""API endpoints for affiliate onboarding and per-product commissions."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from promohub.api.deps import DB, CurrentUser, AdminUser
from promohub.core.exceptions import TenantAccessError
from promohub.models.user import UserRole
from promohub.schemas.affiliate import (
    AffiliateInviteCreate,
    AffiliateInviteResponse,
    AcceptInviteRequest,
    AcceptInviteResponse,
    AffiliateResponse,
    AffiliateDetailResponse,
    AffiliateUpdate,
    ProductCommissionToggle,
    ProductCommissionResponse,
    ProductCommissionDetail,
    AffiliateTierUpdate,
    TierReassignResponse,
)
from promohub.schemas.tracking import TrackingLinkResponse
from promohub.services.affiliate_service import AffiliateService
from promohub.services.auth_service import AuthService
from promohub.services.commission_engine import CommissionEngine

router = APIRouter()


@router.get("", response_model=List[AffiliateResponse])
async def list_affiliates(db: DB, admin: AdminUser):
    """List the tenant's affiliates with their current tier."""
    return await AffiliateService(db, admin.tenant_id).list_affiliates()


@router.post("/invite", response_model=AffiliateInviteResponse, status_code=status.HTTP_201_CREATED)
async def invite_affiliate(data: AffiliateInviteCreate, db: DB, admin: AdminUser):
    """
    Invite an affiliate to promote products.

    Each product can be set to pay the product's own rate instead of the
    tier rate. The invite succeeds even if the email cannot be sent.
    """
    invite, email_sent = await AffiliateService(db, admin.tenant_id).invite(data, invited_by=admin.id)
    response = AffiliateInviteResponse.model_validate(invite)
    response.email_sent = email_sent
    return response


@router.post("/accept", response_model=AcceptInviteResponse)
async def accept_invite(data: AcceptInviteRequest, db: DB):
    """Accept an invite. The invite token authenticates the caller."""
    user, links = await AffiliateService(db).accept(data)
    access_token, _ = AuthService.create_token(user)
    return AcceptInviteResponse(
        user_id=user.id,
        email=user.email,
        access_token=access_token,
        tracking_links=[TrackingLinkResponse.model_validate(link) for link in links],
    )


@router.get("/product-commissions", response_model=List[ProductCommissionDetail])
async def list_product_commissions(
    db: DB,
    current_user: CurrentUser,
    affiliate_id: Optional[UUID] = Query(None, alias="affiliateId"),
):
    """
    Ledger rows for the current affiliate.
    Admins may pass ``affiliateId`` to view another affiliate of their tenant.
    """
    target = current_user.id
    if affiliate_id and affiliate_id != current_user.id:
        if current_user.role != UserRole.ADMIN.value:
            raise TenantAccessError("Cannot view another affiliate's commissions")
        target = affiliate_id

    return await CommissionEngine(db, current_user.tenant_id).list_affiliate_commissions(target)


@router.put("/product-commission", response_model=ProductCommissionResponse)
async def set_product_commission(data: ProductCommissionToggle, db: DB, admin: AdminUser):
    """Switch an affiliate/product pair between the tier rate and the product rate."""
    engine = CommissionEngine(db, admin.tenant_id)
    return await engine.set_rate_source(data.affiliate_id, data.product_id, data.use_product_commission)


@router.put("/update-tier", response_model=TierReassignResponse)
async def update_affiliate_tier(data: AffiliateTierUpdate, db: DB, admin: AdminUser):
    """Move an affiliate to another tier; tier-rate ledger rows follow."""
    engine = CommissionEngine(db, admin.tenant_id)
    tier, updated, unchanged = await engine.reassign_tier(data.affiliate_id, data.new_tier_id)
    return TierReassignResponse(
        affiliate_id=data.affiliate_id,
        tier_id=tier.id,
        tier_name=tier.tier_name,
        commission_percent=tier.commission_percent,
        rows_updated=updated,
        rows_unchanged=unchanged,
    )


# Routes with a path parameter come last so they don't shadow the ones above.

def _ensure_self_or_admin(current_user, affiliate_id: UUID) -> None:
    if current_user.role != UserRole.ADMIN.value and current_user.id != affiliate_id:
        raise TenantAccessError("Cannot access another affiliate's profile")


@router.get("/{affiliate_id}", response_model=AffiliateDetailResponse)
async def get_affiliate(affiliate_id: UUID, db: DB, current_user: CurrentUser):
    """Affiliate profile with approval state, tier and tracking links."""
    _ensure_self_or_admin(current_user, affiliate_id)
    return await AffiliateService(db, current_user.tenant_id).get_affiliate(affiliate_id)


@router.put("/{affiliate_id}", response_model=AffiliateDetailResponse)
async def update_affiliate(affiliate_id: UUID, data: AffiliateUpdate, db: DB, current_user: CurrentUser):
    """Update profile fields. Affiliates may edit their own profile."""
    _ensure_self_or_admin(current_user, affiliate_id)
    return await AffiliateService(db, current_user.tenant_id).update_affiliate(affiliate_id, data)


@router.post("/{affiliate_id}/approve", response_model=AffiliateDetailResponse)
async def approve_affiliate(affiliate_id: UUID, db: DB, admin: AdminUser):
    return await AffiliateService(db, admin.tenant_id).approve(affiliate_id, approved_by=admin.id)


@router.post("/{affiliate_id}/reject", response_model=AffiliateDetailResponse)
async def reject_affiliate(affiliate_id: UUID, db: DB, admin: AdminUser):
    return await AffiliateService(db, admin.tenant_id).reject(affiliate_id)
