"""Pydantic schemas for affiliate onboarding and the commission ledger."""
from datetime import datetime
from typing import Any, Dict, Optional, List
from decimal import Decimal
from uuid import UUID
from pydantic import EmailStr, Field

from promohub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from promohub.schemas.tracking import TrackingLinkResponse


# ==================== Invite Schemas ====================

class InviteProduct(BaseCreateSchema):
    product_id: UUID
    use_product_commission: bool = False


class AffiliateInviteCreate(BaseCreateSchema):
    """Invite a prospective affiliate to promote the given products."""
    email: EmailStr
    products: List[InviteProduct] = Field(..., min_length=1)
    message: Optional[str] = Field(None, max_length=1000)


class AffiliateInviteResponse(BaseResponseSchema):
    id: UUID
    email: str
    token: str
    status: str
    product_ids: List[str]
    expires_at: datetime
    created_at: datetime
    email_sent: bool = False


class AcceptInviteRequest(BaseCreateSchema):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class AcceptInviteResponse(BaseResponseSchema):
    user_id: UUID
    email: str
    access_token: str
    token_type: str = "bearer"
    tracking_links: List[TrackingLinkResponse]


# ==================== Ledger Schemas ====================

class ProductCommissionToggle(BaseCreateSchema):
    """Switch one affiliate/product pair between tier rate and product rate."""
    affiliate_id: UUID
    product_id: UUID
    use_product_commission: bool


class AffiliateTierUpdate(BaseCreateSchema):
    affiliate_id: UUID
    new_tier_id: UUID


class ProductCommissionResponse(BaseResponseSchema):
    id: UUID
    affiliate_id: Optional[UUID] = None
    product_id: UUID
    commission_tier_id: UUID
    tracking_link_id: Optional[UUID] = None
    commission_percent: Decimal
    product_commission: Decimal
    final_commission: Decimal
    rate_source: str
    use_product_commission: bool
    updated_at: datetime


class ProductCommissionDetail(ProductCommissionResponse):
    """Ledger row joined with product, tier and tracking link for reporting."""
    product_name: str
    sku_code: str
    tier_name: str
    tracking_code: Optional[str] = None


class TierReassignResponse(BaseResponseSchema):
    affiliate_id: UUID
    tier_id: UUID
    tier_name: str
    commission_percent: Decimal
    rows_updated: int
    rows_unchanged: int


# ==================== Affiliate Schemas ====================

class AffiliateResponse(BaseResponseSchema):
    id: UUID
    email: str
    first_name: str
    last_name: Optional[str] = None
    is_active: bool
    status: Optional[str] = None
    current_tier_id: Optional[UUID] = None
    tier_name: Optional[str] = None
    created_at: datetime


class AffiliateDetailResponse(AffiliateResponse):
    """Affiliate profile with approval state and tracking links."""
    referral_code: Optional[str] = None
    website_url: Optional[str] = None
    social_media: Dict[str, Any] = Field(default_factory=dict)
    promotional_methods: List[str] = Field(default_factory=list)
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    tracking_links: List[TrackingLinkResponse] = Field(default_factory=list)


class AffiliateUpdate(BaseUpdateSchema):
    """
    Profile fields an affiliate (or an admin) may change.
    Tier and approval state have their own endpoints.
    """
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    website_url: Optional[str] = Field(None, max_length=500)
    social_media: Optional[Dict[str, str]] = None
    promotional_methods: Optional[List[str]] = None
