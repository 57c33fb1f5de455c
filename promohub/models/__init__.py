"""SQLAlchemy models. Importing this package registers every table on ``Base.metadata``."""
from promohub.models.tenant import Tenant, TenantStatus
from promohub.models.user import User, UserRole
from promohub.models.product import Product, ProductStatus
from promohub.models.commission import (
    CommissionTier,
    CommissionRule,
    RuleType,
    RuleValueType,
    RuleStatus,
    RateSource,
    AffiliateStatus,
    AffiliateDetails,
    AffiliateProductCommission,
)
from promohub.models.affiliate import AffiliateInvite, InviteStatus
from promohub.models.tracking import TrackingLink, TrackingEvent, TrackingEventType
from promohub.models.campaign import (
    Campaign,
    CampaignParticipation,
    CampaignStatus,
    CampaignType,
    ParticipationStatus,
)

__all__ = [
    "Tenant",
    "TenantStatus",
    "User",
    "UserRole",
    "Product",
    "ProductStatus",
    "CommissionTier",
    "CommissionRule",
    "RuleType",
    "RuleValueType",
    "RuleStatus",
    "RateSource",
    "AffiliateStatus",
    "AffiliateDetails",
    "AffiliateProductCommission",
    "AffiliateInvite",
    "InviteStatus",
    "TrackingLink",
    "TrackingEvent",
    "TrackingEventType",
    "Campaign",
    "CampaignParticipation",
    "CampaignStatus",
    "CampaignType",
    "ParticipationStatus",
]
