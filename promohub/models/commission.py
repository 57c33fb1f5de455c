"""
Commission models: tiers, rules, per-affiliate tier assignment and the
affiliate-product commission ledger.
"""
import uuid
import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String, Text, DateTime, Integer, ForeignKey,
    UniqueConstraint, Index, Numeric, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from promohub.database import Base
from promohub.db_types import JSONType, MoneyType, PercentType


class RuleType(str, enum.Enum):
    """Kind of commission rule."""
    BONUS = "bonus"
    MULTIPLIER = "multiplier"
    PERCENTAGE = "percentage"


class RuleValueType(str, enum.Enum):
    """How a rule's ``value`` is interpreted."""
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    MULTIPLIER = "multiplier"


class RuleStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AffiliateStatus(str, enum.Enum):
    """Approval state of an affiliate profile."""
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class RateSource(str, enum.Enum):
    """Which rate a ledger row's final commission follows."""
    TIER = "tier"
    PRODUCT = "product"


# ==================== Tiers & Rules ====================

class CommissionTier(Base):
    """
    Named commission level with a minimum sales threshold.
    Tiers are ordered by ``min_sales`` ascending; the lowest one is the
    starting tier for newly onboarded affiliates.
    """
    __tablename__ = "commission_tiers"
    __table_args__ = (
        Index("ix_commission_tiers_tenant_min_sales", "tenant_id", "min_sales"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    tier_name: Mapped[str] = mapped_column(String(100), nullable=False)
    commission_percent: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    min_sales: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<CommissionTier(name='{self.tier_name}', percent={self.commission_percent})>"


class CommissionRule(Base):
    """
    Stored commission rule. ``condition`` is kept as an opaque string;
    rules are stored and listed but never evaluated during resolution.
    """
    __tablename__ = "commission_rules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    condition: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(10), default=RuleStatus.ACTIVE.value, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def is_effective_at(self, moment: datetime) -> bool:
        """True when the rule is active and ``moment`` falls in its validity window."""
        if self.status != RuleStatus.ACTIVE.value:
            return False
        if _aware(self.start_date) > moment:
            return False
        if self.end_date is not None and _aware(self.end_date) < moment:
            return False
        return True

    def __repr__(self) -> str:
        return f"<CommissionRule(name='{self.name}', type='{self.type}')>"


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# ==================== Affiliate Commission State ====================

class AffiliateDetails(Base):
    """Per-affiliate profile and the tier the affiliate currently sits in."""
    __tablename__ = "affiliate_details"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_affiliate_details_tenant_user"),
        Index("ix_affiliate_details_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    current_tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("commission_tiers.id", ondelete="SET NULL"),
        nullable=True
    )

    referral_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    social_media: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    promotional_methods: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)

    # Approval workflow
    status: Mapped[str] = mapped_column(String(20), default=AffiliateStatus.PENDING.value, nullable=False)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<AffiliateDetails(user_id={self.user_id}, status='{self.status}', tier={self.current_tier_id})>"


class AffiliateProductCommission(Base):
    """
    Ledger row: the commission an affiliate earns on one product.

    Rows are created as placeholders (``affiliate_id`` NULL) when an invite
    is issued and bound to the affiliate on acceptance. ``rate_source``
    records whether ``final_commission`` follows the tier rate or the
    product's own rate.
    """
    __tablename__ = "affiliate_product_commissions"
    __table_args__ = (
        UniqueConstraint("affiliate_id", "product_id", name="uq_apc_affiliate_product"),
        CheckConstraint("rate_source IN ('tier', 'product')", name="ck_apc_rate_source"),
        Index("ix_apc_tenant_product", "tenant_id", "product_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    affiliate_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    invite_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("affiliate_invites.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    tracking_link_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tracking_links.id", ondelete="SET NULL"),
        nullable=True
    )
    commission_tier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("commission_tiers.id"),
        nullable=False
    )

    commission_percent: Mapped[Decimal] = mapped_column(
        PercentType, nullable=False, comment="Tier rate snapshot (%)"
    )
    product_commission: Mapped[Decimal] = mapped_column(
        PercentType, nullable=False, comment="Product rate snapshot (%)"
    )
    final_commission: Mapped[Decimal] = mapped_column(
        PercentType, nullable=False, comment="Rate actually paid (%)"
    )
    rate_source: Mapped[str] = mapped_column(String(10), default=RateSource.TIER.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def is_placeholder(self) -> bool:
        return self.affiliate_id is None

    @property
    def use_product_commission(self) -> bool:
        return self.rate_source == RateSource.PRODUCT.value

    def recompute_final(self) -> None:
        """Set ``final_commission`` from the snapshot selected by ``rate_source``."""
        if self.rate_source == RateSource.PRODUCT.value:
            self.final_commission = self.product_commission
        else:
            self.final_commission = self.commission_percent

    def __repr__(self) -> str:
        return (
            f"<AffiliateProductCommission(affiliate={self.affiliate_id}, "
            f"product={self.product_id}, final={self.final_commission})>"
        )
