"""
Commission Resolution Engine

Decides the commission percent an affiliate earns per product and keeps the
affiliate-product commission ledger consistent:
- Default tier seeding for tenants without tiers
- Ledger placeholders when an invite is issued
- Binding placeholders to the affiliate when the invite is accepted
- Switching a row between tier rate and product rate
- Tier reassignment fan-out across an affiliate's ledger
- Product rate propagation into existing ledger rows

Every query is scoped by ``tenant_id``. Percentages are ``Decimal`` with two
decimal places throughout.
"""

import logging
import secrets
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.config import settings
from promohub.core.exceptions import NotFoundError, InvariantViolationError
from promohub.database import with_transaction
from promohub.models.affiliate import AffiliateInvite
from promohub.models.commission import (
    CommissionTier,
    AffiliateDetails,
    AffiliateProductCommission,
    RateSource,
)
from promohub.models.product import Product
from promohub.models.tenant import Tenant
from promohub.models.tracking import TrackingLink
from promohub.models.user import User

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def to_percent(value) -> Decimal:
    """Normalize a rate to a two-place Decimal; None counts as 0."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def new_tracking_code() -> str:
    return secrets.token_urlsafe(12)


class CommissionEngine:
    """Commission resolution and ledger maintenance for one tenant"""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_default_tier(self) -> Optional[CommissionTier]:
        """The tenant's lowest tier (minimum ``min_sales``), if any."""
        result = await self.db.execute(
            select(CommissionTier)
            .where(CommissionTier.tenant_id == self.tenant_id)
            .order_by(CommissionTier.min_sales.asc(), CommissionTier.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _get_tier(self, tier_id: uuid.UUID) -> CommissionTier:
        result = await self.db.execute(
            select(CommissionTier).where(
                CommissionTier.id == tier_id,
                CommissionTier.tenant_id == self.tenant_id,
            )
        )
        tier = result.scalar_one_or_none()
        if not tier:
            raise NotFoundError("Commission tier not found")
        return tier

    async def _get_product(self, product_id: uuid.UUID) -> Product:
        result = await self.db.execute(
            select(Product).where(
                Product.id == product_id,
                Product.tenant_id == self.tenant_id,
            )
        )
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def _get_bound_row(
        self,
        affiliate_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> Optional[AffiliateProductCommission]:
        result = await self.db.execute(
            select(AffiliateProductCommission).where(
                AffiliateProductCommission.tenant_id == self.tenant_id,
                AffiliateProductCommission.affiliate_id == affiliate_id,
                AffiliateProductCommission.product_id == product_id,
            )
        )
        return result.scalar_one_or_none()

    async def _find_placeholder(
        self,
        invite_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> Optional[AffiliateProductCommission]:
        """Placeholder created for this invite, else the oldest unbound one for the product."""
        base = select(AffiliateProductCommission).where(
            AffiliateProductCommission.tenant_id == self.tenant_id,
            AffiliateProductCommission.product_id == product_id,
            AffiliateProductCommission.affiliate_id.is_(None),
        )
        result = await self.db.execute(
            base.where(AffiliateProductCommission.invite_id == invite_id).limit(1)
        )
        placeholder = result.scalar_one_or_none()
        if placeholder:
            return placeholder

        result = await self.db.execute(
            base.order_by(AffiliateProductCommission.created_at.asc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_or_create_tracking_link(
        self,
        affiliate_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> TrackingLink:
        """Return the (affiliate, product) tracking link, creating it on first use."""
        result = await self.db.execute(
            select(TrackingLink).where(
                TrackingLink.affiliate_id == affiliate_id,
                TrackingLink.product_id == product_id,
            )
        )
        link = result.scalar_one_or_none()
        if link:
            if link.tenant_id != self.tenant_id:
                raise InvariantViolationError("Tracking link belongs to another tenant")
            return link

        link = TrackingLink(
            tenant_id=self.tenant_id,
            affiliate_id=affiliate_id,
            product_id=product_id,
            tracking_code=new_tracking_code(),
            total_clicks=0,
            total_conversions=0,
            total_sales=Decimal("0"),
        )
        self.db.add(link)
        await self.db.flush()
        return link

    # ========================================================================
    # Default tier
    # ========================================================================

    async def ensure_default_tier(self) -> CommissionTier:
        """
        Return the tenant's default tier, seeding one if the tenant has none.

        Seeding locks the tenant row first, so two concurrent callers cannot
        both insert a default tier. Backends without row locks (SQLite) run
        the statement without the lock.
        """
        tier = await self.get_default_tier()
        if tier:
            return tier

        await self.db.execute(
            select(Tenant.id).where(Tenant.id == self.tenant_id).with_for_update()
        )
        tier = await self.get_default_tier()
        if tier:
            return tier

        tier = CommissionTier(
            tenant_id=self.tenant_id,
            tier_name=settings.DEFAULT_TIER_NAME,
            commission_percent=to_percent(settings.DEFAULT_TIER_PERCENT),
            min_sales=Decimal("0"),
        )
        self.db.add(tier)
        await self.db.flush()
        logger.info(
            f"Seeded default commission tier '{tier.tier_name}' "
            f"({tier.commission_percent}%) for tenant {self.tenant_id}"
        )
        return tier

    # ========================================================================
    # Invite lifecycle
    # ========================================================================

    async def create_invite_ledger_rows(
        self,
        invite: AffiliateInvite,
        products: Iterable[Product],
        use_product_commission: Dict[uuid.UUID, bool],
    ) -> List[AffiliateProductCommission]:
        """
        Create one unbound ledger row per invited product.

        ``use_product_commission`` maps product id to the per-product flag;
        missing products default to the tier rate.
        """
        tier = await self.ensure_default_tier()
        tier_rate = to_percent(tier.commission_percent)

        rows = []
        for product in products:
            use_product = use_product_commission.get(product.id, False)
            row = AffiliateProductCommission(
                tenant_id=self.tenant_id,
                affiliate_id=None,
                product_id=product.id,
                invite_id=invite.id,
                commission_tier_id=tier.id,
                commission_percent=tier_rate,
                product_commission=to_percent(product.commission_percent),
                rate_source=RateSource.PRODUCT.value if use_product else RateSource.TIER.value,
            )
            row.recompute_final()
            self.db.add(row)
            rows.append(row)

        await self.db.flush()
        logger.info(
            f"Created {len(rows)} ledger placeholder(s) for invite {invite.id} "
            f"(tier '{tier.tier_name}' {tier_rate}%)"
        )
        return rows

    async def bind_invite(
        self,
        invite: AffiliateInvite,
        affiliate: User,
    ) -> List[TrackingLink]:
        """
        Attach the invite's ledger rows to the affiliate who accepted it.

        For each invited product: the tracking link is fetched or created;
        a row the affiliate already holds is reused; otherwise the invite's
        placeholder (or any unbound one for the product) is bound; if none
        exists a new row is created at the product's own rate.

        Raises:
            InvariantViolationError: a fresh row is needed but the tenant has no tier
        """
        links = []
        for raw_product_id in invite.product_ids:
            product_id = uuid.UUID(str(raw_product_id))
            link = await self.get_or_create_tracking_link(affiliate.id, product_id)
            links.append(link)

            existing = await self._get_bound_row(affiliate.id, product_id)
            if existing:
                if existing.tracking_link_id is None:
                    existing.tracking_link_id = link.id
                await self._discard_invite_placeholder(invite.id, product_id)
                continue

            placeholder = await self._find_placeholder(invite.id, product_id)
            if placeholder:
                placeholder.affiliate_id = affiliate.id
                placeholder.tracking_link_id = link.id
                # flush per product so the unique constraint is checked in order
                await self.db.flush()
                continue

            await self._create_fallback_row(affiliate.id, product_id, invite.id, link.id)

        await self.db.flush()
        logger.info(
            f"Bound invite {invite.id} to affiliate {affiliate.id}: "
            f"{len(links)} product(s)"
        )
        return links

    async def _discard_invite_placeholder(self, invite_id: uuid.UUID, product_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(AffiliateProductCommission).where(
                AffiliateProductCommission.tenant_id == self.tenant_id,
                AffiliateProductCommission.invite_id == invite_id,
                AffiliateProductCommission.product_id == product_id,
                AffiliateProductCommission.affiliate_id.is_(None),
            )
        )
        for row in result.scalars().all():
            await self.db.delete(row)

    async def _create_fallback_row(
        self,
        affiliate_id: uuid.UUID,
        product_id: uuid.UUID,
        invite_id: uuid.UUID,
        tracking_link_id: uuid.UUID,
    ) -> AffiliateProductCommission:
        tier = await self.get_default_tier()
        if tier is None:
            logger.error(
                f"No commission tier for tenant {self.tenant_id} while binding "
                f"product {product_id} to affiliate {affiliate_id}"
            )
            raise InvariantViolationError(
                "No commission tier configured for tenant",
                details={"product_id": str(product_id)},
            )

        product = await self._get_product(product_id)
        product_rate = to_percent(product.commission_percent)

        row = AffiliateProductCommission(
            tenant_id=self.tenant_id,
            affiliate_id=affiliate_id,
            product_id=product_id,
            invite_id=invite_id,
            tracking_link_id=tracking_link_id,
            commission_tier_id=tier.id,
            commission_percent=to_percent(tier.commission_percent),
            product_commission=product_rate,
            final_commission=product_rate,
            rate_source=RateSource.PRODUCT.value,
        )
        self.db.add(row)
        await self.db.flush()
        logger.warning(
            f"No ledger placeholder for product {product_id}; created row for "
            f"affiliate {affiliate_id} at product rate {product_rate}%"
        )
        return row

    # ========================================================================
    # Rate source toggle
    # ========================================================================

    async def set_rate_source(
        self,
        affiliate_id: uuid.UUID,
        product_id: uuid.UUID,
        use_product_commission: bool,
    ) -> AffiliateProductCommission:
        """
        Switch an affiliate/product row between the product rate and the
        tier rate. Only ``final_commission`` and ``rate_source`` change.
        """
        row = await self._get_bound_row(affiliate_id, product_id)
        if not row:
            raise NotFoundError("Product commission not found")

        product = await self._get_product(product_id)
        tier = await self._get_tier(row.commission_tier_id)

        if use_product_commission:
            row.final_commission = to_percent(product.commission_percent)
            row.rate_source = RateSource.PRODUCT.value
        else:
            row.final_commission = to_percent(tier.commission_percent)
            row.rate_source = RateSource.TIER.value

        await self.db.flush()
        logger.info(
            f"Affiliate {affiliate_id} product {product_id}: rate source "
            f"'{row.rate_source}', final commission {row.final_commission}%"
        )
        return row

    # ========================================================================
    # Tier reassignment
    # ========================================================================

    async def reassign_tier(
        self,
        affiliate_id: uuid.UUID,
        new_tier_id: uuid.UUID,
    ) -> Tuple[CommissionTier, int, int]:
        """
        Move an affiliate to another tier and fan the new rate out to their
        tier-mode ledger rows. Product-mode rows are left as they are.

        Runs as one transaction.

        Returns:
            Tuple of (tier, rows_updated, rows_unchanged)
        """
        tier = await self._get_tier(new_tier_id)

        result = await self.db.execute(
            select(AffiliateDetails).where(
                AffiliateDetails.tenant_id == self.tenant_id,
                AffiliateDetails.user_id == affiliate_id,
            )
        )
        details = result.scalar_one_or_none()
        if not details:
            raise NotFoundError("Affiliate not found")

        tier_rate = to_percent(tier.commission_percent)
        updated = unchanged = 0

        async with with_transaction(self.db):
            details.current_tier_id = tier.id

            result = await self.db.execute(
                select(AffiliateProductCommission).where(
                    AffiliateProductCommission.tenant_id == self.tenant_id,
                    AffiliateProductCommission.affiliate_id == affiliate_id,
                )
            )
            for row in result.scalars().all():
                if row.rate_source == RateSource.PRODUCT.value:
                    unchanged += 1
                    continue
                row.commission_tier_id = tier.id
                row.commission_percent = tier_rate
                row.final_commission = tier_rate
                updated += 1

        logger.info(
            f"Affiliate {affiliate_id} moved to tier '{tier.tier_name}' ({tier_rate}%): "
            f"{updated} row(s) updated, {unchanged} product-rate row(s) kept"
        )
        return tier, updated, unchanged

    # ========================================================================
    # Product rate propagation
    # ========================================================================

    async def update_product_rate(
        self,
        product_id: uuid.UUID,
        commission_percent: Decimal,
    ) -> Tuple[Product, int, int]:
        """
        Change a product's own rate and refresh every ledger row for it.

        All rows get the new product snapshot; product-mode rows also get
        the new final commission. Runs as one transaction.

        Returns:
            Tuple of (product, rows_refreshed, finals_changed)
        """
        product = await self._get_product(product_id)
        new_rate = to_percent(commission_percent)
        refreshed = changed = 0

        async with with_transaction(self.db):
            product.commission_percent = new_rate

            result = await self.db.execute(
                select(AffiliateProductCommission).where(
                    AffiliateProductCommission.tenant_id == self.tenant_id,
                    AffiliateProductCommission.product_id == product_id,
                )
            )
            for row in result.scalars().all():
                row.product_commission = new_rate
                refreshed += 1
                if row.rate_source == RateSource.PRODUCT.value:
                    row.final_commission = new_rate
                    changed += 1

        logger.info(
            f"Product {product_id} rate set to {new_rate}%: {refreshed} ledger row(s) "
            f"refreshed, {changed} final commission(s) changed"
        )
        return product, refreshed, changed

    # ========================================================================
    # Reporting
    # ========================================================================

    async def list_affiliate_commissions(self, affiliate_id: uuid.UUID) -> List[dict]:
        """Ledger rows of one affiliate joined with product, tier and tracking link."""
        result = await self.db.execute(
            select(AffiliateProductCommission, Product, CommissionTier, TrackingLink)
            .join(Product, Product.id == AffiliateProductCommission.product_id)
            .join(CommissionTier, CommissionTier.id == AffiliateProductCommission.commission_tier_id)
            .outerjoin(TrackingLink, TrackingLink.id == AffiliateProductCommission.tracking_link_id)
            .where(
                AffiliateProductCommission.tenant_id == self.tenant_id,
                AffiliateProductCommission.affiliate_id == affiliate_id,
            )
            .order_by(Product.name.asc())
        )

        rows = []
        for ledger, product, tier, link in result.all():
            rows.append({
                "id": ledger.id,
                "affiliate_id": ledger.affiliate_id,
                "product_id": ledger.product_id,
                "commission_tier_id": ledger.commission_tier_id,
                "tracking_link_id": ledger.tracking_link_id,
                "commission_percent": ledger.commission_percent,
                "product_commission": ledger.product_commission,
                "final_commission": ledger.final_commission,
                "rate_source": ledger.rate_source,
                "use_product_commission": ledger.use_product_commission,
                "updated_at": ledger.updated_at,
                "product_name": product.name,
                "sku_code": product.sku_code,
                "tier_name": tier.tier_name,
                "tracking_code": link.tracking_code if link else None,
            })
        return rows
