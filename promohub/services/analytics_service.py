import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.models.campaign import Campaign, CampaignStatus
from promohub.models.product import Product
from promohub.models.tracking import TrackingLink, TrackingEvent, TrackingEventType


def _rate(conversions: int, clicks: int) -> float:
    if not clicks:
        return 0.0
    return round(conversions / clicks * 100, 2)


class AnalyticsService:
    """Dashboard aggregates over tracking links and campaigns"""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def dashboard(self) -> dict:
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(TrackingLink.total_clicks), 0),
                func.coalesce(func.sum(TrackingLink.total_conversions), 0),
                func.coalesce(func.sum(TrackingLink.total_sales), 0),
                func.count(TrackingLink.id),
                func.count(distinct(TrackingLink.affiliate_id)),
            ).where(TrackingLink.tenant_id == self.tenant_id)
        )
        clicks, conversions, sales, links, affiliates = result.one()

        active_campaigns = await self.db.scalar(
            select(func.count(Campaign.id)).where(
                Campaign.tenant_id == self.tenant_id,
                Campaign.status == CampaignStatus.ACTIVE.value,
            )
        )

        return {
            "total_clicks": int(clicks),
            "total_conversions": int(conversions),
            "total_sales": Decimal(str(sales)).quantize(Decimal("0.01")),
            "conversion_rate": _rate(int(conversions), int(clicks)),
            "active_affiliates": affiliates,
            "active_campaigns": active_campaigns or 0,
            "tracking_links": links,
        }

    async def top_links(self, limit: int = 10) -> List[dict]:
        """Links ordered by conversions, then clicks."""
        result = await self.db.execute(
            select(TrackingLink, Product.name)
            .join(Product, Product.id == TrackingLink.product_id)
            .where(TrackingLink.tenant_id == self.tenant_id)
            .order_by(TrackingLink.total_conversions.desc(), TrackingLink.total_clicks.desc())
            .limit(limit)
        )
        return [
            {
                "tracking_code": link.tracking_code,
                "affiliate_id": link.affiliate_id,
                "product_id": link.product_id,
                "product_name": product_name,
                "total_clicks": link.total_clicks,
                "total_conversions": link.total_conversions,
                "total_sales": link.total_sales,
                "conversion_rate": link.conversion_rate,
            }
            for link, product_name in result.all()
        ]

    async def list_events(
        self,
        event_type: Optional[TrackingEventType] = None,
        limit: int = 100,
    ) -> List[dict]:
        """Most recent tracking events of the tenant, newest first."""
        query = (
            select(TrackingEvent, TrackingLink.tracking_code)
            .join(TrackingLink, TrackingLink.id == TrackingEvent.tracking_link_id)
            .where(TrackingEvent.tenant_id == self.tenant_id)
        )
        if event_type:
            query = query.where(TrackingEvent.type == TrackingEventType(event_type).value)

        result = await self.db.execute(
            query.order_by(TrackingEvent.created_at.desc()).limit(limit)
        )
        return [
            {
                "id": event.id,
                "type": event.type,
                "tracking_code": tracking_code,
                "affiliate_id": event.affiliate_id,
                "metadata": event.event_metadata or {},
                "created_at": event.created_at,
            }
            for event, tracking_code in result.all()
        ]
