"""Pydantic schemas for the analytics dashboard."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from promohub.schemas.base import BaseResponseSchema


class DashboardResponse(BaseResponseSchema):
    total_clicks: int
    total_conversions: int
    total_sales: Decimal
    conversion_rate: float
    active_affiliates: int
    active_campaigns: int
    tracking_links: int


class TopLinkResponse(BaseResponseSchema):
    tracking_code: str
    affiliate_id: UUID
    product_id: UUID
    product_name: str
    total_clicks: int
    total_conversions: int
    total_sales: Decimal
    conversion_rate: float


class EventFeedItem(BaseResponseSchema):
    id: UUID
    type: str
    tracking_code: str
    affiliate_id: Optional[UUID] = None
    metadata: Dict[str, Any]
    created_at: datetime
