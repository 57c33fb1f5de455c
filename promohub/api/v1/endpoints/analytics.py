from typing import List, Optional

from fastapi import APIRouter, Query

from promohub.api.deps import DB, AdminUser
from promohub.models.tracking import TrackingEventType
from promohub.schemas.analytics import DashboardResponse, TopLinkResponse, EventFeedItem
from promohub.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("", response_model=DashboardResponse)
async def get_dashboard(db: DB, admin: AdminUser):
    """Tenant-wide click, conversion and sales totals."""
    return await AnalyticsService(db, admin.tenant_id).dashboard()


@router.get("/top-links", response_model=List[TopLinkResponse])
async def get_top_links(db: DB, admin: AdminUser, limit: int = Query(10, ge=1, le=100)):
    return await AnalyticsService(db, admin.tenant_id).top_links(limit)


@router.get("/events", response_model=List[EventFeedItem])
async def get_events(
    db: DB,
    admin: AdminUser,
    event_type: Optional[TrackingEventType] = Query(None, alias="type"),
    limit: int = Query(100, ge=1, le=500),
):
    """Event timeline across all tracking links of the tenant."""
    return await AnalyticsService(db, admin.tenant_id).list_events(event_type, limit)
