from typing import List

from fastapi import APIRouter, Request, status

from promohub.api.deps import DB, CurrentUser, get_client_ip
from promohub.models.user import UserRole
from promohub.schemas.tracking import (
    TrackingEventCreate,
    TrackingEventRecorded,
    TrackingEventResponse,
    TrackingLinkResponse,
    TrackingMetricsResponse,
)
from promohub.services.tracking_service import TrackingService

router = APIRouter()


@router.post("/event", response_model=TrackingEventRecorded, status_code=status.HTTP_201_CREATED)
async def record_event(data: TrackingEventCreate, request: Request, db: DB):
    """
    Record a click, conversion or sale. Public: the tracking code identifies
    the link and its tenant.
    """
    return await TrackingService(db).record_event(
        data.type,
        data.tracking_code,
        data.metadata,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/metrics/{tracking_code}", response_model=TrackingMetricsResponse)
async def get_metrics(tracking_code: str, db: DB, current_user: CurrentUser):
    """Counters and recent events. Admins see every link, affiliates only their own."""
    owner_id = None if current_user.role == UserRole.ADMIN.value else current_user.id
    service = TrackingService(db, current_user.tenant_id)
    link, events = await service.get_metrics(tracking_code, owner_id=owner_id)
    return TrackingMetricsResponse(
        link=TrackingLinkResponse.model_validate(link),
        events=[TrackingEventResponse.model_validate(event) for event in events],
    )


@router.get("/links", response_model=List[TrackingLinkResponse])
async def list_links(db: DB, current_user: CurrentUser):
    """Tracking links of the current affiliate."""
    return await TrackingService(db, current_user.tenant_id).list_links(current_user.id)
