from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from promohub.api.deps import DB, CurrentUser, AdminUser, Participant
from promohub.models.campaign import CampaignStatus
from promohub.schemas.campaign import (
    CampaignCreate,
    CampaignUpdate,
    CampaignResponse,
    CampaignMetricsResponse,
    ParticipationResponse,
)
from promohub.services.campaign_service import CampaignService

router = APIRouter()


@router.get("", response_model=List[CampaignResponse])
async def list_campaigns(
    db: DB,
    current_user: CurrentUser,
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
):
    status_value = status_filter.value if status_filter else None
    return await CampaignService(db, current_user.tenant_id).list_campaigns(status_value)


@router.get("/participations", response_model=List[ParticipationResponse])
async def list_participations(db: DB, current_user: CurrentUser):
    """Campaigns the current user participates in."""
    return await CampaignService(db, current_user.tenant_id).list_participations(current_user.id)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(campaign_id: UUID, db: DB, current_user: CurrentUser):
    return await CampaignService(db, current_user.tenant_id).get_campaign(campaign_id)


@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(data: CampaignCreate, db: DB, admin: AdminUser):
    return await CampaignService(db, admin.tenant_id).create_campaign(data, created_by=admin.id)


@router.put("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(campaign_id: UUID, data: CampaignUpdate, db: DB, admin: AdminUser):
    return await CampaignService(db, admin.tenant_id).update_campaign(campaign_id, data)


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(campaign_id: UUID, db: DB, admin: AdminUser):
    await CampaignService(db, admin.tenant_id).delete_campaign(campaign_id)


@router.post("/{campaign_id}/join", response_model=ParticipationResponse, status_code=status.HTTP_201_CREATED)
async def join_campaign(campaign_id: UUID, db: DB, participant: Participant):
    """Join a campaign; a promotional code is generated for the participant."""
    return await CampaignService(db, participant.tenant_id).join_campaign(campaign_id, participant.id)


@router.get("/{campaign_id}/metrics", response_model=CampaignMetricsResponse)
async def get_campaign_metrics(campaign_id: UUID, db: DB, current_user: CurrentUser):
    return await CampaignService(db, current_user.tenant_id).get_campaign_metrics(campaign_id)
