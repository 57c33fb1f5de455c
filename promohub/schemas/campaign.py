"""Pydantic schemas for campaigns and influencer participation."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import Field, model_validator

from promohub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from promohub.models.campaign import CampaignStatus, CampaignType


# ==================== Campaign Schemas ====================

class CampaignCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: CampaignType = CampaignType.PRODUCT
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: datetime
    end_date: Optional[datetime] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CampaignUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[CampaignType] = None
    status: Optional[CampaignStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    metrics: Optional[Dict[str, Any]] = None


class CampaignResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    type: str
    status: str
    start_date: datetime
    end_date: Optional[datetime] = None
    metrics: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


# ==================== Participation Schemas ====================

class ParticipationResponse(BaseResponseSchema):
    id: UUID
    campaign_id: UUID
    influencer_id: UUID
    status: str
    metrics: Dict[str, Any]
    promotional_links: List[str]
    promotional_codes: List[str]
    joined_at: datetime
    completed_at: Optional[datetime] = None


class CampaignMetricsResponse(BaseResponseSchema):
    campaign_id: UUID
    name: str
    status: str
    total_participants: int
    participants_by_status: Dict[str, int]
    metrics: Dict[str, Any]
