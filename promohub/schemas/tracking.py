"""Pydantic schemas for tracking links and events."""
from datetime import datetime
from typing import Any, Dict, List
from decimal import Decimal
from uuid import UUID
from pydantic import Field

from promohub.schemas.base import BaseResponseSchema, BaseCreateSchema
from promohub.models.tracking import TrackingEventType


class TrackingEventCreate(BaseCreateSchema):
    type: TrackingEventType
    tracking_code: str = Field(..., min_length=1, max_length=64)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TrackingLinkResponse(BaseResponseSchema):
    id: UUID
    affiliate_id: UUID
    product_id: UUID
    tracking_code: str
    total_clicks: int
    total_conversions: int
    total_sales: Decimal
    conversion_rate: float
    created_at: datetime


class TrackingEventRecorded(BaseResponseSchema):
    """Result of recording one event: the link's counters after the update."""
    event_id: UUID
    tracking_code: str
    type: str
    total_clicks: int
    total_conversions: int
    total_sales: Decimal


class TrackingEventResponse(BaseResponseSchema):
    id: UUID
    type: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    created_at: datetime


class TrackingMetricsResponse(BaseResponseSchema):
    link: TrackingLinkResponse
    events: List[TrackingEventResponse]
