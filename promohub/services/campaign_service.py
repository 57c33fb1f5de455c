"""
Campaign Service

Campaign CRUD and influencer participation:
- Campaign names are unique per tenant
- One participation per (campaign, influencer)
- Each participation gets a deterministic promotional code
"""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.exceptions import NotFoundError, ConflictError, ValidationFailedError
from promohub.models.campaign import (
    Campaign,
    CampaignParticipation,
    CampaignStatus,
    ParticipationStatus,
)
from promohub.schemas.campaign import CampaignCreate, CampaignUpdate

logger = logging.getLogger(__name__)

# 48 bits: collisions within one campaign are negligible
PROMO_DIGEST_LENGTH = 12

DEFAULT_CAMPAIGN_METRICS = {
    "total_reach": 0,
    "engagement_rate": 0,
    "conversions": 0,
    "revenue": 0,
}

DEFAULT_PARTICIPATION_METRICS = {
    "reach": 0,
    "engagement": 0,
    "clicks": 0,
    "conversions": 0,
    "revenue": 0,
}


def generate_promo_code(campaign_id: uuid.UUID, influencer_id: uuid.UUID) -> str:
    """
    Promo code for an influencer in a campaign.
    Format: first 6 hex digits of the campaign id, then 12 hex digits of a
    SHA-256 over both full ids (e.g. 3F2A9C-0D4E91B7C2A5).

    Always the same for the same pair.
    """
    digest = hashlib.sha256(campaign_id.bytes + influencer_id.bytes).hexdigest()
    return f"{campaign_id.hex[:6]}-{digest[:PROMO_DIGEST_LENGTH]}".upper()


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class CampaignService:
    """Service for campaign operations"""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    # ========================================================================
    # Campaigns
    # ========================================================================

    async def list_campaigns(self, status: Optional[str] = None) -> List[Campaign]:
        query = select(Campaign).where(Campaign.tenant_id == self.tenant_id)
        if status:
            query = query.where(Campaign.status == status)
        result = await self.db.execute(query.order_by(Campaign.created_at.desc()))
        return list(result.scalars().all())

    async def get_campaign(self, campaign_id: uuid.UUID) -> Campaign:
        result = await self.db.execute(
            select(Campaign).where(
                Campaign.id == campaign_id,
                Campaign.tenant_id == self.tenant_id,
            )
        )
        campaign = result.scalar_one_or_none()
        if not campaign:
            raise NotFoundError("Campaign not found")
        return campaign

    async def _ensure_name_available(self, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(func.count(Campaign.id)).where(
            Campaign.tenant_id == self.tenant_id,
            Campaign.name == name,
        )
        if exclude_id:
            query = query.where(Campaign.id != exclude_id)
        if await self.db.scalar(query):
            raise ConflictError("Campaign with this name already exists")

    async def create_campaign(self, data: CampaignCreate, created_by: Optional[uuid.UUID] = None) -> Campaign:
        await self._ensure_name_available(data.name)

        campaign = Campaign(
            tenant_id=self.tenant_id,
            name=data.name,
            description=data.description,
            type=data.type.value,
            status=data.status.value,
            start_date=data.start_date,
            end_date=data.end_date,
            metrics={**DEFAULT_CAMPAIGN_METRICS, **data.metrics},
            created_by=created_by,
        )
        self.db.add(campaign)
        await self.db.flush()
        logger.info(f"Created campaign '{campaign.name}' for tenant {self.tenant_id}")
        return campaign

    async def update_campaign(self, campaign_id: uuid.UUID, data: CampaignUpdate) -> Campaign:
        campaign = await self.get_campaign(campaign_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("name") and changes["name"] != campaign.name:
            await self._ensure_name_available(changes["name"], exclude_id=campaign.id)

        for field, value in changes.items():
            if value is None and field not in ("description", "end_date"):
                raise ValidationFailedError(f"{field} cannot be null")
            if hasattr(value, "value"):
                value = value.value
            setattr(campaign, field, value)

        if campaign.end_date is not None and _aware(campaign.end_date) <= _aware(campaign.start_date):
            raise ValidationFailedError("end_date must be after start_date")

        await self.db.flush()
        return campaign

    async def delete_campaign(self, campaign_id: uuid.UUID) -> None:
        campaign = await self.get_campaign(campaign_id)
        await self.db.delete(campaign)
        await self.db.flush()
        logger.info(f"Deleted campaign {campaign_id} for tenant {self.tenant_id}")

    # ========================================================================
    # Participation
    # ========================================================================

    async def join_campaign(self, campaign_id: uuid.UUID, influencer_id: uuid.UUID) -> CampaignParticipation:
        """
        Enrol an influencer in a campaign.

        Raises:
            NotFoundError: campaign not in this tenant
            ConflictError: influencer already participates
            ValidationFailedError: campaign already completed
        """
        existing = await self.db.execute(
            select(CampaignParticipation.id).where(
                CampaignParticipation.campaign_id == campaign_id,
                CampaignParticipation.influencer_id == influencer_id,
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictError("Already participating in this campaign")

        campaign = await self.get_campaign(campaign_id)
        if campaign.status == CampaignStatus.COMPLETED.value:
            raise ValidationFailedError("Campaign has already completed")

        promo_code = generate_promo_code(campaign.id, influencer_id)
        participation = CampaignParticipation(
            tenant_id=self.tenant_id,
            campaign_id=campaign.id,
            influencer_id=influencer_id,
            status=ParticipationStatus.PENDING.value,
            metrics=dict(DEFAULT_PARTICIPATION_METRICS),
            promotional_links=[],
            promotional_codes=[promo_code],
        )
        self.db.add(participation)
        await self.db.flush()
        logger.info(f"Influencer {influencer_id} joined campaign {campaign.id} with code {promo_code}")
        return participation

    async def list_participations(self, influencer_id: uuid.UUID) -> List[CampaignParticipation]:
        result = await self.db.execute(
            select(CampaignParticipation)
            .where(
                CampaignParticipation.tenant_id == self.tenant_id,
                CampaignParticipation.influencer_id == influencer_id,
            )
            .order_by(CampaignParticipation.joined_at.desc())
        )
        return list(result.scalars().all())

    async def get_campaign_metrics(self, campaign_id: uuid.UUID) -> dict:
        campaign = await self.get_campaign(campaign_id)

        result = await self.db.execute(
            select(CampaignParticipation.status, func.count(CampaignParticipation.id))
            .where(
                CampaignParticipation.tenant_id == self.tenant_id,
                CampaignParticipation.campaign_id == campaign.id,
            )
            .group_by(CampaignParticipation.status)
        )
        by_status: Dict[str, int] = {status.value: 0 for status in ParticipationStatus}
        for status, count in result.all():
            by_status[status] = count

        return {
            "campaign_id": campaign.id,
            "name": campaign.name,
            "status": campaign.status,
            "total_participants": sum(by_status.values()),
            "participants_by_status": by_status,
            "metrics": campaign.metrics,
        }
