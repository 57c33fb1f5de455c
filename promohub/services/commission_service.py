"""
Commission Tier & Rule Store

Tenant-scoped CRUD for commission tiers and commission rules. Tiers are
always listed by ``min_sales`` ascending; rules by priority.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Mapping, Any, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.exceptions import NotFoundError, ConflictError, ValidationFailedError
from promohub.models.commission import (
    CommissionTier,
    CommissionRule,
    AffiliateDetails,
    AffiliateProductCommission,
)
from promohub.schemas.commission import (
    CommissionTierCreate,
    CommissionTierUpdate,
    CommissionRuleCreate,
    CommissionRuleUpdate,
)
from promohub.services.rule_evaluator import RuleConditionEvaluator, UnconfiguredRuleEvaluator

logger = logging.getLogger(__name__)


class CommissionService:
    """Service for commission tier and rule management"""

    def __init__(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        evaluator: Optional[RuleConditionEvaluator] = None,
    ):
        self.db = db
        self.tenant_id = tenant_id
        self.evaluator = evaluator or UnconfiguredRuleEvaluator()

    # ========================================================================
    # Tiers
    # ========================================================================

    async def list_tiers(self) -> List[CommissionTier]:
        result = await self.db.execute(
            select(CommissionTier)
            .where(CommissionTier.tenant_id == self.tenant_id)
            .order_by(CommissionTier.min_sales.asc(), CommissionTier.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_tier(self, tier_id: uuid.UUID) -> CommissionTier:
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

    async def create_tier(self, data: CommissionTierCreate) -> CommissionTier:
        tier = CommissionTier(
            tenant_id=self.tenant_id,
            tier_name=data.tier_name,
            commission_percent=data.commission_percent,
            min_sales=data.min_sales,
        )
        self.db.add(tier)
        await self.db.flush()
        logger.info(
            f"Created commission tier '{tier.tier_name}' ({tier.commission_percent}%) "
            f"for tenant {self.tenant_id}"
        )
        return tier

    async def update_tier(self, tier_id: uuid.UUID, data: CommissionTierUpdate) -> CommissionTier:
        """
        Update a tier's definition.

        Ledger rows keep their snapshot of the old rate until the affiliate
        is reassigned.
        """
        tier = await self.get_tier(tier_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                raise ValidationFailedError(f"{field} cannot be null")
            setattr(tier, field, value)
        await self.db.flush()
        logger.info(f"Updated commission tier {tier.id} for tenant {self.tenant_id}")
        return tier

    async def delete_tier(self, tier_id: uuid.UUID) -> None:
        tier = await self.get_tier(tier_id)

        in_use = await self.db.scalar(
            select(func.count(AffiliateProductCommission.id)).where(
                AffiliateProductCommission.commission_tier_id == tier.id
            )
        )
        assigned = await self.db.scalar(
            select(func.count(AffiliateDetails.id)).where(
                AffiliateDetails.current_tier_id == tier.id
            )
        )
        if in_use or assigned:
            raise ConflictError(
                "Commission tier is in use and cannot be deleted",
                details={"ledger_rows": in_use, "affiliates": assigned},
            )

        await self.db.delete(tier)
        await self.db.flush()
        logger.info(f"Deleted commission tier {tier_id} for tenant {self.tenant_id}")

    # ========================================================================
    # Rules
    # ========================================================================

    async def list_rules(self) -> List[CommissionRule]:
        result = await self.db.execute(
            select(CommissionRule)
            .where(CommissionRule.tenant_id == self.tenant_id)
            .order_by(CommissionRule.priority.desc(), CommissionRule.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_rule(self, rule_id: uuid.UUID) -> CommissionRule:
        result = await self.db.execute(
            select(CommissionRule).where(
                CommissionRule.id == rule_id,
                CommissionRule.tenant_id == self.tenant_id,
            )
        )
        rule = result.scalar_one_or_none()
        if not rule:
            raise NotFoundError("Commission rule not found")
        return rule

    async def create_rule(self, data: CommissionRuleCreate) -> CommissionRule:
        values = data.model_dump(exclude_none=True)
        values["type"] = data.type.value
        values["value_type"] = data.value_type.value
        values["status"] = data.status.value

        rule = CommissionRule(tenant_id=self.tenant_id, **values)
        self.db.add(rule)
        await self.db.flush()
        logger.info(f"Created commission rule '{rule.name}' for tenant {self.tenant_id}")
        return rule

    async def update_rule(self, rule_id: uuid.UUID, data: CommissionRuleUpdate) -> CommissionRule:
        rule = await self.get_rule(rule_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field not in ("description", "end_date"):
                raise ValidationFailedError(f"{field} cannot be null")
            if hasattr(value, "value"):
                value = value.value
            setattr(rule, field, value)

        if rule.end_date is not None and _as_aware(rule.end_date) <= _as_aware(rule.start_date):
            raise ValidationFailedError("end_date must be after start_date")

        await self.db.flush()
        logger.info(f"Updated commission rule {rule.id} for tenant {self.tenant_id}")
        return rule

    async def delete_rule(self, rule_id: uuid.UUID) -> None:
        rule = await self.get_rule(rule_id)
        await self.db.delete(rule)
        await self.db.flush()
        logger.info(f"Deleted commission rule {rule_id} for tenant {self.tenant_id}")

    async def active_rules(self, at: Optional[datetime] = None) -> List[CommissionRule]:
        """Active rules whose validity window covers ``at``, highest priority first."""
        moment = at or datetime.now(timezone.utc)
        return [rule for rule in await self.list_rules() if rule.is_effective_at(moment)]

    async def matching_rules(
        self,
        context: Mapping[str, Any],
        at: Optional[datetime] = None,
    ) -> List[CommissionRule]:
        """
        Active rules whose condition holds for ``context``.

        Raises RuleEvaluationNotConfigured with the default evaluator.
        """
        return [
            rule for rule in await self.active_rules(at)
            if self.evaluator.evaluate(rule.condition, context)
        ]


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
