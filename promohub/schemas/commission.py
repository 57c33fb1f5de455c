"""Pydantic schemas for commission tiers, rules and product rates."""
from datetime import datetime
from typing import Optional
from decimal import Decimal
from uuid import UUID
from pydantic import Field, model_validator

from promohub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from promohub.models.commission import RuleType, RuleValueType, RuleStatus


# ==================== CommissionTier Schemas ====================

class CommissionTierCreate(BaseCreateSchema):
    """Schema for creating a CommissionTier."""
    tier_name: str = Field(..., min_length=1, max_length=100)
    commission_percent: Decimal = Field(..., ge=0, le=100, decimal_places=2)
    min_sales: Decimal = Field(Decimal("0"), ge=0)


class CommissionTierUpdate(BaseUpdateSchema):
    """Schema for updating a CommissionTier."""
    tier_name: Optional[str] = Field(None, min_length=1, max_length=100)
    commission_percent: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    min_sales: Optional[Decimal] = Field(None, ge=0)


class CommissionTierResponse(BaseResponseSchema):
    """Response schema for CommissionTier."""
    id: UUID
    tier_name: str
    commission_percent: Decimal
    min_sales: Decimal
    created_at: datetime


# ==================== CommissionRule Schemas ====================

class CommissionRuleCreate(BaseCreateSchema):
    """Schema for creating a CommissionRule."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: RuleType
    condition: str = Field(..., min_length=1)
    value: Decimal = Field(..., ge=0)
    value_type: RuleValueType
    status: RuleStatus = RuleStatus.ACTIVE
    priority: int = Field(0, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CommissionRuleUpdate(BaseUpdateSchema):
    """Schema for updating a CommissionRule."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[RuleType] = None
    condition: Optional[str] = Field(None, min_length=1)
    value: Optional[Decimal] = Field(None, ge=0)
    value_type: Optional[RuleValueType] = None
    status: Optional[RuleStatus] = None
    priority: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CommissionRuleResponse(BaseResponseSchema):
    """Response schema for CommissionRule."""
    id: UUID
    name: str
    description: Optional[str] = None
    type: str
    condition: str
    value: Decimal
    value_type: str
    status: str
    priority: int
    start_date: datetime
    end_date: Optional[datetime] = None
    created_at: datetime


# ==================== Product Rate Schemas ====================

class ProductRateUpdate(BaseCreateSchema):
    """New own commission rate for a product."""
    commission_percent: Decimal = Field(..., ge=0, le=100, decimal_places=2)


class ProductRateResponse(BaseResponseSchema):
    id: UUID
    name: str
    sku_code: str
    price: Decimal
    commission_percent: Optional[Decimal] = None
    status: str


class ProductRateUpdateResponse(BaseResponseSchema):
    product: ProductRateResponse
    ledger_rows_refreshed: int
    final_commissions_changed: int
