"""Pydantic schemas for Product."""
from datetime import datetime
from typing import Optional
from decimal import Decimal
from uuid import UUID
from pydantic import Field

from promohub.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from promohub.models.product import ProductStatus


class ProductCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sku_code: str = Field(..., min_length=1, max_length=50)
    category: Optional[str] = Field(None, max_length=100)
    price: Decimal = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    commission_percent: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    status: ProductStatus = ProductStatus.ACTIVE


class ProductUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: Optional[ProductStatus] = None


class ProductResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    sku_code: str
    category: Optional[str] = None
    price: Decimal
    currency: str
    commission_percent: Optional[Decimal] = None
    status: str
    created_at: datetime
    updated_at: datetime
