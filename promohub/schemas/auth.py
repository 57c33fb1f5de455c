"""Pydantic schemas for authentication."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from promohub.schemas.base import BaseResponseSchema, BaseCreateSchema


class LoginRequest(BaseCreateSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseResponseSchema):
    id: UUID
    tenant_id: UUID
    email: str
    first_name: str
    last_name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime


class TokenResponse(BaseResponseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# ==================== Tenant signup ====================

class TenantRegisterRequest(BaseCreateSchema):
    """Create a tenant and its first admin account."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company_name: str = Field(..., min_length=2, max_length=255)
    subdomain: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")


class TenantResponse(BaseResponseSchema):
    id: UUID
    name: str
    subdomain: str
    status: str
    trial_ends_at: Optional[datetime] = None
    created_at: datetime


class RegisterResponse(TokenResponse):
    tenant: TenantResponse
