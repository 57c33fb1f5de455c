import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.models.tenant import Tenant, TenantStatus
from promohub.models.user import User, UserRole
from promohub.core.exceptions import ConflictError
from promohub.core.security import verify_password, get_password_hash, create_access_token
from promohub.config import settings
from promohub.schemas.auth import TenantRegisterRequest

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for signup, user login and token issuing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate_user(
        self,
        email: str,
        password: str
    ) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User object if authentication successful, None otherwise
        """
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()

        if user is None:
            return None

        if not verify_password(password, user.password_hash):
            return None

        if not user.is_active:
            return None

        return user

    async def register_tenant(self, data: TenantRegisterRequest) -> Tuple[Tenant, User]:
        """
        Create a tenant on a trial plan together with its admin user.

        Raises:
            ConflictError: subdomain or email already taken
        """
        subdomain = data.subdomain.lower()
        email = data.email.lower()

        existing = await self.db.execute(select(Tenant.id).where(Tenant.subdomain == subdomain))
        if existing.scalar_one_or_none():
            raise ConflictError("Subdomain already registered")

        existing = await self.db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none():
            raise ConflictError("Email is already registered")

        tenant = Tenant(
            name=data.company_name,
            subdomain=subdomain,
            status=TenantStatus.TRIAL.value,
            settings={},
            trial_ends_at=datetime.now(timezone.utc) + timedelta(days=settings.TRIAL_PERIOD_DAYS),
        )
        self.db.add(tenant)
        await self.db.flush()

        admin = User(
            tenant_id=tenant.id,
            email=email,
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=UserRole.ADMIN.value,
            is_active=True,
        )
        self.db.add(admin)
        await self.db.flush()

        logger.info(f"Registered tenant '{subdomain}' with admin {email}")
        return tenant, admin

    @staticmethod
    def create_token(user: User) -> Tuple[str, int]:
        """
        Issue an access token carrying the user's tenant and role.

        Returns:
            Tuple of (access_token, expires_in_seconds)
        """
        token = create_access_token(
            subject=user.id,
            additional_claims={
                "tenant_id": str(user.tenant_id),
                "role": user.role,
            },
        )
        return token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
