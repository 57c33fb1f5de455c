from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.security import verify_access_token
from promohub.database import get_db
from promohub.models.user import User, UserRole


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)

DB = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    db: DB,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.

    The token's ``tenant_id`` claim must match the user's tenant.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    payload = verify_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_uuid = uuid.UUID(payload["sub"])
    except ValueError:
        logger.warning(f"Invalid user_id in token: {payload['sub']}")
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {user_uuid} not found")
        raise credentials_exception

    if payload.get("tenant_id") and payload["tenant_id"] != str(user.tenant_id):
        logger.warning(f"Tenant claim mismatch for user {user_uuid}")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.post("/tiers", dependencies=[Depends(require_roles(UserRole.ADMIN))])
        async def create_tier(...):
            ...
    """
    allowed = {role.value for role in roles}

    async def role_checker(user: CurrentUser) -> User:
        if user.role not in allowed:
            logger.warning(f"User {user.id} with role '{user.role}' denied; requires {sorted(allowed)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return user

    return role_checker


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
Participant = Annotated[User, Depends(require_roles(UserRole.INFLUENCER, UserRole.AFFILIATE))]


def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
