import logging

from fastapi import APIRouter, HTTPException, status, Request

from promohub.api.deps import DB, CurrentUser, get_client_ip
from promohub.api.rate_limit import limiter
from promohub.config import settings
from promohub.schemas.auth import (
    LoginRequest,
    TokenResponse,
    UserResponse,
    TenantRegisterRequest,
    TenantResponse,
    RegisterResponse,
)
from promohub.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.REGISTER_RATE_LIMIT)
async def register(request: Request, data: TenantRegisterRequest, db: DB):
    """
    Sign up a new tenant.

    Creates the tenant on a trial plan and its first admin user, and
    returns an access token for that admin.
    """
    auth_service = AuthService(db)
    tenant, admin = await auth_service.register_tenant(data)
    access_token, expires_in = auth_service.create_token(admin)

    return RegisterResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user=UserResponse.model_validate(admin),
        tenant=TenantResponse.model_validate(tenant),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(request: Request, data: LoginRequest, db: DB):
    """
    Authenticate user and return an access token.
    Attempts are limited per client IP.
    """
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(data.email, data.password)

    if not user:
        logger.info(f"Failed login for {data.email} from {get_client_ip(request)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, expires_in = auth_service.create_token(user)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    """Get the authenticated user."""
    return current_user
