import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from promohub.config import settings
from promohub.api.rate_limit import limiter
from promohub.api.v1.router import api_router
from promohub.core.exceptions import PromoHubError
from promohub.database import async_session_factory
from promohub.jobs.scheduler import start_scheduler, shutdown_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Start background scheduler (if enabled)

    Schema changes are applied with Alembic, not at startup.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    shutdown_scheduler()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Authentication", "description": "Tenant signup and JWT login"},
    {"name": "Commissions", "description": "Commission tiers, rules and product rates"},
    {"name": "Affiliates", "description": "Affiliate invites and per-product commissions"},
    {"name": "Tracking", "description": "Tracking links and click/conversion events"},
    {"name": "Products", "description": "Product catalog"},
    {"name": "Campaigns", "description": "Campaigns and influencer participation"},
    {"name": "Analytics", "description": "Program performance"},
    {"name": "Health", "description": "Service health"},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting (shared instance from promohub.api.rate_limit)
app.state.limiter = limiter

app.include_router(api_router)


def _error_response(status_code: int, message: str, details=None, headers=None) -> JSONResponse:
    content = {"error": message}
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(PromoHubError)
async def promohub_exception_handler(request: Request, exc: PromoHubError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return _error_response(exc.status_code, exc.message, exc.details)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    retry_after = exc.limit.limit.get_expiry()
    logger.warning(f"Rate limit {exc.detail} hit on {request.url.path}")
    return _error_response(
        429,
        "Too many requests. Please try again later.",
        {"limit": exc.detail, "retry_after_seconds": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 with field-level details."""
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return _error_response(400, "Validation failed", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    """Unique constraint races surface as conflicts, not server errors."""
    logger.warning(f"{request.method} {request.url.path}: integrity error {exc.orig}")
    return _error_response(400, "Conflicting update, please retry")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(500, "Internal server error")


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.warning(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status
