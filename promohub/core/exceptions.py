"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status it maps to; ``promohub.main``
registers a single handler that renders them as ``{"error", "details"}``.
"""
from typing import Any, Optional


class PromoHubError(Exception):
    """Base class for errors the API turns into an error response."""
    status_code: int = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(PromoHubError):
    """Raised when a tenant-scoped entity does not exist (or is not visible)."""
    status_code = 404


class ConflictError(PromoHubError):
    """Raised on duplicates: same campaign name, second join, accepted invite."""
    status_code = 400


class ValidationFailedError(PromoHubError):
    """Raised for business-rule validation failures the schemas cannot express."""
    status_code = 400


class AuthenticationError(PromoHubError):
    status_code = 401


class TenantAccessError(PromoHubError):
    """Raised when the caller may not act on the requested resource."""
    status_code = 403


class InvariantViolationError(PromoHubError):
    """Raised when stored data breaks an assumption the engine depends on."""
    status_code = 500
