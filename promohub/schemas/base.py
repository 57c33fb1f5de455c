"""
Base Schema Classes for Pydantic Models

Response schemas read from ORM models and serialize with snake_case keys.
Input schemas accept both snake_case and camelCase keys, so clients written
against the camelCase API (``affiliateId``, ``useProductCommission``) keep
working.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class ProductResponse(BaseResponseSchema):
            id: UUID
            name: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Accepts field names or their camelCase aliases; unknown keys are ignored.
    """
    model_config = ConfigDict(
        extra='ignore',
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates; only the
    fields the client actually sent are applied (``exclude_unset``).
    """
    model_config = ConfigDict(
        extra='ignore',
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(BaseModel):
    """Envelope used for every error response."""
    error: str
    details: Optional[Any] = None
