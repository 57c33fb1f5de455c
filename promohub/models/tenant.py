"""
Tenant model: the isolation boundary for every other table.
"""
from sqlalchemy import String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
import enum
import uuid
from typing import Optional

from promohub.database import Base
from promohub.db_types import JSONType


class TenantStatus(str, enum.Enum):
    """Lifecycle status of a tenant."""
    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class Tenant(Base):
    """
    Tenant/Organization model

    Each tenant is a business running its own affiliate program. All
    operational rows carry a ``tenant_id`` pointing here.
    """
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subdomain: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TenantStatus.ACTIVE.value, nullable=False)
    settings: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def is_operational(self) -> bool:
        return self.status in (TenantStatus.ACTIVE.value, TenantStatus.TRIAL.value)

    def __repr__(self) -> str:
        return f"<Tenant(subdomain='{self.subdomain}', status='{self.status}')>"
