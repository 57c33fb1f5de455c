"""
Tracking models: per affiliate/product links and the raw events recorded
against them.
"""
import uuid
import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from promohub.database import Base
from promohub.db_types import JSONType, MoneyType


class TrackingEventType(str, enum.Enum):
    CLICK = "click"
    CONVERSION = "conversion"
    SALE = "sale"


class TrackingLink(Base):
    """
    Unique tracking code for one (affiliate, product) pair.
    Counters are only ever changed with single-statement increments.
    """
    __tablename__ = "tracking_links"
    __table_args__ = (
        UniqueConstraint("affiliate_id", "product_id", name="uq_tracking_link_affiliate_product"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )

    tracking_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    total_clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_conversions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_sales: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def conversion_rate(self) -> float:
        """Conversions per click as a percentage."""
        if not self.total_clicks:
            return 0.0
        return round(self.total_conversions / self.total_clicks * 100, 2)

    def __repr__(self) -> str:
        return f"<TrackingLink(code='{self.tracking_code}', clicks={self.total_clicks})>"


class TrackingEvent(Base):
    """Raw click/conversion/sale event recorded against a tracking link."""
    __tablename__ = "tracking_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tracking_link_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tracking_links.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    event_metadata: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<TrackingEvent(type='{self.type}', link={self.tracking_link_id})>"
