import uuid
import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from promohub.database import Base
from promohub.db_types import MoneyType, PercentType


class ProductStatus(str, enum.Enum):
    """Product availability status."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Product(Base):
    """
    Product a tenant offers to its affiliates for promotion.

    ``commission_percent`` is the product's own suggested rate; it can be
    preferred over the affiliate's tier rate per affiliate/product pair.
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("tenant_id", "sku_code", name="uq_product_tenant_sku"),
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

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sku_code: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    commission_percent: Mapped[Optional[Decimal]] = mapped_column(
        PercentType,
        nullable=True,
        comment="Product's own commission rate (%)"
    )

    status: Mapped[str] = mapped_column(String(10), default=ProductStatus.ACTIVE.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def effective_commission_percent(self) -> Decimal:
        """Product rate with a missing rate treated as 0."""
        return self.commission_percent if self.commission_percent is not None else Decimal("0")

    def __repr__(self) -> str:
        return f"<Product(sku='{self.sku_code}', name='{self.name}')>"
