"""
Tracking Link Counters

Records click/conversion/sale events against tracking links and reports
their counters. Counter changes are single ``UPDATE ... SET col = col + n
RETURNING`` statements, so concurrent events never lose increments.
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.exceptions import NotFoundError, TenantAccessError
from promohub.models.tracking import TrackingLink, TrackingEvent, TrackingEventType

logger = logging.getLogger(__name__)

EVENT_LIMIT = 100


def parse_sale_amount(metadata: Dict[str, Any]) -> Optional[Decimal]:
    """``metadata['amount']`` as a non-negative Decimal, or None if absent or invalid."""
    raw = metadata.get("amount")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount.quantize(Decimal("0.01"))


class TrackingService:
    """
    Tracking link service.

    ``tenant_id`` is optional because public event ingestion resolves the
    tenant from the tracking code itself; reporting methods require it.
    """

    def __init__(self, db: AsyncSession, tenant_id: Optional[uuid.UUID] = None):
        self.db = db
        self.tenant_id = tenant_id

    async def _get_link_by_code(self, tracking_code: str, scoped: bool) -> TrackingLink:
        query = select(TrackingLink).where(TrackingLink.tracking_code == tracking_code)
        if scoped:
            query = query.where(TrackingLink.tenant_id == self.tenant_id)
        result = await self.db.execute(query)
        link = result.scalar_one_or_none()
        if not link:
            raise NotFoundError("Tracking link not found")
        return link

    async def _increment(self, link_id: uuid.UUID, **deltas) -> Tuple[int, int, Decimal]:
        values = {
            column: getattr(TrackingLink, column) + delta
            for column, delta in deltas.items()
        }
        result = await self.db.execute(
            update(TrackingLink)
            .where(TrackingLink.id == link_id)
            .values(**values)
            .returning(
                TrackingLink.total_clicks,
                TrackingLink.total_conversions,
                TrackingLink.total_sales,
            )
            .execution_options(synchronize_session=False)
        )
        clicks, conversions, sales = result.one()
        return clicks, conversions, Decimal(str(sales))

    async def record_event(
        self,
        event_type: TrackingEventType,
        tracking_code: str,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> dict:
        """
        Append an event and bump the link's counters.

        - click: ``total_clicks + 1``
        - conversion: ``total_conversions + 1``
        - sale: ``total_sales + metadata.amount`` when the amount is a valid
          non-negative number; otherwise only the event is stored
        """
        metadata = metadata or {}
        event_type = TrackingEventType(event_type)
        link = await self._get_link_by_code(tracking_code, scoped=False)

        event = TrackingEvent(
            tenant_id=link.tenant_id,
            tracking_link_id=link.id,
            affiliate_id=link.affiliate_id,
            type=event_type.value,
            event_metadata=metadata,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
        self.db.add(event)
        await self.db.flush()

        if event_type == TrackingEventType.CLICK:
            counters = await self._increment(link.id, total_clicks=1)
        elif event_type == TrackingEventType.CONVERSION:
            counters = await self._increment(link.id, total_conversions=1)
        else:
            amount = parse_sale_amount(metadata)
            if amount is None:
                logger.warning(
                    f"Sale on {tracking_code} without a valid amount; counters unchanged"
                )
                counters = await self._increment(link.id, total_sales=Decimal("0"))
            else:
                counters = await self._increment(link.id, total_sales=amount)

        clicks, conversions, sales = counters
        logger.debug(f"Recorded {event_type.value} on {tracking_code}")

        return {
            "event_id": event.id,
            "tracking_code": tracking_code,
            "type": event_type.value,
            "total_clicks": clicks,
            "total_conversions": conversions,
            "total_sales": sales,
        }

    async def get_metrics(
        self,
        tracking_code: str,
        owner_id: Optional[uuid.UUID] = None,
    ) -> Tuple[TrackingLink, List[TrackingEvent]]:
        """
        Counters and most recent events of a link owned by this tenant.

        When ``owner_id`` is given the link must belong to that affiliate;
        events carry visitor IPs and user agents.
        """
        link = await self._get_link_by_code(tracking_code, scoped=True)
        if owner_id is not None and link.affiliate_id != owner_id:
            raise TenantAccessError("Cannot view another affiliate's tracking link")
        await self.db.refresh(link)

        result = await self.db.execute(
            select(TrackingEvent)
            .where(
                TrackingEvent.tracking_link_id == link.id,
                TrackingEvent.tenant_id == self.tenant_id,
            )
            .order_by(TrackingEvent.created_at.desc())
            .limit(EVENT_LIMIT)
        )
        return link, list(result.scalars().all())

    async def list_links(self, affiliate_id: uuid.UUID) -> List[TrackingLink]:
        result = await self.db.execute(
            select(TrackingLink)
            .where(
                TrackingLink.tenant_id == self.tenant_id,
                TrackingLink.affiliate_id == affiliate_id,
            )
            .order_by(TrackingLink.created_at.asc())
        )
        return list(result.scalars().all())
