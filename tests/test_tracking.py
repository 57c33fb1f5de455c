"""Tracking link counters and event ingestion."""
import asyncio
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from promohub.core.exceptions import NotFoundError, TenantAccessError
from promohub.models import TrackingEvent, TrackingLink, UserRole
from promohub.services.tracking_service import TrackingService, parse_sale_amount

from tests.conftest import make_tenant, make_user, make_product, auth_headers, invite_and_accept


@pytest.fixture
async def affiliate_link(client, db, tenant, admin):
    product = await make_product(db, tenant, "SKU-1", "8")
    accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])
    return {
        "code": accepted["tracking_links"][0]["tracking_code"],
        "headers": {"Authorization": f"Bearer {accepted['access_token']}"},
        "affiliate_id": accepted["user_id"],
    }


async def record(client, event_type, code, metadata=None):
    body = {"type": event_type, "trackingCode": code}
    if metadata is not None:
        body["metadata"] = metadata
    return await client.post("/api/tracking/event", json=body)


class TestParseSaleAmount:
    @pytest.mark.parametrize("metadata, expected", [
        ({"amount": 19.99}, Decimal("19.99")),
        ({"amount": "250"}, Decimal("250.00")),
        ({"amount": 0}, Decimal("0.00")),
    ])
    def test_valid_amounts(self, metadata, expected):
        assert parse_sale_amount(metadata) == expected

    @pytest.mark.parametrize("metadata", [
        {},
        {"amount": None},
        {"amount": "lots"},
        {"amount": -5},
        {"amount": True},
        {"amount": "NaN"},
    ])
    def test_invalid_amounts(self, metadata):
        assert parse_sale_amount(metadata) is None


class TestRecordEvent:
    async def test_click_conversion_and_sale_update_counters(self, client, affiliate_link):
        code = affiliate_link["code"]

        response = await record(client, "click", code)
        assert response.status_code == 201, response.text
        assert response.json()["total_clicks"] == 1

        response = await record(client, "conversion", code)
        assert response.json()["total_conversions"] == 1

        response = await record(client, "sale", code, {"amount": "49.99", "order_id": "A-1"})
        body = response.json()
        assert Decimal(body["total_sales"]) == Decimal("49.99")
        assert body["total_clicks"] == 1
        assert body["type"] == "sale"

    async def test_sale_without_valid_amount_keeps_total(self, client, db, affiliate_link):
        code = affiliate_link["code"]
        await record(client, "sale", code, {"amount": "10"})

        response = await record(client, "sale", code, {"amount": "not-a-number"})
        assert response.status_code == 201
        assert Decimal(response.json()["total_sales"]) == Decimal("10.00")

        events = await db.scalar(select(func.count(TrackingEvent.id)).where(TrackingEvent.type == "sale"))
        assert events == 2

    async def test_event_is_public_and_records_request_info(self, client, db, affiliate_link):
        response = await client.post(
            "/api/tracking/event",
            json={"type": "click", "tracking_code": affiliate_link["code"], "metadata": {"ref": "ig"}},
            headers={"User-Agent": "pytest-browser", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )
        assert response.status_code == 201

        event = (await db.execute(select(TrackingEvent))).scalar_one()
        assert event.ip_address == "203.0.113.7"
        assert event.user_agent == "pytest-browser"
        assert event.event_metadata == {"ref": "ig"}
        assert str(event.affiliate_id) == affiliate_link["affiliate_id"]

    async def test_unknown_code_is_not_found(self, client):
        response = await record(client, "click", "does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "Tracking link not found"

    async def test_unknown_event_type_is_rejected(self, client, affiliate_link):
        response = await record(client, "impression", affiliate_link["code"])
        assert response.status_code == 400



class TestMetrics:
    async def test_metrics_report_counters_and_events(self, client, affiliate_link):
        code = affiliate_link["code"]
        for _ in range(4):
            await record(client, "click", code)
        await record(client, "conversion", code)

        response = await client.get(f"/api/tracking/metrics/{code}", headers=affiliate_link["headers"])
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["link"]["total_clicks"] == 4
        assert body["link"]["total_conversions"] == 1
        assert body["link"]["conversion_rate"] == 25.0
        assert len(body["events"]) == 5

    async def test_metrics_are_tenant_scoped(self, client, affiliate_link, other_admin):
        response = await client.get(
            f"/api/tracking/metrics/{affiliate_link['code']}",
            headers=auth_headers(other_admin),
        )
        assert response.status_code == 404

    async def test_metrics_service_rejects_foreign_code(self, db, other_tenant, affiliate_link):
        with pytest.raises(NotFoundError):
            await TrackingService(db, other_tenant.id).get_metrics(affiliate_link["code"])

    async def test_links_of_current_affiliate(self, client, affiliate_link):
        response = await client.get("/api/tracking/links", headers=affiliate_link["headers"])
        assert response.status_code == 200
        assert [link["tracking_code"] for link in response.json()] == [affiliate_link["code"]]

    async def test_affiliate_cannot_read_another_affiliates_link(self, client, db, tenant, admin, affiliate_link):
        product = await make_product(db, tenant, "SKU-2", "8")
        ben = await invite_and_accept(client, admin, "ben@acme.io", [product])

        response = await client.get(
            f"/api/tracking/metrics/{affiliate_link['code']}",
            headers={"Authorization": f"Bearer {ben['access_token']}"},
        )
        assert response.status_code == 403

        response = await client.get(f"/api/tracking/metrics/{affiliate_link['code']}", headers=auth_headers(admin))
        assert response.status_code == 200

    async def test_metrics_service_checks_owner(self, db, tenant, affiliate_link):
        influencer = await make_user(db, tenant, "ivy@acme.io", UserRole.INFLUENCER)
        service = TrackingService(db, tenant.id)

        with pytest.raises(TenantAccessError):
            await service.get_metrics(affiliate_link["code"], owner_id=influencer.id)

        link, _ = await service.get_metrics(affiliate_link["code"], owner_id=uuid.UUID(affiliate_link["affiliate_id"]))
        assert link.tracking_code == affiliate_link["code"]


class TestConcurrentCounters:
    async def test_concurrent_clicks_are_all_counted(self, file_session_factory):
        async with file_session_factory() as session:
            tenant = await make_tenant(session, "acme")
            affiliate = await make_user(session, tenant, "ava@acme.io", UserRole.AFFILIATE)
            product = await make_product(session, tenant, "SKU-1", "8")
            session.add(TrackingLink(
                tenant_id=tenant.id,
                affiliate_id=affiliate.id,
                product_id=product.id,
                tracking_code="concurrent-click",
            ))
            await session.commit()

        clicks = 25

        async def click():
            for attempt in range(5):
                async with file_session_factory() as session:
                    try:
                        await TrackingService(session).record_event("click", "concurrent-click")
                        await session.commit()
                        return
                    except OperationalError:
                        # database is locked: the whole event rolled back, try again
                        await session.rollback()
                await asyncio.sleep(0.05 * (attempt + 1))
            raise AssertionError("click was never recorded")

        await asyncio.gather(*(click() for _ in range(clicks)))

        async with file_session_factory() as session:
            total = await session.scalar(
                select(TrackingLink.total_clicks).where(TrackingLink.tracking_code == "concurrent-click")
            )
            events = await session.scalar(select(func.count(TrackingEvent.id)))
        assert total == clicks
        assert events == clicks
