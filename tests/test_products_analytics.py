"""Product catalog and analytics dashboard."""
from decimal import Decimal

from tests.conftest import make_product, auth_headers, invite_and_accept


class TestProducts:
    async def test_create_and_list(self, client, admin_headers):
        response = await client.post(
            "/api/products",
            json={"name": "Trail Shoe", "skuCode": "TR-01", "price": "129.00", "commissionPercent": "12"},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        assert response.json()["status"] == "active"

        response = await client.get("/api/products", headers=admin_headers)
        assert [p["sku_code"] for p in response.json()] == ["TR-01"]

    async def test_duplicate_sku_is_rejected(self, client, db, tenant, admin_headers):
        await make_product(db, tenant, "TR-01", "12")
        response = await client.post(
            "/api/products",
            json={"name": "Copy", "sku_code": "TR-01", "price": "10"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_status_filter(self, client, db, tenant, admin_headers):
        await make_product(db, tenant, "A-1", "5")
        response = await client.get("/api/products", params={"status": "inactive"}, headers=admin_headers)
        assert response.json() == []

    async def test_update_does_not_touch_rate(self, client, db, tenant, admin_headers):
        product = await make_product(db, tenant, "A-1", "5")
        response = await client.put(
            f"/api/products/{product.id}",
            json={"name": "Renamed", "commissionPercent": "99"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert Decimal(response.json()["commission_percent"]) == Decimal("5")

    async def test_product_rates_listing(self, client, db, tenant, admin_headers):
        await make_product(db, tenant, "A-1", "5")
        await make_product(db, tenant, "B-2", None)
        response = await client.get("/api/commissions/products", headers=admin_headers)
        rates = {p["sku_code"]: p["commission_percent"] for p in response.json()}
        assert Decimal(rates["A-1"]) == Decimal("5")
        assert rates["B-2"] is None


class TestAnalytics:
    async def test_dashboard_totals(self, client, db, tenant, admin):
        p1 = await make_product(db, tenant, "SKU-1", "8")
        p2 = await make_product(db, tenant, "SKU-2", "8")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [p1, p2])
        codes = {link["product_id"]: link["tracking_code"] for link in accepted["tracking_links"]}

        for _ in range(3):
            await client.post("/api/tracking/event", json={"type": "click", "trackingCode": codes[str(p1.id)]})
        await client.post("/api/tracking/event", json={"type": "click", "trackingCode": codes[str(p2.id)]})
        await client.post("/api/tracking/event", json={"type": "conversion", "trackingCode": codes[str(p1.id)]})
        await client.post(
            "/api/tracking/event",
            json={"type": "sale", "trackingCode": codes[str(p1.id)], "metadata": {"amount": 80}},
        )

        response = await client.get("/api/analytics", headers=auth_headers(admin))
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["total_clicks"] == 4
        assert body["total_conversions"] == 1
        assert Decimal(body["total_sales"]) == Decimal("80.00")
        assert body["conversion_rate"] == 25.0
        assert body["active_affiliates"] == 1
        assert body["tracking_links"] == 2

        response = await client.get("/api/analytics/top-links", params={"limit": 1}, headers=auth_headers(admin))
        [top] = response.json()
        assert top["tracking_code"] == codes[str(p1.id)]
        assert top["product_name"] == "Product SKU-1"

    async def test_dashboard_is_admin_only(self, client, db, tenant, admin):
        product = await make_product(db, tenant, "SKU-1", "8")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])
        response = await client.get(
            "/api/analytics",
            headers={"Authorization": f"Bearer {accepted['access_token']}"},
        )
        assert response.status_code == 403

    async def test_event_feed(self, client, db, tenant, admin, other_admin):
        product = await make_product(db, tenant, "SKU-1", "8")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])
        code = accepted["tracking_links"][0]["tracking_code"]

        for event_type in ("click", "click", "conversion"):
            await client.post("/api/tracking/event", json={"type": event_type, "trackingCode": code})
        await client.post(
            "/api/tracking/event",
            json={"type": "sale", "trackingCode": code, "metadata": {"amount": "12.50", "order_id": "A-7"}},
        )

        response = await client.get("/api/analytics/events", headers=auth_headers(admin))
        assert response.status_code == 200, response.text
        events = response.json()
        assert len(events) == 4
        assert {event["tracking_code"] for event in events} == {code}
        assert all(event["affiliate_id"] == accepted["user_id"] for event in events)

        response = await client.get("/api/analytics/events", params={"type": "sale"}, headers=auth_headers(admin))
        [sale] = response.json()
        assert sale["metadata"] == {"amount": "12.50", "order_id": "A-7"}

        response = await client.get("/api/analytics/events", params={"limit": 2}, headers=auth_headers(admin))
        assert len(response.json()) == 2

        response = await client.get("/api/analytics/events", headers=auth_headers(other_admin))
        assert response.json() == []
