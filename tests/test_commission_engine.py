"""Commission resolution: rate source toggle, tier fan-out, product rate propagation."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from promohub.core.exceptions import InvariantViolationError, NotFoundError
from promohub.models import (
    AffiliateInvite,
    AffiliateProductCommission,
    CommissionTier,
    UserRole,
)
from promohub.services.commission_engine import CommissionEngine

from tests.conftest import make_tier, make_user, make_product, auth_headers, invite_and_accept


async def ledger_for(client, admin, affiliate_id) -> dict:
    """Ledger rows of an affiliate keyed by SKU."""
    response = await client.get(
        "/api/affiliates/product-commissions",
        params={"affiliateId": affiliate_id},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200, response.text
    return {row["sku_code"]: row for row in response.json()}


class TestRateSourceToggle:
    async def test_toggle_between_product_and_tier_rate(self, client, db, tenant, admin):
        await make_tier(db, tenant, "Starter", "10")
        product = await make_product(db, tenant, "SKU-1", "8.5")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])
        affiliate_id = accepted["user_id"]

        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliateId": affiliate_id, "productId": str(product.id), "useProductCommission": True},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert Decimal(body["final_commission"]) == Decimal("8.50")
        assert body["rate_source"] == "product"
        assert body["use_product_commission"] is True
        assert Decimal(body["commission_percent"]) == Decimal("10.00")

        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliate_id": affiliate_id, "product_id": str(product.id), "use_product_commission": False},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["final_commission"]) == Decimal("10.00")
        assert body["rate_source"] == "tier"

    async def test_toggle_without_product_rate_pays_zero(self, client, db, tenant, admin):
        await make_tier(db, tenant, "Starter", "10")
        product = await make_product(db, tenant, "SKU-1", None)
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])

        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliateId": accepted["user_id"], "productId": str(product.id), "useProductCommission": True},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert Decimal(response.json()["final_commission"]) == Decimal("0")

    async def test_toggle_unknown_pair_is_not_found(self, client, db, tenant, admin):
        product = await make_product(db, tenant, "SKU-1", "8")
        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliateId": str(uuid.uuid4()), "productId": str(product.id), "useProductCommission": True},
            headers=auth_headers(admin),
        )
        assert response.status_code == 404
        assert response.json()["error"] == "Product commission not found"

    async def test_toggle_across_tenants_is_not_found(self, client, db, tenant, admin, other_tenant, other_admin):
        await make_tier(db, tenant, "Starter", "10")
        product = await make_product(db, tenant, "SKU-1", "8")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])

        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliateId": accepted["user_id"], "productId": str(product.id), "useProductCommission": True},
            headers=auth_headers(other_admin),
        )
        assert response.status_code == 404

    async def test_affiliate_cannot_toggle(self, client, db, tenant, admin):
        product = await make_product(db, tenant, "SKU-1", "8")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])

        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliateId": accepted["user_id"], "productId": str(product.id), "useProductCommission": True},
            headers={"Authorization": f"Bearer {accepted['access_token']}"},
        )
        assert response.status_code == 403


class TestTierReassignment:
    async def test_fan_out_updates_tier_rows_only(self, client, db, tenant, admin):
        await make_tier(db, tenant, "Starter", "10", "0")
        gold = await make_tier(db, tenant, "Gold", "15", "1000")
        p1 = await make_product(db, tenant, "SKU-1", "6")
        p2 = await make_product(db, tenant, "SKU-2", "6")
        p3 = await make_product(db, tenant, "SKU-3", "7")
        accepted = await invite_and_accept(
            client, admin, "ava@acme.io", [p1, p2, p3], product_rate_for=(p3,)
        )
        affiliate_id = accepted["user_id"]

        response = await client.put(
            "/api/affiliates/update-tier",
            json={"affiliateId": affiliate_id, "newTierId": str(gold.id)},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["tier_name"] == "Gold"
        assert body["rows_updated"] == 2
        assert body["rows_unchanged"] == 1

        rows = await ledger_for(client, admin, affiliate_id)
        for sku in ("SKU-1", "SKU-2"):
            assert Decimal(rows[sku]["final_commission"]) == Decimal("15.00")
            assert Decimal(rows[sku]["commission_percent"]) == Decimal("15.00")
            assert rows[sku]["commission_tier_id"] == str(gold.id)
            assert rows[sku]["tier_name"] == "Gold"

        product_row = rows["SKU-3"]
        assert product_row["rate_source"] == "product"
        assert Decimal(product_row["final_commission"]) == Decimal("7.00")
        assert Decimal(product_row["commission_percent"]) == Decimal("10.00")
        assert product_row["tier_name"] == "Starter"

        response = await client.get("/api/affiliates", headers=auth_headers(admin))
        assert response.json()[0]["tier_name"] == "Gold"

    async def test_unknown_tier_is_not_found(self, client, db, tenant, admin):
        product = await make_product(db, tenant, "SKU-1", "6")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product])

        response = await client.put(
            "/api/affiliates/update-tier",
            json={"affiliateId": accepted["user_id"], "newTierId": str(uuid.uuid4())},
            headers=auth_headers(admin),
        )
        assert response.status_code == 404
        assert response.json()["error"] == "Commission tier not found"

    async def test_user_without_affiliate_profile_is_not_found(self, db, tenant):
        tier = await make_tier(db, tenant, "Starter", "10")
        stranger = await make_user(db, tenant, "bob@acme.io", UserRole.INFLUENCER)

        with pytest.raises(NotFoundError):
            await CommissionEngine(db, tenant.id).reassign_tier(stranger.id, tier.id)

    async def test_product_row_switched_back_keeps_its_own_tier(self, client, db, tenant, admin):
        starter = await make_tier(db, tenant, "Starter", "10", "0")
        gold = await make_tier(db, tenant, "Gold", "15", "1000")
        product = await make_product(db, tenant, "SKU-1", "8.5")
        accepted = await invite_and_accept(client, admin, "ava@acme.io", [product], product_rate_for=(product,))
        affiliate_id = accepted["user_id"]

        response = await client.put(
            "/api/affiliates/update-tier",
            json={"affiliateId": affiliate_id, "newTierId": str(gold.id)},
            headers=auth_headers(admin),
        )
        assert response.json()["rows_unchanged"] == 1

        # Back to the tier rate: the row still points at the tier it was
        # bound under, not the affiliate's current tier.
        response = await client.put(
            "/api/affiliates/product-commission",
            json={"affiliateId": affiliate_id, "productId": str(product.id), "useProductCommission": False},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["rate_source"] == "tier"
        assert body["commission_tier_id"] == str(starter.id)
        assert Decimal(body["final_commission"]) == Decimal("10.00")

        # The next reassignment brings it in line with the current tier.
        response = await client.put(
            "/api/affiliates/update-tier",
            json={"affiliateId": affiliate_id, "newTierId": str(gold.id)},
            headers=auth_headers(admin),
        )
        assert response.json()["rows_updated"] == 1
        rows = await ledger_for(client, admin, affiliate_id)
        assert Decimal(rows["SKU-1"]["final_commission"]) == Decimal("15.00")
        assert rows["SKU-1"]["commission_tier_id"] == str(gold.id)


class TestProductRatePropagation:
    async def test_product_rate_refreshes_all_rows(self, client, db, tenant, admin):
        await make_tier(db, tenant, "Starter", "10")
        product = await make_product(db, tenant, "SKU-1", "8")
        ava = await invite_and_accept(client, admin, "ava@acme.io", [product], product_rate_for=(product,))
        ben = await invite_and_accept(client, admin, "ben@acme.io", [product])

        response = await client.put(
            f"/api/commissions/products/{product.id}",
            json={"commissionPercent": "12.5"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert Decimal(body["product"]["commission_percent"]) == Decimal("12.50")
        assert body["ledger_rows_refreshed"] == 2
        assert body["final_commissions_changed"] == 1

        ava_row = (await ledger_for(client, admin, ava["user_id"]))["SKU-1"]
        assert Decimal(ava_row["product_commission"]) == Decimal("12.50")
        assert Decimal(ava_row["final_commission"]) == Decimal("12.50")

        ben_row = (await ledger_for(client, admin, ben["user_id"]))["SKU-1"]
        assert Decimal(ben_row["product_commission"]) == Decimal("12.50")
        assert Decimal(ben_row["final_commission"]) == Decimal("10.00")

    async def test_other_tenant_product_is_not_found(self, client, db, other_tenant, admin):
        foreign = await make_product(db, other_tenant, "SKU-X", "8")
        response = await client.put(
            f"/api/commissions/products/{foreign.id}",
            json={"commissionPercent": "1"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 404


class TestBinding:
    async def _pending_invite(self, db, tenant, products) -> AffiliateInvite:
        invite = AffiliateInvite(
            tenant_id=tenant.id,
            email="ava@acme.io",
            token=uuid.uuid4().hex,
            product_ids=[str(p.id) for p in products],
            status="pending",
            expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        )
        db.add(invite)
        await db.commit()
        return invite

    async def test_missing_placeholder_falls_back_to_product_rate(self, db, tenant):
        await make_tier(db, tenant, "Starter", "10")
        product = await make_product(db, tenant, "SKU-1", "6.5")
        affiliate = await make_user(db, tenant, "ava@acme.io", UserRole.AFFILIATE)
        invite = await self._pending_invite(db, tenant, [product])

        engine = CommissionEngine(db, tenant.id)
        links = await engine.bind_invite(invite, affiliate)
        await db.commit()

        assert len(links) == 1
        row = (await db.execute(
            select(AffiliateProductCommission).where(AffiliateProductCommission.affiliate_id == affiliate.id)
        )).scalar_one()
        assert row.rate_source == "product"
        assert row.final_commission == Decimal("6.50")
        assert row.commission_percent == Decimal("10.00")
        assert row.tracking_link_id == links[0].id

    async def test_missing_placeholder_without_tier_is_an_invariant_violation(self, db, tenant):
        product = await make_product(db, tenant, "SKU-1", "6.5")
        affiliate = await make_user(db, tenant, "ava@acme.io", UserRole.AFFILIATE)
        invite = await self._pending_invite(db, tenant, [product])

        with pytest.raises(InvariantViolationError):
            await CommissionEngine(db, tenant.id).bind_invite(invite, affiliate)

    async def test_two_invites_seed_one_default_tier(self, client, db, tenant, admin):
        product = await make_product(db, tenant, "SKU-1", "5")
        for email in ("ava@acme.io", "ben@acme.io"):
            response = await client.post(
                "/api/affiliates/invite",
                json={"email": email, "products": [{"productId": str(product.id)}]},
                headers=auth_headers(admin),
            )
            assert response.status_code == 201, response.text

        tiers = (await db.execute(
            select(CommissionTier).where(CommissionTier.tenant_id == tenant.id)
        )).scalars().all()
        assert len(tiers) == 1
        assert tiers[0].tier_name == "Default Tier"

        placeholders = (await db.execute(
            select(AffiliateProductCommission).where(AffiliateProductCommission.affiliate_id.is_(None))
        )).scalars().all()
        assert len(placeholders) == 2
        assert {row.commission_tier_id for row in placeholders} == {tiers[0].id}
