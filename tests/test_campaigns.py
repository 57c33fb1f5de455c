"""Campaigns and influencer participation."""
import re
import uuid

import pytest

from promohub.models import UserRole
from promohub.services.campaign_service import generate_promo_code

from tests.conftest import make_user, auth_headers


@pytest.fixture
async def influencer(db, tenant):
    return await make_user(db, tenant, "ivy@acme.io", UserRole.INFLUENCER)


async def create_campaign(client, admin_headers, name="Summer Launch", **extra):
    payload = {"name": name, "startDate": "2026-06-01T00:00:00+00:00", **extra}
    response = await client.post("/api/campaigns", json=payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestPromoCode:
    def test_code_is_deterministic(self):
        campaign_id, influencer_id = uuid.uuid4(), uuid.uuid4()
        code = generate_promo_code(campaign_id, influencer_id)
        assert code == generate_promo_code(campaign_id, influencer_id)
        assert re.fullmatch(r"[0-9A-F]{6}-[0-9A-F]{12}", code)
        assert code.startswith(campaign_id.hex[:6].upper())

    def test_influencers_sharing_an_id_prefix_get_different_codes(self):
        campaign_id = uuid.UUID("3f2a9c00-0000-4000-8000-000000000000")
        first = uuid.UUID("abcdef00-0000-4000-8000-000000000001")
        second = uuid.UUID("abcdef99-0000-4000-8000-000000000099")
        assert generate_promo_code(campaign_id, first) != generate_promo_code(campaign_id, second)

    def test_code_changes_with_campaign(self):
        influencer_id = uuid.uuid4()
        first = uuid.UUID("3f2a9c00-0000-4000-8000-000000000001")
        second = uuid.UUID("3f2a9c00-0000-4000-8000-000000000002")
        assert generate_promo_code(first, influencer_id) != generate_promo_code(second, influencer_id)


class TestCampaigns:
    async def test_create_with_default_metrics(self, client, admin_headers):
        campaign = await create_campaign(client, admin_headers, metrics={"total_reach": 500})
        assert campaign["status"] == "draft"
        assert campaign["type"] == "product"
        assert campaign["metrics"]["total_reach"] == 500
        assert campaign["metrics"]["conversions"] == 0

    async def test_duplicate_name_is_rejected(self, client, admin_headers):
        await create_campaign(client, admin_headers)
        response = await client.post(
            "/api/campaigns",
            json={"name": "Summer Launch", "startDate": "2026-07-01T00:00:00+00:00"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Campaign with this name already exists"

    async def test_same_name_allowed_in_other_tenant(self, client, admin_headers, other_admin):
        await create_campaign(client, admin_headers)
        await create_campaign(client, auth_headers(other_admin))

    async def test_end_before_start_is_rejected(self, client, admin_headers):
        response = await client.post(
            "/api/campaigns",
            json={
                "name": "Backwards",
                "startDate": "2026-06-01T00:00:00+00:00",
                "endDate": "2026-05-01T00:00:00+00:00",
            },
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_list_filters_by_status(self, client, admin_headers):
        await create_campaign(client, admin_headers, name="Draft one")
        await create_campaign(client, admin_headers, name="Live one", status="active")

        response = await client.get("/api/campaigns", params={"status": "active"}, headers=admin_headers)
        assert [c["name"] for c in response.json()] == ["Live one"]

    async def test_update_and_delete(self, client, admin_headers):
        campaign = await create_campaign(client, admin_headers)

        response = await client.put(
            f"/api/campaigns/{campaign['id']}",
            json={"status": "paused", "description": "On hold"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "paused"
        assert response.json()["description"] == "On hold"

        response = await client.delete(f"/api/campaigns/{campaign['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/campaigns/{campaign['id']}", headers=admin_headers)
        assert response.status_code == 404

    async def test_other_tenant_campaign_is_not_found(self, client, admin_headers, other_admin):
        campaign = await create_campaign(client, auth_headers(other_admin))
        response = await client.get(f"/api/campaigns/{campaign['id']}", headers=admin_headers)
        assert response.status_code == 404


class TestParticipation:
    async def test_join_creates_pending_participation_with_code(self, client, admin_headers, influencer):
        campaign = await create_campaign(client, admin_headers, status="active")

        response = await client.post(
            f"/api/campaigns/{campaign['id']}/join",
            headers=auth_headers(influencer),
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["status"] == "pending"
        assert body["influencer_id"] == str(influencer.id)
        assert body["promotional_codes"] == [
            generate_promo_code(uuid.UUID(campaign["id"]), influencer.id)
        ]
        assert body["metrics"]["clicks"] == 0

        response = await client.get("/api/campaigns/participations", headers=auth_headers(influencer))
        assert [p["campaign_id"] for p in response.json()] == [campaign["id"]]

    async def test_second_join_is_rejected(self, client, admin_headers, influencer):
        campaign = await create_campaign(client, admin_headers, status="active")
        url = f"/api/campaigns/{campaign['id']}/join"

        assert (await client.post(url, headers=auth_headers(influencer))).status_code == 201
        response = await client.post(url, headers=auth_headers(influencer))
        assert response.status_code == 400
        assert response.json()["error"] == "Already participating in this campaign"

    async def test_completed_campaign_cannot_be_joined(self, client, admin_headers, influencer):
        campaign = await create_campaign(client, admin_headers, status="completed")
        response = await client.post(f"/api/campaigns/{campaign['id']}/join", headers=auth_headers(influencer))
        assert response.status_code == 400

    async def test_admin_cannot_join(self, client, admin_headers):
        campaign = await create_campaign(client, admin_headers, status="active")
        response = await client.post(f"/api/campaigns/{campaign['id']}/join", headers=admin_headers)
        assert response.status_code == 403

    async def test_metrics_count_participants_by_status(self, client, db, tenant, admin_headers, influencer):
        other = await make_user(db, tenant, "max@acme.io", UserRole.INFLUENCER)
        campaign = await create_campaign(client, admin_headers, status="active")
        for user in (influencer, other):
            await client.post(f"/api/campaigns/{campaign['id']}/join", headers=auth_headers(user))

        response = await client.get(f"/api/campaigns/{campaign['id']}/metrics", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total_participants"] == 2
        assert body["participants_by_status"]["pending"] == 2
        assert body["participants_by_status"]["active"] == 0
