"""Login, tokens, rate limiting and application wiring."""
import uuid
from datetime import timedelta

from sqlalchemy import select

from promohub.core.security import create_access_token, verify_access_token, verify_password, get_password_hash
from promohub.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status
from promohub.models import Tenant, UserRole
from promohub.services.auth_service import AuthService

from tests.conftest import PASSWORD, make_user


class TestSecurity:
    def test_password_hash_roundtrip(self):
        hashed = get_password_hash("correct horse")
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_garbage_hash_does_not_verify(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_expired_token_is_rejected(self):
        token = create_access_token(subject=uuid.uuid4(), expires_delta=timedelta(seconds=-5))
        assert verify_access_token(token) is None

    def test_token_carries_extra_claims(self):
        tenant_id = str(uuid.uuid4())
        token = create_access_token(subject="abc", additional_claims={"tenant_id": tenant_id})
        payload = verify_access_token(token)
        assert payload["sub"] == "abc"
        assert payload["tenant_id"] == tenant_id


class TestLogin:
    async def test_login_returns_token_and_user(self, client, admin):
        response = await client.post("/api/auth/login", json={"email": "ADMIN@acme.io", "password": PASSWORD})
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "admin@acme.io"

        response = await client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {body['access_token']}"},
        )
        assert response.status_code == 200
        assert response.json()["tenant_id"] == str(admin.tenant_id)

    async def test_wrong_password_is_unauthorized(self, client, admin):
        response = await client.post("/api/auth/login", json={"email": "admin@acme.io", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    async def test_repeated_failures_are_rate_limited(self, client, admin):
        for _ in range(3):
            response = await client.post("/api/auth/login", json={"email": "admin@acme.io", "password": "bad-pass"})
            assert response.status_code == 401

        response = await client.post("/api/auth/login", json={"email": "admin@acme.io", "password": PASSWORD})
        assert response.status_code == 429
        assert response.json()["details"]["retry_after_seconds"] == 60

    async def test_inactive_user_is_forbidden(self, client, db, tenant):
        user = await make_user(db, tenant, "gone@acme.io", UserRole.AFFILIATE)
        user.is_active = False
        await db.commit()

        token, _ = AuthService.create_token(user)
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403

    async def test_token_for_unknown_user_is_unauthorized(self, client):
        token = create_access_token(subject=uuid.uuid4())
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_tenant_claim_must_match(self, client, admin, other_tenant):
        token = create_access_token(
            subject=admin.id,
            additional_claims={"tenant_id": str(other_tenant.id), "role": "admin"},
        )
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestLoginRateLimit:
    async def test_limit_is_per_client_ip(self, client, admin):
        blocked = {"X-Forwarded-For": "198.51.100.1"}
        for _ in range(3):
            await client.post(
                "/api/auth/login",
                json={"email": "admin@acme.io", "password": "bad-pass"},
                headers=blocked,
            )

        response = await client.post(
            "/api/auth/login",
            json={"email": "admin@acme.io", "password": PASSWORD},
            headers=blocked,
        )
        assert response.status_code == 429
        assert response.headers["retry-after"] == "60"
        assert response.json()["error"] == "Too many requests. Please try again later."

        response = await client.post(
            "/api/auth/login",
            json={"email": "admin@acme.io", "password": PASSWORD},
            headers={"X-Forwarded-For": "198.51.100.2"},
        )
        assert response.status_code == 200


class TestRegister:
    async def test_register_creates_trial_tenant_and_admin(self, client, db):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "Founder@Initech.io",
                "password": PASSWORD,
                "firstName": "Peter",
                "lastName": "Gibbons",
                "companyName": "Initech",
                "subdomain": "initech",
            },
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["tenant"]["subdomain"] == "initech"
        assert body["tenant"]["status"] == "trial"
        assert body["tenant"]["trial_ends_at"] is not None
        assert body["user"]["role"] == "admin"
        assert body["user"]["email"] == "founder@initech.io"
        assert body["user"]["tenant_id"] == body["tenant"]["id"]

        response = await client.get(
            "/api/commissions/tiers",
            headers={"Authorization": f"Bearer {body['access_token']}"},
        )
        assert response.status_code == 200

        tenant = (await db.execute(select(Tenant).where(Tenant.subdomain == "initech"))).scalar_one()
        assert tenant.name == "Initech"

    async def test_new_admin_can_log_in(self, client):
        await client.post(
            "/api/auth/register",
            json={
                "email": "founder@initech.io",
                "password": PASSWORD,
                "firstName": "Peter",
                "companyName": "Initech",
                "subdomain": "initech",
            },
        )
        response = await client.post("/api/auth/login", json={"email": "founder@initech.io", "password": PASSWORD})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"

    async def test_taken_subdomain_is_rejected(self, client, tenant):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "someone@else.io",
                "password": PASSWORD,
                "firstName": "Sam",
                "companyName": "Acme Again",
                "subdomain": "acme",
            },
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Subdomain already registered"

    async def test_taken_email_is_rejected(self, client, db, admin):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "admin@acme.io",
                "password": PASSWORD,
                "firstName": "Ada",
                "companyName": "Fresh Co",
                "subdomain": "fresh",
            },
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Email is already registered"

        created = await db.scalar(select(Tenant.id).where(Tenant.subdomain == "fresh"))
        assert created is None

    async def test_invalid_subdomain_is_a_validation_error(self, client):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "x@y.io",
                "password": PASSWORD,
                "firstName": "Xa",
                "companyName": "Bad Sub",
                "subdomain": "Not Valid!",
            },
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"


class TestApplication:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "connected"

    async def test_unknown_route_uses_error_envelope(self, client):
        response = await client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    async def test_scheduler_registers_invite_expiry(self):
        start_scheduler()
        try:
            jobs = get_job_status()
            assert [job["id"] for job in jobs] == ["expire_stale_invites"]
            assert jobs[0]["next_run_time"] is not None
        finally:
            shutdown_scheduler()
