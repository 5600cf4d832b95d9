"""
Linkup Backend - Health and Seed Endpoint Tests
=================================================
"""

import pytest
from httpx import ASGITransport, AsyncClient

from linkup import __version__
from linkup.database import Database
from linkup.main import create_app
from linkup.services.seed_service import SAMPLE_PASSWORD, SAMPLE_POSTS, SAMPLE_USERS


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["version"] == __version__
        assert body["environment"] == "test"
        assert body["uptimeSeconds"] >= 0

    @pytest.mark.asyncio
    async def test_unreachable_database(self, tmp_path, rate_limits):
        broken = Database(
            f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'linkup.db'}",
            connect_attempts=1,
            min_wait=0,
            max_wait=0,
        )
        app = create_app(database=broken, rate_limits=rate_limits)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "disconnected"

    @pytest.mark.asyncio
    async def test_api_reports_database_outage(self, tmp_path, rate_limits):
        broken = Database(
            f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'linkup.db'}",
            connect_attempts=1,
            min_wait=0,
            max_wait=0,
        )
        app = create_app(database=broken, rate_limits=rate_limits)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/api/posts")

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"


class TestSeed:
    @pytest.mark.asyncio
    async def test_info(self, client):
        response = await client.get("/api/seed")
        assert response.status_code == 200
        accounts = response.json()["data"]["testAccounts"]
        assert len(accounts) == len(SAMPLE_USERS)
        assert all(a["password"] == SAMPLE_PASSWORD for a in accounts)

    @pytest.mark.asyncio
    async def test_seed_replaces_data(self, client, register):
        await register()

        response = await client.post("/api/seed")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["usersCreated"] == len(SAMPLE_USERS)
        assert data["postsCreated"] == len(SAMPLE_POSTS)

        feed = await client.get("/api/posts?limit=50")
        assert feed.json()["data"]["pagination"]["total"] == len(SAMPLE_POSTS)

        directory = await client.get("/api/users")
        emails = {u["email"] for u in directory.json()["data"]["users"]}
        assert "ada@example.com" not in emails

    @pytest.mark.asyncio
    async def test_sample_accounts_can_log_in(self, client):
        await client.post("/api/seed")
        for account in (await client.get("/api/seed")).json()["data"]["testAccounts"]:
            response = await client.post(
                "/api/auth/login",
                json={"email": account["email"], "password": account["password"]},
            )
            assert response.status_code == 200, account["email"]

    @pytest.mark.asyncio
    async def test_refused_in_production(self, client, monkeypatch):
        from linkup.config import settings

        monkeypatch.setattr(settings, "environment", "production")
        response = await client.post("/api/seed")
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"
