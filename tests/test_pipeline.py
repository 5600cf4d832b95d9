"""
Linkup Backend - API Pipeline Tests
=====================================

Drives APIHandler through a minimal FastAPI app so each stage (rate limit,
auth, validation, unit of work, error mapping) can be provoked directly.
"""

import uuid

import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from linkup.api.envelope import success
from linkup.api.pipeline import APIHandler, RouteConfig
from linkup.api.validation import FieldRules
from linkup.config import settings
from linkup.exceptions import ForbiddenError
from linkup.middleware.request_id import RequestIDMiddleware
from linkup.models import User
from linkup.services.credentials import credential_service
from linkup.services.rate_limiter import RateLimitPolicy, RateLimitRegistry

WINDOW_MS = 60_000


def build_app(database, registry) -> FastAPI:
    app = FastAPI()
    app.state.database = database
    app.state.rate_limits = registry
    app.add_middleware(RequestIDMiddleware)

    limited = APIHandler(RouteConfig(rate_limit="tight"))
    private = APIHandler(RouteConfig(require_auth=True))
    echo = APIHandler(RouteConfig(validation={"title": FieldRules(required=True, max_length=12, sanitize=True)}))
    plain = APIHandler()

    async def ok(ctx, session):
        return success({"ok": True})

    async def whoami(ctx, session):
        return success({"userId": ctx.require_user()})

    async def echo_data(ctx, session):
        return success(ctx.data)

    async def explode(ctx, session):
        raise RuntimeError("kaboom")

    async def duplicate(ctx, session):
        for _ in range(2):
            session.add(User(name="Twin", email="twin@example.com", password_hash="x"))
        await session.flush()
        return success()

    async def write_then_refuse(ctx, session):
        session.add(User(name="Ghost", email="ghost@example.com", password_hash="x"))
        await session.flush()
        raise ForbiddenError()

    @app.get("/limited")
    async def limited_route(request: Request):
        return await limited.handle(request, ok)

    @app.get("/private")
    async def private_route(request: Request):
        return await private.handle(request, whoami)

    @app.post("/echo")
    async def echo_route(request: Request):
        return await echo.handle(request, echo_data)

    @app.get("/boom")
    async def boom_route(request: Request):
        return await plain.handle(request, explode)

    @app.post("/duplicate")
    async def duplicate_route(request: Request):
        return await plain.handle(request, duplicate)

    @app.post("/refuse")
    async def refuse_route(request: Request):
        return await plain.handle(request, write_then_refuse)

    return app


@pytest.fixture
def registry(fake_clock):
    return RateLimitRegistry({"tight": RateLimitPolicy(limit=2, window_ms=WINDOW_MS)}, clock=fake_clock)


@pytest_asyncio.fixture
async def pipeline_client(database, registry):
    transport = ASGITransport(app=build_app(database, registry))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestRateLimitStage:
    @pytest.mark.asyncio
    async def test_headers_on_allowed_requests(self, pipeline_client, fake_clock):
        response = await pipeline_client.get("/limited")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "1"
        assert response.headers["X-RateLimit-Reset"] == str((fake_clock.now + WINDOW_MS) // 1000)
        assert "Retry-After" not in response.headers

    @pytest.mark.asyncio
    async def test_third_request_rejected(self, pipeline_client, fake_clock):
        await pipeline_client.get("/limited")
        await pipeline_client.get("/limited")
        fake_clock.advance(15_000)

        response = await pipeline_client.get("/limited")
        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["details"]["limit"] == 2
        assert body["details"]["window"] == WINDOW_MS
        assert body["details"]["remaining"] == 0
        assert response.headers["Retry-After"] == "45"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_window_reopens(self, pipeline_client, fake_clock):
        for _ in range(3):
            await pipeline_client.get("/limited")
        fake_clock.advance(WINDOW_MS + 1)

        response = await pipeline_client.get("/limited")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_clients_are_counted_separately(self, pipeline_client, monkeypatch):
        monkeypatch.setattr(settings, "trust_proxy_headers", True)
        for _ in range(3):
            await pipeline_client.get("/limited", headers={"X-Forwarded-For": "10.0.0.1"})

        response = await pipeline_client.get("/limited", headers={"X-Forwarded-For": "10.0.0.2"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_rotating_forwarded_for_is_ignored_by_default(self, pipeline_client):
        for i in range(2):
            await pipeline_client.get("/limited", headers={"X-Forwarded-For": f"10.0.0.{i}"})

        response = await pipeline_client.get("/limited", headers={"X-Forwarded-For": "10.0.0.99"})
        assert response.status_code == 429


class TestAuthStage:
    @pytest.mark.asyncio
    async def test_anonymous_rejected(self, pipeline_client):
        response = await pipeline_client.get("/private")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_bearer_token(self, pipeline_client):
        user_id = str(uuid.uuid4())
        token = credential_service.create_token(user_id)
        response = await pipeline_client.get("/private", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["data"]["userId"] == user_id

    @pytest.mark.asyncio
    async def test_cookie_token(self, pipeline_client):
        user_id = str(uuid.uuid4())
        token = credential_service.create_token(user_id)
        response = await pipeline_client.get("/private", headers={"Cookie": f"token={token}"})
        assert response.status_code == 200
        assert response.json()["data"]["userId"] == user_id

    @pytest.mark.asyncio
    async def test_garbage_token_is_anonymous(self, pipeline_client):
        response = await pipeline_client.get("/private", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestValidationStage:
    @pytest.mark.asyncio
    async def test_malformed_json(self, pipeline_client):
        response = await pipeline_client.post(
            "/echo", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYLOAD"

    @pytest.mark.asyncio
    async def test_non_object_body(self, pipeline_client):
        response = await pipeline_client.post("/echo", json=["title"])
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYLOAD"

    @pytest.mark.asyncio
    async def test_rule_violations_listed(self, pipeline_client):
        response = await pipeline_client.post("/echo", json={"title": "this is far too long"})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"] == "Validation failed"
        assert body["details"]["errors"] == ["title cannot exceed 12 characters"]

    @pytest.mark.asyncio
    async def test_sanitised_data_reaches_handler(self, pipeline_client):
        response = await pipeline_client.post("/echo", json={"title": " <i>hey</i> "})
        assert response.status_code == 200
        assert response.json()["data"]["title"] == "hey"


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_unexpected_error(self, pipeline_client):
        response = await pipeline_client.get("/boom", headers={"X-Request-ID": "trace-123"})
        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INTERNAL_ERROR"
        assert body["error"] == "Internal server error"
        assert body["requestId"] == "trace-123"
        assert response.headers["X-Request-ID"] == "trace-123"
        # Test environment is not production, so details are shown
        assert "kaboom" in body["details"]

    @pytest.mark.asyncio
    async def test_integrity_error_is_duplicate(self, pipeline_client):
        response = await pipeline_client.post("/duplicate")
        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_ERROR"

    @pytest.mark.asyncio
    async def test_failed_handler_rolls_back(self, pipeline_client, database):
        response = await pipeline_client.post("/refuse")
        assert response.status_code == 403

        async with database.session() as session:
            count = await session.scalar(select(func.count()).select_from(User))
        assert count == 0

    @pytest.mark.asyncio
    async def test_generated_request_id_format(self, pipeline_client):
        response = await pipeline_client.get("/boom")
        request_id = response.json()["requestId"]
        assert request_id.startswith("req_")
        assert response.headers["X-Request-ID"] == request_id
