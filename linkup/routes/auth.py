"""
Linkup Backend - Auth Routes
==============================

POST /api/auth/register   create an account, start a session
POST /api/auth/login      start a session
GET  /api/auth/me         the session's user
POST /api/auth/logout     end the session

Sessions are JWTs returned in the body and also set as an HTTP-only cookie,
so browser clients need not store the token themselves.
"""

import logging

from fastapi import APIRouter, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linkup.api.context import RequestContext
from linkup.api.envelope import Envelope, success
from linkup.api.pipeline import APIHandler, RouteConfig
from linkup.api.validation import LOGIN_SCHEMA, USER_REGISTRATION_SCHEMA
from linkup.config import settings
from linkup.schemas.common import ErrorResponse
from linkup.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

ERROR_RESPONSES = {
    400: {"description": "Validation failed or invalid payload", "model": ErrorResponse},
    401: {"description": "Not authenticated", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
}

register_pipeline = APIHandler(RouteConfig(rate_limit="auth", validation=USER_REGISTRATION_SCHEMA))
login_pipeline = APIHandler(RouteConfig(rate_limit="auth", validation=LOGIN_SCHEMA))
me_pipeline = APIHandler(RouteConfig(require_auth=True, rate_limit="general"))
logout_pipeline = APIHandler(RouteConfig(rate_limit="general"))


def attach_session_cookie(envelope: Envelope, token: str) -> Envelope:
    return envelope.set_cookie(
        settings.auth_cookie_name,
        token,
        max_age=settings.token_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
        path="/",
    )


# ── Handlers ──────────────────────────────────────────────────────────────

async def _register(ctx: RequestContext, session: AsyncSession) -> Envelope:
    user, token = await user_service.register(
        session,
        name=ctx.data["name"],
        email=ctx.data["email"],
        password=ctx.data["password"],
        bio=ctx.data.get("bio"),
    )
    envelope = success({"user": user, "token": token}, "User created successfully", 201)
    return attach_session_cookie(envelope, token)


async def _login(ctx: RequestContext, session: AsyncSession) -> Envelope:
    user, token = await user_service.authenticate(
        session,
        email=ctx.data["email"],
        password=ctx.data["password"],
    )
    envelope = success({"user": user, "token": token}, "Login successful")
    return attach_session_cookie(envelope, token)


async def _me(ctx: RequestContext, session: AsyncSession) -> Envelope:
    user = await user_service.get_current(session, ctx.require_user())
    return success({"user": user})


async def _logout(ctx: RequestContext, session: AsyncSession) -> Envelope:
    await user_service.logout(session, ctx.user_id)
    return success({"loggedOut": True}, "Logged out").delete_cookie(settings.auth_cookie_name)


# ── Routes ────────────────────────────────────────────────────────────────

@router.post(
    "/register",
    status_code=201,
    responses=ERROR_RESPONSES,
    summary="Register a new account",
    description=(
        "Body: `{name, email, password, bio?}`. Returns the public user and a session "
        "token, and sets the session cookie. A registered email is rejected with "
        "DUPLICATE_ERROR (400)."
    ),
)
async def register(request: Request) -> Response:
    return await register_pipeline.handle(request, _register)


@router.post(
    "/login",
    responses=ERROR_RESPONSES,
    summary="Log in",
    description="Body: `{email, password}`. Unknown email and wrong password fail identically.",
)
async def login(request: Request) -> Response:
    return await login_pipeline.handle(request, _login)


@router.get("/me", responses=ERROR_RESPONSES, summary="Current user")
async def me(request: Request) -> Response:
    return await me_pipeline.handle(request, _me)


@router.post("/logout", summary="Log out and clear the session cookie")
async def logout(request: Request) -> Response:
    return await logout_pipeline.handle(request, _logout)
