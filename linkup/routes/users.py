"""
Linkup Backend - User Routes
==============================

GET   /api/users?q&limit     member directory
PATCH /api/users/me          edit your profile
GET   /api/users/{user_id}   profile, posts and stats
"""

from typing import Optional

from fastapi import APIRouter, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linkup.api.context import RequestContext
from linkup.api.envelope import Envelope, success
from linkup.api.pipeline import APIHandler, RouteConfig
from linkup.api.validation import PROFILE_UPDATE_SCHEMA
from linkup.schemas.common import ErrorResponse
from linkup.services.post_service import parse_int
from linkup.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])

ERROR_RESPONSES = {
    400: {"description": "Validation failed", "model": ErrorResponse},
    404: {"description": "User not found", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
}

directory_pipeline = APIHandler(RouteConfig(rate_limit="general"))
profile_pipeline = APIHandler(RouteConfig(rate_limit="general"))
update_pipeline = APIHandler(
    RouteConfig(require_auth=True, rate_limit="general", validation=PROFILE_UPDATE_SCHEMA)
)


async def _directory(ctx: RequestContext, session: AsyncSession, query, limit) -> Envelope:
    users = await user_service.list_users(session, query, parse_int(limit, "limit", 50))
    return success({"users": users})


async def _profile(ctx: RequestContext, session: AsyncSession, user_id: str) -> Envelope:
    return success(await user_service.get_profile(session, user_id))


async def _update(ctx: RequestContext, session: AsyncSession) -> Envelope:
    user = await user_service.update_profile(session, ctx.require_user(), ctx.data)
    return success({"user": user}, "Profile updated successfully")


@router.get("", responses=ERROR_RESPONSES, summary="Browse members")
async def list_users(
    request: Request,
    q: Optional[str] = Query(default=None, description="Search name, email and bio"),
    limit: Optional[str] = Query(default=None, description="Maximum results (1-100)"),
) -> Response:
    return await directory_pipeline.handle(request, _directory, query=q, limit=limit)


@router.patch("/me", responses=ERROR_RESPONSES, summary="Update your profile")
async def update_profile(request: Request) -> Response:
    return await update_pipeline.handle(request, _update)


@router.get("/{user_id}", responses=ERROR_RESPONSES, summary="Member profile")
async def get_profile(request: Request, user_id: str) -> Response:
    return await profile_pipeline.handle(request, _profile, user_id=user_id)
