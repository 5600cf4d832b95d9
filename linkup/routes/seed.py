"""
Linkup Backend - Seed Routes
==============================

GET  /api/seed   how to use the endpoint, and the sample accounts
POST /api/seed   wipe and reseed (refused in production)
"""

from fastapi import APIRouter, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linkup.api.context import RequestContext
from linkup.api.envelope import Envelope, success
from linkup.api.pipeline import APIHandler, RouteConfig
from linkup.config import settings
from linkup.exceptions import ForbiddenError
from linkup.services.seed_service import SAMPLE_PASSWORD, sample_accounts, seed_database

router = APIRouter(prefix="/api/seed", tags=["Seed"])

info_pipeline = APIHandler(RouteConfig(rate_limit="general"))
seed_pipeline = APIHandler(RouteConfig(rate_limit="auth"))


async def _info(ctx: RequestContext, session: AsyncSession) -> Envelope:
    return success(
        {
            "instructions": "Send a POST request to this endpoint to reseed the database with sample data.",
            "testAccounts": sample_accounts(),
        },
        "Seed endpoint is available",
    )


async def _seed(ctx: RequestContext, session: AsyncSession) -> Envelope:
    if settings.is_production:
        raise ForbiddenError("Database seeding is not allowed in production")
    result = await seed_database(session)
    return success(
        {**result, "testAccounts": sample_accounts(), "password": SAMPLE_PASSWORD},
        "Database seeded successfully",
    )


@router.get("", summary="Seed endpoint info")
async def seed_info(request: Request) -> Response:
    return await info_pipeline.handle(request, _info)


@router.post("", summary="Reseed the database with sample data")
async def seed(request: Request) -> Response:
    return await seed_pipeline.handle(request, _seed)
