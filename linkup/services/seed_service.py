"""
Linkup Backend - Sample Data Seeder
=====================================

What:  Replaces all users and posts with a small demo network.
Who:   POST /api/seed (refused in production) and the `linkup-seed` command.

Every sample account uses the password in SAMPLE_PASSWORD.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from linkup.models import Comment, Post, PostLike, User
from linkup.services.credentials import CredentialService, credential_service

logger = logging.getLogger(__name__)

SAMPLE_PASSWORD = "password123"

SAMPLE_USERS: List[Dict[str, str]] = [
    {
        "name": "Priya Raman",
        "email": "priya.raman@northwind.dev",
        "role": "Backend Engineer",
        "bio": "Backend engineer at Northwind. Python, Postgres and far too many message queues.",
    },
    {
        "name": "Tomas Okafor",
        "email": "tomas.okafor@brightlane.io",
        "role": "Product Manager",
        "bio": "Product manager at Brightlane. Ex-developer, now translating customer pain into roadmaps.",
    },
    {
        "name": "Hannah Lindqvist",
        "email": "hannah.l@pixelforge.com",
        "role": "Product Designer",
        "bio": "Product designer at Pixelforge. Design systems, accessibility audits and good typography.",
    },
    {
        "name": "Mateo Alvarez",
        "email": "mateo.alvarez@quantleaf.ai",
        "role": "Data Scientist",
        "bio": "Data scientist at Quantleaf. Forecasting, experimentation and honest error bars.",
    },
    {
        "name": "Grace Mwangi",
        "email": "grace.mwangi@opsharbor.com",
        "role": "Site Reliability Engineer",
        "bio": "SRE at OpsHarbor. Kubernetes, incident reviews and boring, reliable deploys.",
    },
    {
        "name": "Oliver Brandt",
        "email": "oliver.brandt@seedcircle.vc",
        "role": "Founder",
        "bio": "Two-time founder, occasional angel investor, permanent optimist.",
    },
]

SAMPLE_POSTS: List[Dict[str, str]] = [
    {
        "email": "priya.raman@northwind.dev",
        "content": "Moved our job queue off polling and onto LISTEN/NOTIFY this week. "
        "p95 latency dropped from 2s to 80ms. Sometimes the database already has the feature you need.",
    },
    {
        "email": "tomas.okafor@brightlane.io",
        "content": "Five customer calls this week and the most requested feature was one we "
        "had already shipped. Discoverability is a feature too.",
    },
    {
        "email": "hannah.l@pixelforge.com",
        "content": "Ran our first screen-reader usability session today. Three small fixes to "
        "focus order made the checkout flow usable for everyone on the panel.",
    },
    {
        "email": "mateo.alvarez@quantleaf.ai",
        "content": "Reminder: a model with 94% accuracy on a dataset that is 95% one class "
        "is worse than a constant. Check your baselines.",
    },
    {
        "email": "grace.mwangi@opsharbor.com",
        "content": "Our best incident review this quarter had no villain and three action items, "
        "all of them about making the safe path the easy path.",
    },
    {
        "email": "oliver.brandt@seedcircle.vc",
        "content": "Founders: your competitor is usually the spreadsheet your customer already has. "
        "Build something ten times better than that.",
    },
    {
        "email": "priya.raman@northwind.dev",
        "content": "Pairing with a new hire today and they asked why we cache that endpoint at all. "
        "Turns out we do not need to. Fresh eyes are underrated.",
    },
]


async def seed_database(
    session: AsyncSession,
    credentials: Optional[CredentialService] = None,
) -> Dict[str, Any]:
    """
    Delete every user, post, like and comment, then insert the sample network.

    Returns counts of what was created.
    """
    credentials = credentials or credential_service

    await session.execute(delete(PostLike), execution_options={"synchronize_session": False})
    await session.execute(delete(Comment), execution_options={"synchronize_session": False})
    await session.execute(delete(Post), execution_options={"synchronize_session": False})
    await session.execute(delete(User), execution_options={"synchronize_session": False})
    logger.info("Cleared existing users and posts")

    # One hash for every sample account; bcrypt is slow by design
    password_hash = await credentials.hash_password(SAMPLE_PASSWORD)

    users: Dict[str, User] = {}
    for sample in SAMPLE_USERS:
        user = User(
            name=sample["name"],
            email=sample["email"],
            password_hash=password_hash,
            bio=sample["bio"],
        )
        session.add(user)
        users[sample["email"]] = user
    await session.flush()

    posts_created = 0
    for sample in SAMPLE_POSTS:
        author = users.get(sample["email"])
        if author is None:
            logger.warning("Skipping sample post for unknown author %s", sample["email"])
            continue
        session.add(Post(content=sample["content"], author_id=author.id, images=[]))
        posts_created += 1
    await session.flush()

    logger.info("Seeded %d users and %d posts", len(users), posts_created)
    return {"usersCreated": len(users), "postsCreated": posts_created}


def sample_accounts() -> List[Dict[str, str]]:
    return [
        {"email": u["email"], "password": SAMPLE_PASSWORD, "role": u["role"]}
        for u in SAMPLE_USERS
    ]


async def _run() -> None:
    from linkup.config import settings
    from linkup.database import Database

    database = Database(settings.database_url)
    try:
        await database.acquire()
        if settings.auto_create_tables:
            await database.create_all()
        async with database.session() as session:
            result = await seed_database(session)
        logger.info("Seeding complete: %s", result)
    finally:
        await database.shutdown()


def main() -> None:
    """Console entry point: `linkup-seed`."""
    from linkup.config import settings
    from linkup.main import setup_logging

    setup_logging()
    if settings.is_production:
        logger.error("Refusing to seed a production database")
        raise SystemExit(1)
    asyncio.run(_run())
