"""
Linkup Backend - User Service
===============================

What:  Registration, login, presence, profile edits and the member directory.
How:   Passwords and tokens go through the CredentialService seam; rows are
       read and written through the pipeline's AsyncSession. Users leave this
       module only as `UserPublic`.
Who:   Route handlers in `linkup.routes.auth` and `linkup.routes.users`.

Login never reveals whether an email is registered: both failure paths
raise the same error, and the unknown-email path still pays for one bcrypt
verification.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from linkup.api.validation import sanitize_html
from linkup.exceptions import DuplicateError, NotFoundError, UnauthorizedError, ValidationError
from linkup.models import Comment, Post, PostLike, User
from linkup.schemas.post import PostOut
from linkup.schemas.user import ProfileStats, UserPublic
from linkup.services.credentials import CredentialService, credential_service
from linkup.services.post_service import (
    parse_id,
    parse_user_id,
    post_loaders,
    validate_image_url,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
MAX_DIRECTORY_SIZE = 100
NAME_MIN_LENGTH = 2


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    def __init__(self, credentials: Optional[CredentialService] = None):
        self.credentials = credentials or credential_service

    # ── Auth ──────────────────────────────────────────────────────────────
    async def register(
        self,
        session: AsyncSession,
        name: str,
        email: str,
        password: str,
        bio: Optional[str] = None,
    ) -> Tuple[UserPublic, str]:
        """
        Create an account and return it with a fresh session token.

        Raises:
            DuplicateError: email already registered (HTTP 400)
        """
        email = normalize_email(email)
        existing = await session.scalar(select(User.id).where(User.email == email))
        if existing is not None:
            raise DuplicateError(
                "User with this email already exists",
                status_code=400,
                context={"email": email},
            )

        user = User(
            name=name.strip(),
            email=email,
            password_hash=await self.credentials.hash_password(password),
            bio=(bio or "").strip(),
            is_online=True,
            last_seen=datetime.now(timezone.utc),
        )
        session.add(user)
        # Flush so a racing duplicate fails here (IntegrityError) before a token is issued
        await session.flush()

        logger.info("User registered: %s", user.id)
        return UserPublic.model_validate(user), self.credentials.create_token(str(user.id))

    async def authenticate(
        self,
        session: AsyncSession,
        email: str,
        password: str,
    ) -> Tuple[UserPublic, str]:
        user = await session.scalar(select(User).where(User.email == normalize_email(email)))
        if user is None:
            await self.credentials.burn_verification(password)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not await self.credentials.verify_password(password, user.password_hash):
            logger.info("Failed login for user %s", user.id)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        user.is_online = True
        user.last_seen = datetime.now(timezone.utc)
        await session.flush()

        logger.info("User logged in: %s", user.id)
        return UserPublic.model_validate(user), self.credentials.create_token(str(user.id))

    async def get_current(self, session: AsyncSession, user_id: Any) -> UserPublic:
        """The session's user, with presence refreshed."""
        user = await self._get_user(session, parse_user_id(user_id))
        user.is_online = True
        user.last_seen = datetime.now(timezone.utc)
        await session.flush()
        return UserPublic.model_validate(user)

    async def logout(self, session: AsyncSession, user_id: Optional[Any]) -> None:
        """Mark the user offline. Anonymous logouts are a no-op."""
        if user_id is None:
            return
        try:
            uid = parse_user_id(user_id)
        except UnauthorizedError:
            return
        user = await session.get(User, uid)
        if user is not None:
            user.is_online = False
            user.last_seen = datetime.now(timezone.utc)
            await session.flush()
            logger.info("User logged out: %s", uid)

    # ── Profiles ──────────────────────────────────────────────────────────
    async def update_profile(
        self,
        session: AsyncSession,
        user_id: Any,
        changes: Dict[str, Any],
    ) -> UserPublic:
        """Apply name / bio / profileImage edits. Absent keys are left alone."""
        user = await self._get_user(session, parse_user_id(user_id))

        if changes.get("name") is not None:
            name = changes["name"].strip()
            # Optional-field validation skips blanks; a name is never blank
            if len(name) < NAME_MIN_LENGTH:
                raise ValidationError(
                    errors=[f"name must be at least {NAME_MIN_LENGTH} characters long"],
                    field="name",
                )
            user.name = name
        if "bio" in changes and changes["bio"] is not None:
            user.bio = sanitize_html(changes["bio"])
        if "profileImage" in changes and changes["profileImage"] is not None:
            image = changes["profileImage"]
            user.profile_image = validate_image_url(image) if image.strip() else ""

        await session.flush()
        logger.info("Profile updated: %s", user.id)
        return UserPublic.model_validate(user)

    async def get_profile(self, session: AsyncSession, user_id: Any) -> Dict[str, Any]:
        """A member's public profile, their posts (newest first) and totals."""
        uid = parse_id(user_id, "user")
        user = await self._get_user(session, uid)

        result = await session.scalars(
            select(Post)
            .where(Post.author_id == uid)
            .options(*post_loaders())
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        posts = [PostOut.from_model(p) for p in result.all()]

        total_likes = await session.scalar(
            select(func.count())
            .select_from(PostLike)
            .join(Post, Post.id == PostLike.post_id)
            .where(Post.author_id == uid)
        )
        total_comments = await session.scalar(
            select(func.count())
            .select_from(Comment)
            .join(Post, Post.id == Comment.post_id)
            .where(Post.author_id == uid)
        )

        return {
            "user": UserPublic.model_validate(user),
            "posts": posts,
            "stats": ProfileStats(
                posts_count=len(posts),
                total_likes=total_likes or 0,
                total_comments=total_comments or 0,
            ),
        }

    async def list_users(
        self,
        session: AsyncSession,
        query: Optional[str] = None,
        limit: int = 50,
    ) -> List[UserPublic]:
        """Member directory, newest first, optionally searched by name, email or bio."""
        limit = min(max(1, limit), MAX_DIRECTORY_SIZE)
        stmt = select(User).order_by(User.created_at.desc()).limit(limit)

        if query and query.strip():
            pattern = f"%{query.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.name).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(User.bio).like(pattern),
                )
            )

        result = await session.scalars(stmt)
        return [UserPublic.model_validate(u) for u in result.all()]

    # ── Internals ─────────────────────────────────────────────────────────
    @staticmethod
    async def _get_user(session: AsyncSession, uid) -> User:
        user = await session.get(User, uid)
        if user is None:
            raise NotFoundError("user", str(uid))
        return user


# Singleton instance
user_service = UserService()
