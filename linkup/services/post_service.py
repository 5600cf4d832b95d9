"""
Linkup Backend - Post Service
===============================

What:  Post, comment and like mutations with their ownership and size rules.
How:   Stateless methods that take an AsyncSession from the API pipeline's
       unit of work. Nothing here commits; a raised exception rolls the
       whole request back.
Who:   Route handlers in `linkup.routes.posts` and `linkup.routes.users`.

Consistency:
    Likes are rows keyed (post_id, user_id). A toggle is a DELETE of that
    row followed, only if nothing was deleted, by an INSERT that ignores
    conflicts. Two concurrent toggles can never leave a duplicate like, and
    there is no read-modify-write of a like array to lose.

    Comments are independent rows; concurrent comments are concurrent
    inserts and never overwrite one another.

Identifiers:
    A malformed id (not a UUID) is reported exactly like an unknown one.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy import delete, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from linkup.api.validation import sanitize_html
from linkup.config import settings
from linkup.exceptions import (
    ForbiddenError,
    InvalidImageURLError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from linkup.models import Comment, Post, PostLike, User
from linkup.schemas.common import PaginationMeta
from linkup.schemas.post import PostOut

logger = logging.getLogger(__name__)

POST_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 500
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


# ── Shared helpers ────────────────────────────────────────────────────────

def parse_id(value: Any, resource: str) -> uuid.UUID:
    """UUID from a path/query value; malformed ids are reported as not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFoundError(resource, str(value)) from None


def parse_user_id(value: Any) -> uuid.UUID:
    """The session's user id. A token carrying a non-UUID subject is not a session."""
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise UnauthorizedError() from None


def clean_text(value: Any, field: str, max_length: int) -> str:
    """Sanitised, trimmed, non-blank text of at most max_length characters."""
    if not isinstance(value, str):
        raise ValidationError(errors=[f"{field} is required"], field=field)
    text = sanitize_html(value)
    if not text:
        raise ValidationError(errors=[f"{field} is required"], field=field)
    if len(text) > max_length:
        raise ValidationError(
            errors=[f"{field} cannot exceed {max_length} characters"], field=field
        )
    return text


def validate_image_url(url: Any) -> str:
    """
    Accept http(s) URLs on an allow-listed domain (or a subdomain of one)
    whose path ends in an allow-listed image extension.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidImageURLError(str(url), "URL must be a non-empty string")

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidImageURLError(url, "only http and https URLs are allowed")

    host = (parsed.hostname or "").lower()
    domains = settings.image_allowed_domains_list
    if not any(host == d or host.endswith("." + d) for d in domains):
        raise InvalidImageURLError(url, "domain is not allowed")

    extensions = tuple(settings.image_allowed_extensions_list)
    if not parsed.path.lower().endswith(extensions):
        raise InvalidImageURLError(url, "file type is not allowed")

    return url


def validate_images(images: Any) -> List[str]:
    if images is None:
        return []
    if not isinstance(images, list):
        raise ValidationError(errors=["images must be a list of URLs"], field="images")
    if len(images) > settings.max_post_images:
        raise ValidationError(
            errors=[f"images cannot contain more than {settings.max_post_images} entries"],
            field="images",
        )
    return [validate_image_url(url) for url in images]


def parse_int(value: Any, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(errors=[f"{name} must be an integer"], field=name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(errors=[f"{name} must be an integer"], field=name) from None


def post_loaders() -> list:
    """Eager loads needed to build a PostOut."""
    return [
        selectinload(Post.author),
        selectinload(Post.likes),
        selectinload(Post.comments).selectinload(Comment.user),
    ]


class PostService:
    """
    Stateless post operations. A singleton instance is shared by all routes.
    """

    # ── Reads ─────────────────────────────────────────────────────────────
    async def get_post(self, session: AsyncSession, post_id: Any) -> PostOut:
        pid = parse_id(post_id, "post")
        post = await self._fetch(session, pid)
        if post is None:
            raise NotFoundError("post", str(pid))
        return PostOut.from_model(post)

    async def list_posts(
        self,
        session: AsyncSession,
        author_id: Optional[Any] = None,
        page: Any = None,
        limit: Any = None,
    ) -> Tuple[List[PostOut], PaginationMeta]:
        """
        Newest-first page of posts, optionally by one author.

        page is clamped to >= 1 and limit to 1..50 (default 10); values that
        are not integers are a validation error. An author id that is not a
        UUID simply matches nothing.
        """
        page = max(1, parse_int(page, "page", 1))
        limit = min(max(1, parse_int(limit, "limit", DEFAULT_PAGE_SIZE)), MAX_PAGE_SIZE)
        skip = (page - 1) * limit

        count_stmt = select(func.count()).select_from(Post)
        stmt = (
            select(Post)
            .options(*post_loaders())
            .order_by(Post.created_at.desc(), Post.id.desc())
        )

        if author_id not in (None, ""):
            try:
                aid = parse_id(author_id, "user")
            except NotFoundError:
                return [], PaginationMeta.compute(page, limit, 0)
            count_stmt = count_stmt.where(Post.author_id == aid)
            stmt = stmt.where(Post.author_id == aid)

        total = await session.scalar(count_stmt) or 0
        # Past the last row; also keeps huge offsets away from the driver
        if skip >= total:
            return [], PaginationMeta.compute(page, limit, total)

        result = await session.scalars(stmt.offset(skip).limit(limit))
        posts = [PostOut.from_model(p) for p in result.all()]
        return posts, PaginationMeta.compute(page, limit, total)

    # ── Post mutations ────────────────────────────────────────────────────
    async def create_post(
        self,
        session: AsyncSession,
        user_id: Any,
        content: Any,
        images: Any = None,
    ) -> PostOut:
        uid = parse_user_id(user_id)
        text = clean_text(content, "content", POST_MAX_LENGTH)
        image_urls = validate_images(images)

        if await session.get(User, uid) is None:
            raise NotFoundError("user", str(uid))

        post = Post(content=text, author_id=uid, images=image_urls)
        session.add(post)
        await session.flush()

        logger.info("Post %s created by %s (%d images)", post.id, uid, len(image_urls))
        return PostOut.from_model(await self._fetch(session, post.id))

    async def delete_post(self, session: AsyncSession, user_id: Any, post_id: Any) -> str:
        """Only the author may delete. Removes the post's likes and comments with it."""
        uid = parse_user_id(user_id)
        pid = parse_id(post_id, "post")

        author_id = await session.scalar(select(Post.author_id).where(Post.id == pid))
        if author_id is None:
            raise NotFoundError("post", str(pid))
        if author_id != uid:
            raise ForbiddenError(
                "You can only delete your own posts",
                context={"post_id": str(pid), "user_id": str(uid)},
            )

        await session.execute(
            delete(PostLike).where(PostLike.post_id == pid),
            execution_options={"synchronize_session": False},
        )
        await session.execute(
            delete(Comment).where(Comment.post_id == pid),
            execution_options={"synchronize_session": False},
        )
        await session.execute(
            delete(Post).where(Post.id == pid),
            execution_options={"synchronize_session": False},
        )

        logger.info("Post %s deleted by %s", pid, uid)
        return str(pid)

    # ── Likes ─────────────────────────────────────────────────────────────
    async def toggle_like(self, session: AsyncSession, user_id: Any, post_id: Any) -> Dict[str, Any]:
        """
        Like if not liked, unlike if liked. Returns {"liked", "likesCount"}.
        """
        uid = parse_user_id(user_id)
        pid = parse_id(post_id, "post")
        await self._require_post(session, pid)

        removed = await session.execute(
            delete(PostLike).where(PostLike.post_id == pid, PostLike.user_id == uid),
            execution_options={"synchronize_session": False},
        )
        if removed.rowcount:
            liked = False
        else:
            await session.execute(self._insert_like_ignoring_duplicates(session, pid, uid))
            liked = True

        likes_count = await session.scalar(
            select(func.count()).select_from(PostLike).where(PostLike.post_id == pid)
        )
        logger.debug("Post %s %s by %s", pid, "liked" if liked else "unliked", uid)
        return {"liked": liked, "likesCount": likes_count or 0}

    @staticmethod
    def _insert_like_ignoring_duplicates(session: AsyncSession, pid: uuid.UUID, uid: uuid.UUID):
        dialect = session.get_bind().dialect.name
        values = {"post_id": pid, "user_id": uid}
        if dialect == "postgresql":
            return postgresql.insert(PostLike).values(**values).on_conflict_do_nothing(
                index_elements=["post_id", "user_id"]
            )
        if dialect == "sqlite":
            return sqlite.insert(PostLike).values(**values).on_conflict_do_nothing(
                index_elements=["post_id", "user_id"]
            )
        # Other backends: a racing duplicate surfaces as IntegrityError (409)
        return insert(PostLike).values(**values)

    # ── Comments ──────────────────────────────────────────────────────────
    async def add_comment(
        self,
        session: AsyncSession,
        user_id: Any,
        post_id: Any,
        content: Any,
    ) -> PostOut:
        uid = parse_user_id(user_id)
        pid = parse_id(post_id, "post")
        text = clean_text(content, "content", COMMENT_MAX_LENGTH)
        await self._require_post(session, pid)

        session.add(Comment(post_id=pid, user_id=uid, content=text))
        await session.flush()

        logger.info("Comment added to post %s by %s", pid, uid)
        return PostOut.from_model(await self._fetch(session, pid))

    async def delete_comment(
        self,
        session: AsyncSession,
        user_id: Any,
        post_id: Any,
        comment_id: Any,
    ) -> PostOut:
        """The comment's author or the post's author may delete a comment."""
        uid = parse_user_id(user_id)
        pid = parse_id(post_id, "post")
        if comment_id in (None, ""):
            raise ValidationError(errors=["commentId is required"], field="commentId")

        post_author = await session.scalar(select(Post.author_id).where(Post.id == pid))
        if post_author is None:
            raise NotFoundError("post", str(pid))

        cid = parse_id(comment_id, "comment")
        comment_author = await session.scalar(
            select(Comment.user_id).where(Comment.id == cid, Comment.post_id == pid)
        )
        if comment_author is None:
            raise NotFoundError("comment", str(cid))

        if uid not in (comment_author, post_author):
            raise ForbiddenError(
                "You can only delete your own comments or comments on your posts",
                context={"comment_id": str(cid), "user_id": str(uid)},
            )

        await session.execute(
            delete(Comment).where(Comment.id == cid),
            execution_options={"synchronize_session": False},
        )

        logger.info("Comment %s on post %s deleted by %s", cid, pid, uid)
        return PostOut.from_model(await self._fetch(session, pid))

    # ── Internals ─────────────────────────────────────────────────────────
    @staticmethod
    async def _require_post(session: AsyncSession, pid: uuid.UUID) -> None:
        exists = await session.scalar(select(Post.id).where(Post.id == pid))
        if exists is None:
            raise NotFoundError("post", str(pid))

    @staticmethod
    async def _fetch(session: AsyncSession, pid: uuid.UUID) -> Optional[Post]:
        stmt = (
            select(Post)
            .where(Post.id == pid)
            .options(*post_loaders())
            .execution_options(populate_existing=True)
        )
        return await session.scalar(stmt)


# Singleton instance
post_service = PostService()
