"""
Linkup Backend - Post, Like and Comment Models
================================================

What:  ORM models for `posts`, `post_likes` and `comments`.
How:   A post owns two child collections stored as rows rather than arrays:

       post_likes  composite primary key (post_id, user_id). A user can
                   appear at most once per post, so a like can never be
                   duplicated even under concurrent toggles.
       comments    one row per comment, ordered by created_at. Concurrent
                   appends are independent inserts and never overwrite
                   each other.

Who:   Used by PostService and the seeder.

Query patterns:
    - Feed: posts ORDER BY created_at DESC, optionally WHERE author_id = ?
      → idx_posts_author_created / idx_posts_created_at
    - Like count: COUNT(*) FROM post_likes WHERE post_id = ?  (PK prefix)
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from linkup.database import Base
from linkup.models.user import User, utcnow


class Post(Base):
    """A short text post with optional images."""

    __tablename__ = "posts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Sanitized, trimmed, 1-1000 chars
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Immutable after creation
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Validated image URLs (domain + extension allow-lists), at most a handful
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # ── Relationships ─────────────────────────────────────────────────────
    # Loaded explicitly with selectinload(); lazy loading is not available
    # on AsyncSession.
    author: Mapped[User] = relationship(User, lazy="raise")
    likes: Mapped[List["PostLike"]] = relationship(
        "PostLike",
        lazy="raise",
        passive_deletes=True,
        order_by="PostLike.created_at",
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment",
        lazy="raise",
        passive_deletes=True,
        order_by="Comment.created_at",
    )

    __table_args__ = (
        Index("idx_posts_created_at", created_at.desc()),
        Index("idx_posts_author_created", author_id, created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, author_id={self.author_id})>"


class PostLike(Base):
    """One user's like on one post."""

    __tablename__ = "post_likes"

    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<PostLike(post_id={self.post_id}, user_id={self.user_id})>"


class Comment(Base):
    """A comment on a post. Immutable; only delete exists."""

    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    post_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Sanitized, trimmed, 1-500 chars
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Server-assigned; defines display order
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped[User] = relationship(User, lazy="raise")

    __table_args__ = (
        Index("idx_comments_post_created", post_id, created_at),
    )

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, post_id={self.post_id})>"
