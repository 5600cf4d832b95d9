"""
Linkup Backend - Post Schemas
===============================

Public projections of posts. Authors and comment authors are embedded as
`UserPublic`; likes are exposed as the list of liking user ids, with counts
alongside so clients need not compute them.
"""

import uuid
from datetime import datetime
from typing import List

from pydantic import Field

from linkup.models import Comment, Post
from linkup.schemas.common import CamelModel
from linkup.schemas.user import UserPublic


class CommentOut(CamelModel):
    id: uuid.UUID
    user: UserPublic
    content: str
    created_at: datetime

    @classmethod
    def from_model(cls, comment: Comment) -> "CommentOut":
        return cls(
            id=comment.id,
            user=UserPublic.model_validate(comment.user),
            content=comment.content,
            created_at=comment.created_at,
        )


class PostOut(CamelModel):
    id: uuid.UUID
    content: str
    author: UserPublic
    images: List[str] = Field(default_factory=list)
    likes: List[str] = Field(default_factory=list, description="Ids of users who liked the post")
    comments: List[CommentOut] = Field(default_factory=list)
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, post: Post) -> "PostOut":
        """Requires author, likes and comments (with users) to be loaded."""
        likes = [str(like.user_id) for like in post.likes]
        comments = [CommentOut.from_model(c) for c in post.comments]
        return cls(
            id=post.id,
            content=post.content,
            author=UserPublic.model_validate(post.author),
            images=list(post.images or []),
            likes=likes,
            comments=comments,
            likes_count=len(likes),
            comments_count=len(comments),
            created_at=post.created_at,
            updated_at=post.updated_at,
        )
