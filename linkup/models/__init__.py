"""ORM models. Importing this package registers every table on Base.metadata."""

from linkup.models.post import Comment, Post, PostLike
from linkup.models.user import User

__all__ = ["User", "Post", "PostLike", "Comment"]
