"""
Linkup Backend - User Schemas
===============================

`UserPublic` is the only shape a user ever leaves the API in. It has no
password field, so a password hash cannot be serialised by accident.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from linkup.schemas.common import CamelModel


class UserPublic(CamelModel):
    id: uuid.UUID = Field(description="User identifier")
    name: str
    email: str
    bio: str = ""
    profile_image: str = ""
    is_online: bool = False
    last_seen: Optional[datetime] = None
    created_at: datetime


class ProfileStats(CamelModel):
    posts_count: int
    total_likes: int
    total_comments: int


class UserList(CamelModel):
    users: List[UserPublic]
