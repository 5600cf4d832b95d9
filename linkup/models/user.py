"""
Linkup Backend - User Model
=============================

What:  ORM model for the `users` table.
How:   SQLAlchemy 2.0 typed mappings (`Mapped` / `mapped_column`) with
       portable column types, so the same model runs on PostgreSQL and SQLite.
Who:   Used by UserService, PostService (author joins) and the seeder.

Table notes:
    - email is stored trimmed and lower-cased; the unique index enforces
      one account per address.
    - password_hash never leaves the service layer. Public projections
      (`schemas.user.UserPublic`) have no password field at all.
    - Users are never hard-deleted.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from linkup.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A registered member."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # bcrypt hash (passlib); 60 chars today, room for scheme changes
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")

    profile_image: Mapped[str] = mapped_column(String(2048), nullable=False, default="")

    # ── Presence ──────────────────────────────────────────────────────────
    # Set on login and on /auth/me, cleared on logout
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_users_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
