"""Database models for accounts and their linked social profiles."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from opslink.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Account with hashed password, role, single-use tokens and session epoch."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    discord_username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    discord_user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    discord_tag: Mapped[str | None] = mapped_column(String(16))
    discord_avatar: Mapped[str | None] = mapped_column(String(255))
    discord_status: Mapped[str | None] = mapped_column(String(32))
    discord_activity: Mapped[str | None] = mapped_column(String(255))
    discord_badges: Mapped[list[str] | None] = mapped_column(JSON, default=list)

    role: Mapped[str] = mapped_column(String(32), default="user")

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    # Token digests and expiries are always set and cleared together.
    email_verification_token: Mapped[str | None] = mapped_column(String(128), index=True)
    email_verification_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    password_reset_token: Mapped[str | None] = mapped_column(String(128), index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    connections: Mapped[list[SocialConnection]] = relationship(
        "SocialConnection", back_populates="user", cascade="all, delete-orphan"
    )
    socials: Mapped[list[SocialProfile]] = relationship(
        "SocialProfile", back_populates="user", cascade="all, delete-orphan"
    )


class SocialConnection(Base):
    """OAuth-linked account on an external platform."""

    __tablename__ = "social_connections"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str | None] = mapped_column(String(128))
    profile_url: Mapped[str | None] = mapped_column(String(512))
    access_token_encrypted: Mapped[str | None] = mapped_column(String(2048))
    refresh_token_encrypted: Mapped[str | None] = mapped_column(String(2048))
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="connections")

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_user_provider"),)


class SocialProfile(Base):
    """Publicly listed handle the user added by hand."""

    __tablename__ = "social_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    handle: Mapped[str] = mapped_column(String(128), nullable=False)
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="socials")
