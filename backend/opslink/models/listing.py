"""Database models for server listings and their moderation records."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from opslink.db.base import Base
from opslink.models.user import utcnow

LISTING_STATUSES = ("pending", "approved", "denied", "taken-down")


class Listing(Base):
    """Submitted Discord server awaiting or past moderation."""

    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(600), nullable=False)
    invite: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(1024), nullable=False)
    language: Mapped[str | None] = mapped_column(String(32))
    members: Mapped[int] = mapped_column(Integer, default=0)
    discord_server_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str | None] = mapped_column(String(32))
    rules: Mapped[str | None] = mapped_column(String(4096))
    website: Mapped[str | None] = mapped_column(String(255))
    nsfw: Mapped[bool] = mapped_column(Boolean, default=False)
    sponsored: Mapped[bool] = mapped_column(Boolean, default=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    logo: Mapped[str] = mapped_column(String(1024), nullable=False)

    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(512))

    submitter_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    submitter_username: Mapped[str | None] = mapped_column(String(64))
    submitter_discord_id: Mapped[str | None] = mapped_column(String(64))
    submitter_tag: Mapped[str | None] = mapped_column(String(16))

    # Bumped by the ORM on every UPDATE of this row; mismatches raise StaleDataError.
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    reports: Mapped[list[ListingReport]] = relationship(
        "ListingReport", back_populates="listing", cascade="all, delete-orphan", order_by="ListingReport.id"
    )
    edit_requests: Mapped[list[EditRequest]] = relationship(
        "EditRequest", back_populates="listing", cascade="all, delete-orphan", order_by="EditRequest.id"
    )
    reviews: Mapped[list[Review]] = relationship(
        "Review", back_populates="listing", cascade="all, delete-orphan", order_by="Review.id"
    )

    __mapper_args__ = {"version_id_col": revision}


class ListingReport(Base):
    __tablename__ = "listing_reports"

    id: Mapped[int] = mapped_column(primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id", ondelete="CASCADE"), index=True)
    reporter_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    reason: Mapped[str] = mapped_column(String(1024), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    listing: Mapped[Listing] = relationship("Listing", back_populates="reports")


class EditRequest(Base):
    """Owner-proposed change set, removed once a moderator resolves it."""

    __tablename__ = "edit_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id", ondelete="CASCADE"), index=True)
    requested_by_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    changes: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    listing: Mapped[Listing] = relationship("Listing", back_populates="edit_requests")


class Review(Base):
    """Star rating left by a user; one per reviewer per listing."""

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(primary_key=True)
    listing_id: Mapped[int] = mapped_column(ForeignKey("listings.id", ondelete="CASCADE"), index=True)
    reviewer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    discord_username: Mapped[str] = mapped_column(String(64), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    listing: Mapped[Listing] = relationship("Listing", back_populates="reviews")

    __table_args__ = (UniqueConstraint("listing_id", "reviewer_id", name="uq_listing_reviewer"),)
