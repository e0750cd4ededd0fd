"""Database model for analytics snapshots pushed by the community bot."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from opslink.db.base import Base
from opslink.models.user import utcnow


class Snapshot(Base):
    """Point-in-time server statistics.

    Metric columns hold ``{"current": int, "delta": int}`` dictionaries the
    bot computed at capture time.
    """

    __tablename__ = "snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)
    server_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    server_name: Mapped[str | None] = mapped_column(String(255))
    range: Mapped[str | None] = mapped_column(String(8))

    members: Mapped[dict | None] = mapped_column(JSON, default=None)
    messages: Mapped[dict | None] = mapped_column(JSON, default=None)
    voice: Mapped[dict | None] = mapped_column(JSON, default=None)
    joins: Mapped[dict | None] = mapped_column(JSON, default=None)

    text_channels_count: Mapped[int] = mapped_column(Integer, default=0)
    voice_channels_count: Mapped[int] = mapped_column(Integer, default=0)
    roles_count: Mapped[int] = mapped_column(Integer, default=0)
    emojis_count: Mapped[int] = mapped_column(Integer, default=0)
    boosts: Mapped[int] = mapped_column(Integer, default=0)
    afk_members: Mapped[int] = mapped_column(Integer, default=0)

    top_channels: Mapped[list[dict] | None] = mapped_column(JSON, default=None)
    top_members: Mapped[list[dict] | None] = mapped_column(JSON, default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
