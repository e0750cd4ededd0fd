"""Pydantic schemas for analytics snapshots and aggregated reports."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Metric(BaseModel):
    current: int = 0
    delta: int = 0


class RankedEntry(BaseModel):
    name: str = "Unknown"
    count: int = 0


class SnapshotCreate(BaseModel):
    server_id: str = Field(..., min_length=1, max_length=64)
    server_name: str | None = Field(default=None, max_length=255)
    range: str | None = Field(default=None, pattern=r"^(24h|7d|30d)$")
    members: Metric | None = None
    messages: Metric | None = None
    voice: Metric | None = None
    joins: Metric | None = None
    text_channels_count: int = Field(default=0, ge=0)
    voice_channels_count: int = Field(default=0, ge=0)
    roles_count: int = Field(default=0, ge=0)
    emojis_count: int = Field(default=0, ge=0)
    boosts: int = Field(default=0, ge=0)
    afk_members: int = Field(default=0, ge=0)
    top_channels: list[dict[str, Any]] | None = None
    top_members: list[dict[str, Any]] | None = None


class ChartSeries(BaseModel):
    labels: list[str] = []
    members: list[int] = []
    messages: list[int] = []
    voice: list[int] = []
    joins: list[int] = []


class AnalyticsReport(BaseModel):
    server_name: str = "Unknown"
    members: Metric = Metric()
    messages: Metric = Metric()
    voice: Metric = Metric()
    joins: Metric = Metric()
    text_channels_count: int = 0
    voice_channels_count: int = 0
    roles_count: int = 0
    emojis_count: int = 0
    boosts: int = 0
    afk_members: int = 0
    top_channels: list[RankedEntry] = []
    top_members: list[RankedEntry] = []
    chart: ChartSeries = ChartSeries()
