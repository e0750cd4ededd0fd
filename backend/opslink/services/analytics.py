"""Aggregation of bot-captured analytics snapshots."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.models.snapshot import Snapshot
from opslink.schemas.analytics import AnalyticsReport, ChartSeries, Metric, RankedEntry, SnapshotCreate

RANGE_HOURS = {
    "24h": 24,
    "7d": 7 * 24,
    "30d": 30 * 24,
    "90d": 90 * 24,
    "all": 1000 * 24,
}
DEFAULT_RANGE = "7d"
METRICS = ("members", "messages", "voice", "joins")


def range_start(range_name: str | None, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    hours = RANGE_HOURS.get(range_name or DEFAULT_RANGE, RANGE_HOURS[DEFAULT_RANGE])
    return now - timedelta(hours=hours)


def _current(snapshot: Snapshot, metric: str) -> int:
    value = getattr(snapshot, metric) or {}
    return int(value.get("current") or 0)


def _ranked(entries: list[dict] | None, top: int) -> list[RankedEntry]:
    ordered = sorted(entries or [], key=lambda item: item.get("count") or 0, reverse=True)
    return [RankedEntry(name=item.get("name") or "Unknown", count=item.get("count") or 0) for item in ordered[:top]]


async def record_snapshot(session: AsyncSession, data: SnapshotCreate) -> Snapshot:
    payload = data.model_dump()
    snapshot = Snapshot(**payload)
    session.add(snapshot)
    await session.flush()
    return snapshot


async def build_report(
    session: AsyncSession, discord_server_id: str, range_name: str | None = None, top: int = 5
) -> AnalyticsReport:
    """Summarize snapshots captured since the start of the range."""

    since = range_start(range_name)
    result = await session.execute(
        select(Snapshot)
        .where(Snapshot.server_id == discord_server_id, Snapshot.created_at >= since)
        .order_by(Snapshot.created_at, Snapshot.id)
    )
    snapshots = list(result.scalars().all())
    if not snapshots:
        return AnalyticsReport()

    latest = snapshots[-1]
    if len(snapshots) > 1:
        previous = snapshots[-2]
    else:
        result = await session.execute(
            select(Snapshot)
            .where(Snapshot.server_id == discord_server_id, Snapshot.created_at < since)
            .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())
            .limit(1)
        )
        previous = result.scalar_one_or_none() or latest

    metrics = {
        metric: Metric(current=_current(latest, metric), delta=_current(latest, metric) - _current(previous, metric))
        for metric in METRICS
    }
    chart = ChartSeries(
        labels=[f"{item.created_at.month}/{item.created_at.day} {item.created_at.hour}:00" for item in snapshots],
        **{metric: [_current(item, metric) for item in snapshots] for metric in METRICS},
    )
    return AnalyticsReport(
        server_name=latest.server_name or "Unknown",
        text_channels_count=latest.text_channels_count or 0,
        voice_channels_count=latest.voice_channels_count or 0,
        roles_count=latest.roles_count or 0,
        emojis_count=latest.emojis_count or 0,
        boosts=latest.boosts or 0,
        afk_members=latest.afk_members or 0,
        top_channels=_ranked(latest.top_channels, top),
        top_members=_ranked(latest.top_members, top),
        chart=chart,
        **metrics,
    )
