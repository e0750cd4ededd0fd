"""Analytics endpoints fed by the community bot."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.dependencies import get_current_user, get_db, require_bot
from opslink.models.user import User
from opslink.schemas.analytics import AnalyticsReport, SnapshotCreate
from opslink.schemas.auth import MessageResponse
from opslink.services import analytics as analytics_service

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/snapshots", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def record_snapshot(
    payload: SnapshotCreate,
    session: AsyncSession = Depends(get_db),
    _: None = Depends(require_bot),
) -> MessageResponse:
    await analytics_service.record_snapshot(session, payload)
    await session.commit()
    return MessageResponse(message="Snapshot recorded")


@router.get("/{discord_server_id}", response_model=AnalyticsReport)
async def get_analytics(
    discord_server_id: str,
    range: str = Query(default=analytics_service.DEFAULT_RANGE),
    top: int = Query(default=5, ge=1, le=50),
    session: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
) -> AnalyticsReport:
    return await analytics_service.build_report(session, discord_server_id, range, top)
