"""Background scheduler for housekeeping jobs."""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from opslink.core.config import get_settings
from opslink.db.session import get_session
from opslink.services.pairing import sweep_pairing_codes
from opslink.services.users import purge_expired_tokens

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


def start_scheduler() -> None:
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def schedule_housekeeping_jobs() -> None:
    settings = get_settings()
    scheduler = get_scheduler()
    scheduler.add_job(
        sweep_pairing_codes,
        trigger=IntervalTrigger(seconds=settings.pairing_sweep_interval_seconds),
        id="sweep-pairing-codes",
        replace_existing=True,
    )
    scheduler.add_job(
        _purge_expired_tokens,
        trigger=IntervalTrigger(seconds=settings.token_purge_interval_seconds),
        id="purge-expired-tokens",
        replace_existing=True,
    )
    logger.info(
        "Scheduled pairing sweep every %ss and token purge every %ss",
        settings.pairing_sweep_interval_seconds,
        settings.token_purge_interval_seconds,
    )


async def _purge_expired_tokens() -> None:
    async with get_session() as session:
        try:
            await purge_expired_tokens(session)
            await session.commit()
        except Exception:  # noqa: BLE001
            await session.rollback()
            logger.exception("Failed to purge expired tokens")
