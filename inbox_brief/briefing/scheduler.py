"""APScheduler setup for the daily briefing refresh."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from inbox_brief.briefing.controller import BriefingController

logger = logging.getLogger(__name__)

_DEFAULT_TIME = (7, 0)


def _parse_briefing_time(time_str: str) -> tuple[int, int]:
    """Parse 'HH:MM' into (hour, minute). Falls back to (7, 0) on parse error."""
    try:
        hour_str, minute_str = time_str.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (ValueError, AttributeError):
        logger.warning("Invalid BRIEFING_TIME %r; defaulting to 07:00", time_str)
        return _DEFAULT_TIME
    if not (0 <= hour < 24 and 0 <= minute < 60):
        logger.warning("BRIEFING_TIME %r out of range; defaulting to 07:00", time_str)
        return _DEFAULT_TIME
    return hour, minute


def create_briefing_scheduler(controller: BriefingController) -> AsyncIOScheduler:
    """Return an AsyncIOScheduler that refreshes the briefing once a day.

    The job calls the coroutine ``controller.refresh`` so it runs on the event
    loop; a trigger that fires mid-refresh is rejected by the controller.
    The caller is responsible for calling scheduler.start() and scheduler.shutdown().
    """
    scheduler = AsyncIOScheduler()
    hour, minute = _parse_briefing_time(os.environ.get("BRIEFING_TIME", "07:00"))
    scheduler.add_job(
        controller.refresh,
        "cron",
        hour=hour,
        minute=minute,
        id="daily-briefing",
        coalesce=True,
        misfire_grace_time=3600,
    )
    logger.info("Briefing scheduled daily at %02d:%02d", hour, minute)
    return scheduler
