"""Cron trigger for the daily briefing.

Uses APScheduler's AsyncIOScheduler so the job runs inside the server's
event loop without spawning threads of its own.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from linear_agent.briefing import BriefingService, send_daily_briefing
from linear_agent.config import BRIEFING_CRON, SCHEDULER_TIMEZONE, TELEGRAM_CHAT_ID
from linear_agent.services.telegram import TelegramClient

logger = logging.getLogger(__name__)

JOB_ID = "daily_briefing"


def parse_cron(cron_str: str, timezone: str = SCHEDULER_TIMEZONE) -> CronTrigger:
    """Parse a 5-field cron string into an APScheduler CronTrigger."""
    parts = cron_str.split()
    if len(parts) != 5:
        raise ValueError(f"Invalid cron string (expected 5 fields): {cron_str!r}")
    minute, hour, day, month, day_of_week = parts
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
        timezone=timezone,
    )


class BriefingScheduler:
    """Schedules :func:`send_daily_briefing` on ``BRIEFING_CRON``.

    Usage:
        scheduler = BriefingScheduler(service, telegram)
        scheduler.start()   # inside a running event loop
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        service: BriefingService,
        telegram: TelegramClient,
        chat_id: str = TELEGRAM_CHAT_ID,
        cron: str = BRIEFING_CRON,
        timezone: str = SCHEDULER_TIMEZONE,
    ) -> None:
        self._service = service
        self._telegram = telegram
        self._chat_id = chat_id
        self._cron = cron
        self._timezone = timezone
        self._scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def run_once(self) -> None:
        await send_daily_briefing(self._service, self._telegram, self._chat_id)

    def start(self) -> None:
        try:
            trigger = parse_cron(self._cron, self._timezone)
        except ValueError as e:
            logger.error("Invalid cron config, scheduler not started: %s", e)
            return

        self._scheduler.add_job(
            self.run_once,
            trigger=trigger,
            id=JOB_ID,
            replace_existing=True,
            misfire_grace_time=3600,
        )
        self._scheduler.start()
        logger.info("Briefing scheduler started: %s (tz: %s)", self._cron, self._timezone)

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Briefing scheduler stopped")
