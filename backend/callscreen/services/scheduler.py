"""Recurring report scheduler.

One ``ReportScheduler`` is built at process start and handed to whatever
needs it (API lifespan, CLI). Each tick picks up enabled configs whose
``next_send_at`` is empty or in the past and sends them one after another.
"""
import asyncio
import calendar
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from callscreen.core.clock import Clock, system_clock
from callscreen.models import ReportConfig, ReportFrequency
from callscreen.services.mailer import Mailer
from callscreen.services.report_configs import configs_due_now, list_report_configs, update_config_schedule
from callscreen.services.reports import DeliveryResult, send_report

logger = logging.getLogger(__name__)

DEFAULT_HOUR = 9


def compute_next_send_at(config: ReportConfig, now: datetime) -> datetime:
    """Next due time, always on a later calendar day than ``now``.

    Weekly adds whole weeks without snapping to ``day_of_week``. Monthly adds
    calendar months and then moves to ``day_of_month``, clamped to the last
    day of that month. Unknown frequencies fall back to a week at 09:00.
    """
    value = max(config.frequency_value or 1, 1)
    hour = config.hour_of_day if config.hour_of_day is not None else DEFAULT_HOUR

    if config.frequency == ReportFrequency.DAILY.value:
        next_send = now + timedelta(days=value)
    elif config.frequency == ReportFrequency.WEEKLY.value:
        next_send = now + timedelta(days=value * 7)
    elif config.frequency == ReportFrequency.MONTHLY.value:
        next_send = now + relativedelta(months=value)
        if config.day_of_month:
            last_day = calendar.monthrange(next_send.year, next_send.month)[1]
            next_send = next_send.replace(day=min(config.day_of_month, last_day))
    else:
        logger.warning("Unknown frequency %r for report %r; defaulting to weekly", config.frequency, config.name)
        next_send = now + timedelta(days=7)
        hour = DEFAULT_HOUR

    return next_send.replace(hour=hour, minute=0, second=0, microsecond=0)


class ReportScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        mailer: Mailer,
        clock: Clock = system_clock,
        tick_seconds: float = 60,
        refresh_seconds: float = 3600,
        report_stream: Optional[str] = None,
    ) -> None:
        self.session_factory = session_factory
        self.mailer = mailer
        self.clock = clock
        self.tick_seconds = tick_seconds
        self.refresh_seconds = refresh_seconds
        self.report_stream = report_stream
        self.last_tick_at: Optional[datetime] = None
        self.last_refresh_at: Optional[datetime] = None
        self._schedule: dict[int, Optional[datetime]] = {}
        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        if self._running:
            logger.info("Report scheduler is already running")
            return False
        loop = asyncio.get_running_loop()
        self._tasks = [loop.create_task(self._tick_loop()), loop.create_task(self._refresh_loop())]
        self._running = True
        logger.info("Report scheduler started - checking for reports every %ss", self.tick_seconds)
        return True

    async def stop(self) -> bool:
        if not self._running:
            logger.info("Report scheduler is not running")
            return False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._running = False
        logger.info("Report scheduler stopped")
        return True

    def status(self) -> dict:
        upcoming = [value for value in self._schedule.values() if value is not None]
        return {
            "running": self._running,
            "active_configs": len(self._schedule),
            "last_tick_at": self.last_tick_at,
            "last_refresh_at": self.last_refresh_at,
            "next_due_at": min(upcoming) if upcoming else None,
        }

    def dispatch(self, db: Session, config: ReportConfig) -> DeliveryResult:
        """Send one config and advance its schedule whatever the outcome."""
        now = self.clock.now()
        config_id, name = config.id, config.name
        next_send_at = compute_next_send_at(config, now)
        try:
            result = send_report(db, config, self.mailer, now, message_stream=self.report_stream)
        except Exception as exc:
            logger.exception("Failed to generate/send report %r", name)
            db.rollback()
            result = DeliveryResult(errors=[f"Report generation failed: {exc}"])
        update_config_schedule(db, config_id, last_sent_at=now, next_send_at=next_send_at)
        self._schedule[config_id] = next_send_at
        if result.errors:
            logger.warning("Errors in report %r: %s", name, result.errors)
        return result

    def process_due_reports(self) -> dict[int, DeliveryResult]:
        results: dict[int, DeliveryResult] = {}
        with self._lock, self.session_factory() as db:
            now = self.clock.now()
            configs = configs_due_now(db, now)
            self.last_tick_at = now
            if not configs:
                return results
            logger.info("Found %s scheduled reports to process", len(configs))
            for config in configs:
                config_id, name = config.id, config.name
                logger.info("Processing scheduled report: %s", name)
                try:
                    results[config_id] = self.dispatch(db, config)
                except Exception:
                    # Left due; the next tick retries it.
                    logger.exception("Failed to process report %r", name)
                    db.rollback()
        return results

    def refresh_schedule(self) -> int:
        with self.session_factory() as db:
            configs = list_report_configs(db, enabled_only=True)
            self._schedule = {config.id: config.next_send_at for config in configs}
        self.last_refresh_at = self.clock.now()
        logger.info("Refreshed schedule with %s active reports", len(self._schedule))
        return len(self._schedule)

    async def _tick_loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.process_due_reports)
            except Exception:
                logger.exception("Error processing scheduled reports")
            await asyncio.sleep(self.tick_seconds)

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.refresh_schedule)
            except Exception:
                logger.exception("Error refreshing report schedule")
            await asyncio.sleep(self.refresh_seconds)
