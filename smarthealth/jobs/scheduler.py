"""
Background scheduler running the maintenance sweeps.

Usage:
    scheduler = get_scheduler()
    scheduler.start()
    ...
    scheduler.stop()
"""

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from smarthealth.config import settings
from smarthealth.jobs import sweeps

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Owns one ``BackgroundScheduler`` with the sweep and SMS retry jobs."""

    def __init__(
        self,
        sweep_interval_sec: Optional[int] = None,
        sms_interval_sec: Optional[int] = None,
    ) -> None:
        self.sweep_interval_sec = sweep_interval_sec or settings.jobs.sweep_interval_sec
        self.sms_interval_sec = sms_interval_sec or settings.jobs.sms_queue_interval_sec
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.is_running = False

    def run_sweeps(self) -> Optional[sweeps.SweepStats]:
        try:
            stats = sweeps.run_all()
        except Exception:
            logger.exception("Sweep run failed")
            return None
        logger.debug("Sweep stats: %s", stats)
        return stats

    def run_sms_queue(self) -> Optional[dict[str, int]]:
        try:
            return sweeps.process_sms_queue()
        except Exception:
            logger.exception("SMS queue run failed")
            return None

    def start(self) -> None:
        if self.is_running:
            return
        self.scheduler.add_job(
            self.run_sweeps,
            trigger=IntervalTrigger(seconds=self.sweep_interval_sec),
            id="session_sweeps",
            name="Session, queue and offer sweeps",
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.run_sms_queue,
            trigger=IntervalTrigger(seconds=self.sms_interval_sec),
            id="sms_queue",
            name="SMS retry queue",
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(
            "Background jobs started (sweeps every %ds, SMS queue every %ds)",
            self.sweep_interval_sec, self.sms_interval_sec,
        )

    def stop(self) -> None:
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Background jobs stopped")


_scheduler: Optional[SweepScheduler] = None


def get_scheduler() -> SweepScheduler:
    """Get or create the process-wide scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = SweepScheduler()
    return _scheduler
