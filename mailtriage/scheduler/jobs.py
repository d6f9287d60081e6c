"""APScheduler job that polls the mailbox."""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mailtriage.config import POLL_INTERVAL_MS

logger = logging.getLogger(__name__)

JOB_ID = "triage_cycle"


class Poller:
    """
    Runs the orchestrator's cycle on a fixed interval.

    Ticks never overlap: if a cycle is still running when the next tick
    fires, APScheduler skips that tick (max_instances=1) and collapses any
    backlog into a single run (coalesce=True).
    """

    def __init__(self, orchestrator, interval_ms: int = POLL_INTERVAL_MS):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.orchestrator = orchestrator
        self.interval_ms = interval_ms
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    async def tick(self):
        """One scheduled run. Errors are logged so the schedule keeps going."""
        logger.info("Checking for new unseen emails...")
        try:
            emails = await self.orchestrator.run_cycle()
        except Exception:
            logger.exception("Triage cycle crashed")
            return []
        if emails:
            logger.info(f"Processed {len(emails)} email(s):")
            for email in emails:
                logger.info(f"  {email.summary()}")
        return emails

    def start(self, scheduler: Optional[AsyncIOScheduler] = None) -> AsyncIOScheduler:
        """
        Schedule the cycle and start the scheduler. Must be called with an
        asyncio event loop running (or about to run) in this thread.
        """
        if self._scheduler is not None:
            logger.warning("Poller already running")
            return self._scheduler

        self._scheduler = scheduler or AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval_ms / 1000),
            id=JOB_ID,
            name="Mailbox triage cycle",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        self._scheduler.start()
        logger.info(f"Polling every {self.interval_ms} ms")
        return self._scheduler

    def stop(self):
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Poller stopped")
