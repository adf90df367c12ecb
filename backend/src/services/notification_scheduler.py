"""
Background scheduler for patient notifications and data retention.

Jobs (practice timezone):
1. Recalls and appointment reminders, hourly: enqueue and dispatch
2. Recurring messages (holidays, closures, birthdays), hourly
3. GDPR retention cleanup, daily at 3 AM
"""

import asyncio
import logging
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore
from sqlalchemy.orm import Session

from core.constants import SCHEDULER_MAX_INSTANCES
from core.database import get_db_context
from services.gdpr_service import run_retention_job
from services.recall_service import RecallService
from services.recurring_message_service import RecurringMessageService
from utils.datetime_utils import PRACTICE_TZ, practice_now

logger = logging.getLogger(__name__)

# Global singleton instance
_notification_scheduler: Optional['NotificationScheduler'] = None


class NotificationScheduler:
    """
    Scheduler for notification dispatch and retention cleanup.

    Database sessions are created fresh for each job run.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=PRACTICE_TZ)
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Register the jobs and start the scheduler.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Notification scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_recalls,
            CronTrigger(minute=0),
            id="recall_dispatch",
            name="Recalls and appointment reminders",
            replace_existing=True,
            misfire_grace_time=3600,
            max_instances=SCHEDULER_MAX_INSTANCES,
        )
        self.scheduler.add_job(  # type: ignore
            self._run_recurring_messages,
            CronTrigger(minute=5),
            id="recurring_messages",
            name="Holiday, closure and birthday messages",
            replace_existing=True,
            misfire_grace_time=3600,
            max_instances=SCHEDULER_MAX_INSTANCES,
        )
        self.scheduler.add_job(  # type: ignore
            self._run_retention_cleanup,
            CronTrigger(hour=3, minute=0),
            id="gdpr_retention_cleanup",
            name="GDPR retention cleanup",
            replace_existing=True,
            misfire_grace_time=3600,
            max_instances=SCHEDULER_MAX_INSTANCES,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info("Notification scheduler started (recalls and recurring messages hourly, retention at 3 AM)")

    async def stop_scheduler(self) -> None:
        """
        Stop the scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Notification scheduler stopped")

    async def _run_recalls(self) -> None:
        await asyncio.to_thread(self._execute, "recall dispatch", lambda db: RecallService.run_recall_job(db, practice_now()))

    async def _run_recurring_messages(self) -> None:
        await asyncio.to_thread(
            self._execute,
            "recurring messages",
            lambda db: RecurringMessageService.dispatch_recurring_messages(db, practice_now()),
        )

    async def _run_retention_cleanup(self) -> None:
        await asyncio.to_thread(self._execute, "retention cleanup", lambda db: run_retention_job(db, practice_now()))

    def _execute(self, label: str, job: Callable[[Session], object]) -> None:
        """
        Run one job with a fresh session.

        Runs in a worker thread. Errors are logged and not re-raised so the
        scheduler keeps running.
        """
        logger.info(f"Starting scheduled {label}...")
        try:
            with get_db_context() as db:
                result = job(db)
            logger.info(f"Scheduled {label} completed: {result}")
        except Exception as e:
            logger.exception(f"Error during scheduled {label}: {e}")


def get_notification_scheduler() -> NotificationScheduler:
    """
    Get the global notification scheduler instance.

    Returns:
        NotificationScheduler: The global scheduler instance
    """
    global _notification_scheduler
    if _notification_scheduler is None:
        _notification_scheduler = NotificationScheduler()
    return _notification_scheduler


async def start_notification_scheduler() -> None:
    """Start the global notification scheduler."""
    scheduler = get_notification_scheduler()
    await scheduler.start_scheduler()


async def stop_notification_scheduler() -> None:
    """Stop the global notification scheduler."""
    global _notification_scheduler
    if _notification_scheduler:
        await _notification_scheduler.stop_scheduler()
