"""
Unit tests for the background notification scheduler.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from services.notification_scheduler import NotificationScheduler
from utils.datetime_utils import PRACTICE_TZ


class TestNotificationScheduler:
    def test_scheduler_timezone_is_practice_timezone(self):
        service = NotificationScheduler()
        assert service.scheduler.timezone == PRACTICE_TZ

    async def test_start_registers_jobs(self):
        service = NotificationScheduler()
        await service.start_scheduler()
        try:
            jobs = {job.id: job for job in service.scheduler.get_jobs()}
            assert set(jobs) == {"recall_dispatch", "recurring_messages", "gdpr_retention_cleanup"}
            assert str(jobs["recall_dispatch"].trigger) == "cron[minute='0']"
            assert str(jobs["recurring_messages"].trigger) == "cron[minute='5']"
            assert str(jobs["gdpr_retention_cleanup"].trigger) == "cron[hour='3', minute='0']"

            # Starting twice keeps the same jobs
            await service.start_scheduler()
            assert len(service.scheduler.get_jobs()) == 3
        finally:
            await service.stop_scheduler()

        assert service._is_started is False

    def test_execute_runs_job_with_fresh_session(self):
        session = MagicMock()

        @contextmanager
        def session_context():
            yield session

        job = MagicMock(return_value={"processed": 0})
        with patch("services.notification_scheduler.get_db_context", session_context):
            NotificationScheduler()._execute("recall dispatch", job)

        job.assert_called_once_with(session)

    def test_execute_swallows_job_errors(self, caplog):
        @contextmanager
        def session_context():
            yield MagicMock()

        def failing_job(db):
            raise RuntimeError("smtp down")

        with patch("services.notification_scheduler.get_db_context", session_context):
            NotificationScheduler()._execute("recurring messages", failing_job)

        assert "Error during scheduled recurring messages: smtp down" in caplog.text

    @pytest.mark.parametrize("runner, target", [
        ("_run_recalls", "services.notification_scheduler.RecallService.run_recall_job"),
        ("_run_retention_cleanup", "services.notification_scheduler.run_retention_job"),
    ])
    async def test_runners_execute_in_worker_thread(self, runner, target):
        @contextmanager
        def session_context():
            yield MagicMock()

        with patch("services.notification_scheduler.get_db_context", session_context), \
             patch(target, return_value={}) as job:
            await getattr(NotificationScheduler(), runner)()

        job.assert_called_once()
