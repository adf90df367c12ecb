"""
Tests for recurring message dispatch and its send log.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

from models import Patient, RecurringMessageLog
from services.recurring_message_service import RecurringMessageService
from utils.datetime_utils import PRACTICE_TZ

CHRISTMAS_MORNING = datetime(2026, 12, 25, 10, 0, tzinfo=PRACTICE_TZ)


def _ok_response():
    response = MagicMock()
    response.content = b""
    return response


class TestDispatchRecurringMessages:
    """Test that each occurrence is sent once per patient."""

    def _add_patients(self, db_session):
        db_session.add_all([
            Patient(first_name="Mario", last_name="Rossi", email="mario@example.com"),
            Patient(first_name="Luca", last_name="Verdi", email=None),
        ])
        db_session.commit()

    def test_sends_once(self, db_session):
        self._add_patients(db_session)

        with patch("services.email_service.RESEND_API_KEY", "re_test"), \
             patch("services.email_service.httpx.post", return_value=_ok_response()) as mock_post:
            first = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)
            second = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)

        assert first == {"processed": 1}
        assert second == {"processed": 0}
        assert mock_post.call_count == 1
        sent = mock_post.call_args.kwargs["json"]
        assert sent["subject"] == "Auguri per Natale"

        log = db_session.query(RecurringMessageLog).one()
        assert log.kind == "HOLIDAY"
        assert log.status == "SENT"
        assert log.dedupe_key.startswith("holiday:natale:2026:")

    def test_failed_send_is_retried(self, db_session):
        """FAILED rows are retried while the occurrence is still due."""
        self._add_patients(db_session)

        # Resend not configured: delivery fails
        with patch("services.email_service.RESEND_API_KEY", ""):
            RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)
        log = db_session.query(RecurringMessageLog).one()
        assert log.status == "FAILED"
        assert log.error

        with patch("services.email_service.RESEND_API_KEY", "re_test"), \
             patch("services.email_service.httpx.post", return_value=_ok_response()):
            result = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)

        assert result == {"processed": 1}
        log = db_session.query(RecurringMessageLog).one()
        assert log.status == "SENT"
        assert log.error is None

    def test_disabled_kind_sends_nothing(self, db_session):
        self._add_patients(db_session)
        RecurringMessageService.save_config(
            db_session, None, "holiday", subject="Auguri", body="Auguri da tutto lo studio", enabled=False
        )

        with patch("services.email_service.httpx.post") as mock_post:
            result = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)

        assert result == {"processed": 0}
        mock_post.assert_not_called()

    def test_skipped_occurrence_is_not_sent(self, db_session):
        self._add_patients(db_session)
        with patch("services.email_service.RESEND_API_KEY", ""):
            RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)
        log = db_session.query(RecurringMessageLog).one()
        log.status = "SKIPPED"
        db_session.commit()

        with patch("services.email_service.RESEND_API_KEY", "re_test"), \
             patch("services.email_service.httpx.post", return_value=_ok_response()) as mock_post:
            result = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)

        assert result == {"processed": 0}
        mock_post.assert_not_called()
        assert db_session.query(RecurringMessageLog).one().status == "SKIPPED"

    def test_send_cap_carries_over_to_next_run(self, db_session):
        """At most 200 emails per run; the rest go out on the next run."""
        db_session.add_all([
            Patient(first_name=f"Paziente{i}", last_name="Prova", email=f"paziente{i}@example.com")
            for i in range(205)
        ])
        db_session.commit()

        with patch("services.email_service.RESEND_API_KEY", "re_test"), \
             patch("services.email_service.httpx.post", return_value=_ok_response()) as mock_post:
            first = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)
            second = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)
            third = RecurringMessageService.dispatch_recurring_messages(db_session, CHRISTMAS_MORNING)

        assert first == {"processed": 200}
        assert second == {"processed": 5}
        assert third == {"processed": 0}
        assert mock_post.call_count == 205
        assert db_session.query(RecurringMessageLog).filter(RecurringMessageLog.status == "SENT").count() == 205
