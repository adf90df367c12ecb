"""
Tests for recall and appointment reminder queues.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

from models import Appointment, AppointmentReminder, AppointmentReminderRule, Patient, Recall, RecallRule
from services.recall_service import RecallService
from utils.datetime_utils import PRACTICE_TZ

NOW = datetime(2026, 10, 19, 10, 0, tzinfo=PRACTICE_TZ)


def add_patient(db_session, first_name, email=None):
    patient = Patient(first_name=first_name, last_name="Rossi", email=email)
    db_session.add(patient)
    db_session.commit()
    return patient


def add_appointment(db_session, patient, starts_at, status="COMPLETED", service_type="Igiene"):
    appointment = Appointment(
        title=f"{service_type} {patient.first_name}",
        service_type=service_type,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=30),
        status=status,
        patient_id=patient.id,
    )
    db_session.add(appointment)
    db_session.commit()
    return appointment


def add_rule(db_session, service_type="Igiene", interval_days=180, enabled=True):
    rule = RecallRule(name="Richiamo igiene", service_type=service_type, interval_days=interval_days,
                      channel="EMAIL", enabled=enabled)
    db_session.add(rule)
    db_session.commit()
    return rule


class TestEnqueueRecurringRecalls:
    """Test recall generation from completed visits."""

    def test_due_within_horizon(self, db_session):
        patient = add_patient(db_session, "Mario")
        add_appointment(db_session, patient, NOW - timedelta(days=170))
        rule = add_rule(db_session)

        created = RecallService.enqueue_recurring_recalls(db_session, NOW)

        assert created == 1
        recall = db_session.query(Recall).one()
        assert recall.patient_id == patient.id
        assert recall.rule_id == rule.id
        assert recall.status == "PENDING"

    def test_pending_recall_is_not_duplicated(self, db_session):
        patient = add_patient(db_session, "Mario")
        add_appointment(db_session, patient, NOW - timedelta(days=170))
        add_rule(db_session)

        assert RecallService.enqueue_recurring_recalls(db_session, NOW) == 1
        assert RecallService.enqueue_recurring_recalls(db_session, NOW) == 0
        assert db_session.query(Recall).count() == 1

    def test_beyond_horizon_is_left_for_later(self, db_session):
        patient = add_patient(db_session, "Luigi")
        add_appointment(db_session, patient, NOW - timedelta(days=100))
        add_rule(db_session)

        assert RecallService.enqueue_recurring_recalls(db_session, NOW) == 0

    def test_overdue_recall_is_clamped_to_now(self, db_session):
        patient = add_patient(db_session, "Anna")
        add_appointment(db_session, patient, NOW - timedelta(days=400))
        add_rule(db_session)

        RecallService.enqueue_recurring_recalls(db_session, NOW)

        recall = db_session.query(Recall).one()
        assert recall.due_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)

    def test_only_matching_service_and_status(self, db_session):
        patient = add_patient(db_session, "Sara")
        add_appointment(db_session, patient, NOW - timedelta(days=170), service_type="Ortodonzia")
        add_appointment(db_session, patient, NOW - timedelta(days=175), status="CANCELLED")
        add_rule(db_session)
        add_rule(db_session, service_type="Igiene", interval_days=30, enabled=False)

        assert RecallService.enqueue_recurring_recalls(db_session, NOW) == 0

    def test_any_service_rule(self, db_session):
        patient = add_patient(db_session, "Sara")
        add_appointment(db_session, patient, NOW - timedelta(days=170), service_type="Ortodonzia")
        add_rule(db_session, service_type="ANY")

        assert RecallService.enqueue_recurring_recalls(db_session, NOW) == 1


class TestAppointmentReminders:
    """Test reminder queueing and dispatch."""

    def test_enqueue_days_before(self, db_session):
        patient = add_patient(db_session, "Mario", email="mario@example.com")
        appointment = add_appointment(db_session, patient, NOW + timedelta(days=3), status="CONFIRMED")
        add_appointment(db_session, patient, NOW + timedelta(days=4), status="CANCELLED")
        db_session.add(AppointmentReminderRule(enabled=True, timing_type="DAYS_BEFORE", days_before=1, channel="EMAIL"))
        db_session.commit()

        assert RecallService.enqueue_appointment_reminders(db_session, NOW) == 1
        assert RecallService.enqueue_appointment_reminders(db_session, NOW) == 0

        reminder = db_session.query(AppointmentReminder).one()
        assert reminder.appointment_id == appointment.id
        assert reminder.due_at.replace(tzinfo=None) == (NOW + timedelta(days=2)).replace(tzinfo=None)

    def test_no_enabled_rule(self, db_session):
        patient = add_patient(db_session, "Mario")
        add_appointment(db_session, patient, NOW + timedelta(days=3), status="CONFIRMED")

        assert RecallService.enqueue_appointment_reminders(db_session, NOW) == 0

    def test_run_recall_job_sends_due_recall(self, db_session):
        """A due recall is emailed and marked CONTACTED."""
        patient = add_patient(db_session, "Mario", email="mario@example.com")
        add_appointment(db_session, patient, NOW - timedelta(days=400))
        add_rule(db_session)

        mock_response = MagicMock()
        mock_response.content = b'{"id": "email_1"}'
        mock_response.json.return_value = {"id": "email_1"}

        with patch("services.email_service.RESEND_API_KEY", "re_test"), \
             patch("services.email_service.httpx.post", return_value=mock_response) as mock_post:
            result = RecallService.run_recall_job(db_session, NOW)

        assert result["recalls_enqueued"] == 1
        assert result["processed"] == 1
        mock_post.assert_called_once()
        assert mock_post.call_args.kwargs["json"]["to"] == ["mario@example.com"]
        assert db_session.query(Recall).one().status == "CONTACTED"

    def test_recall_without_contact_is_skipped(self, db_session):
        patient = add_patient(db_session, "Luigi")
        add_appointment(db_session, patient, NOW - timedelta(days=400))
        add_rule(db_session)

        with patch("services.email_service.httpx.post") as mock_post:
            RecallService.run_recall_job(db_session, NOW)

        mock_post.assert_not_called()
        assert db_session.query(Recall).one().status == "SKIPPED"

    def test_dispatch_processes_at_most_fifty_recalls(self, db_session):
        """Oldest due recalls go first; the rest wait for the next run."""
        rule = add_rule(db_session)
        for i in range(55):
            patient = add_patient(db_session, f"Paziente{i}")
            db_session.add(Recall(patient_id=patient.id, rule_id=rule.id,
                                  due_at=NOW - timedelta(days=60 - i), status="PENDING"))
        db_session.commit()

        with patch("services.email_service.httpx.post") as mock_post:
            first = RecallService.dispatch_due_recalls(db_session, NOW)
            pending = db_session.query(Recall).filter(Recall.status == "PENDING").all()
            second = RecallService.dispatch_due_recalls(db_session, NOW)

        assert first == 50
        assert sorted(r.patient.first_name for r in pending) == [f"Paziente{i}" for i in range(50, 55)]
        assert second == 5
        mock_post.assert_not_called()
        assert db_session.query(Recall).filter(Recall.status == "PENDING").count() == 0
