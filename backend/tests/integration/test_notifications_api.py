"""
Integration tests for manual notifications, templates, SMS and the job endpoints.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from models import Appointment, AuditLog, SmsLog
from utils.datetime_utils import practice_now


@pytest.fixture
def mock_resend():
    """Configure Resend and capture outgoing emails."""
    response = MagicMock()
    response.content = b'{"id": "email_1"}'
    response.json.return_value = {"id": "email_1"}
    with patch("services.email_service.RESEND_API_KEY", "re_test"), \
         patch("services.email_service.httpx.post", return_value=response) as mock_post:
        yield mock_post


@pytest.fixture
def upcoming_appointment(db_session, sample_patient, sample_doctor):
    starts_at = (practice_now() + timedelta(days=2)).replace(hour=10, minute=0, second=0, microsecond=0)
    appointment = Appointment(
        title="Igiene dentale",
        service_type="Igiene",
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=45),
        patient_id=sample_patient.id,
        doctor_id=sample_doctor.id,
    )
    db_session.add(appointment)
    db_session.commit()
    return appointment


class TestManualNotifications:
    """Test manual notifications to patients."""

    def test_appointment_reminder_email(self, client, secretary_user, upcoming_appointment, mock_resend, auth_headers):
        response = client.post(
            "/api/notifications/manual",
            json={"type": "appointment", "channel": "EMAIL", "appointment_id": upcoming_appointment.id},
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["body"].startswith("Gentile Rossi Mario, promemoria: Igiene dentale il ")
        assert data["body"].endswith("alle 10:00.")

        sent = mock_resend.call_args.kwargs["json"]
        assert sent["to"] == ["mario.rossi@example.com"]
        assert sent["subject"] == "Promemoria appuntamento"

    def test_event_requires_details(self, client, secretary_user, sample_patient, auth_headers):
        response = client.post(
            "/api/notifications/manual",
            json={"type": "event", "patient_id": sample_patient.id},
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Inserisci un messaggio o i dettagli dell'evento."

    def test_missing_email(self, client, db_session, secretary_user, sample_patient, auth_headers):
        sample_patient.email = None
        db_session.commit()

        response = client.post(
            "/api/notifications/manual",
            json={"type": "event", "patient_id": sample_patient.id, "message": "Lo studio riapre lunedì."},
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Email del paziente mancante."

    def test_email_sent_then_sms_failure_is_audited(self, client, db_session, secretary_user,
                                                    upcoming_appointment, auth_headers):
        """With BOTH, the delivered email is audited even when the SMS fails."""
        def fake_post(url, **kwargs):
            response = MagicMock()
            if "clicksend" in url:
                response.status_code = 500
                response.text = "server error"
            else:
                response.content = b"{}"
                response.json.return_value = {}
            return response

        with patch("services.email_service.RESEND_API_KEY", "re_test"), \
             patch("services.sms_service.CLICKSEND_USERNAME", "studio"), \
             patch("services.sms_service.CLICKSEND_API_KEY", "key"), \
             patch("httpx.post", side_effect=fake_post):
            response = client.post(
                "/api/notifications/manual",
                json={"type": "appointment", "channel": "BOTH", "appointment_id": upcoming_appointment.id},
                headers=auth_headers(secretary_user),
            )

        assert response.status_code == 502
        audit = db_session.query(AuditLog).filter(AuditLog.action == "notification.manual_sent").one()
        assert audit.metadata_json["channel"] == "EMAIL"
        assert "ClickSend error 500" in audit.metadata_json["smsError"]
        assert db_session.query(SmsLog).one().status == "FAILED"

    def test_provider_failure_is_bad_gateway(self, client, secretary_user, upcoming_appointment, auth_headers):
        with patch("services.email_service.RESEND_API_KEY", ""):
            response = client.post(
                "/api/notifications/manual",
                json={"type": "appointment", "appointment_id": upcoming_appointment.id},
                headers=auth_headers(secretary_user),
            )

        assert response.status_code == 502
        assert response.json()["type"] == "delivery_error"


class TestTemplatesAndSms:
    def test_default_email_templates(self, client, secretary_user, auth_headers):
        templates = client.get("/api/templates/email", headers=auth_headers(secretary_user)).json()
        assert {"welcome", "appointment-reminder"} <= {t["name"] for t in templates}

    def test_test_email_uses_preview_data(self, client, secretary_user, mock_resend, auth_headers):
        response = client.post(
            "/api/templates/email/test",
            json={"to": "prova@studio.it", "template_name": "appointment-reminder"},
            headers=auth_headers(secretary_user),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Email di prova inviata."
        sent = mock_resend.call_args.kwargs["json"]
        assert sent["subject"] == "Promemoria appuntamento 12/03/2026"
        assert "Apri dettaglio" in sent["html"]

    def test_unknown_template(self, client, secretary_user, mock_resend, auth_headers):
        response = client.post(
            "/api/templates/email/test",
            json={"to": "prova@studio.it", "template_name": "inesistente"},
            headers=auth_headers(secretary_user),
        )
        assert response.status_code == 404

    def test_sms_without_provider_is_simulated(self, client, db_session, secretary_user, auth_headers):
        with patch("services.sms_service.CLICKSEND_USERNAME", ""), \
             patch("services.sms_service.httpx.post") as mock_post:
            response = client.post(
                "/api/templates/sms/send",
                json={"to": "333 123 4567", "body": "Promemoria"},
                headers=auth_headers(secretary_user),
            )

        assert response.status_code == 200
        assert response.json()["message"] == "SIMULATED"
        mock_post.assert_not_called()
        log = db_session.query(SmsLog).one()
        assert log.to == "+393331234567"
        assert log.user_id == secretary_user.id


class TestRecurringConfig:
    def test_defaults_and_update(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)

        data = client.get("/api/notifications/recurring/config", headers=headers).json()
        assert [c["kind"] for c in data["configs"]] == ["HOLIDAY", "CLOSURE", "BIRTHDAY"]
        assert "firstName" in data["tokens"]

        saved = client.put(
            "/api/notifications/recurring/config/closure",
            json={"subject": "Chiusura", "body": "Chiusi per {{closureTitle}}", "enabled": True, "days_before": 3},
            headers=headers,
        )
        assert saved.status_code == 200
        assert saved.json()["days_before"] == 3

    def test_invalid_kind(self, client, admin_user, auth_headers):
        response = client.put(
            "/api/notifications/recurring/config/easter",
            json={"subject": "Auguri", "body": "Buona Pasqua"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 400


class TestJobEndpoints:
    """Test the cron-triggered job endpoints."""

    def test_wrong_cron_secret(self, client):
        with patch("auth.dependencies.CRON_SECRET", "s3cret"):
            recalls = client.post("/api/recalls/send", headers={"X-Cron-Secret": "wrong"})
            recurring = client.post("/api/notifications/recurring")

        assert recalls.status_code == 401
        assert recurring.status_code == 401

    def test_recall_job(self, client):
        with patch("auth.dependencies.CRON_SECRET", "s3cret"):
            response = client.post("/api/recalls/send", headers={"X-Cron-Secret": "s3cret"})

        assert response.status_code == 200
        assert response.json() == {
            "recalls_enqueued": 0,
            "reminders_enqueued": 0,
            "processed": 0,
            "appointment_reminders": 0,
        }

    def test_recurring_job_needs_no_user(self, client):
        with patch("auth.dependencies.CRON_SECRET", "s3cret"):
            response = client.post("/api/notifications/recurring", headers={"X-Cron-Secret": "s3cret"})

        assert response.status_code == 200
        assert "processed" in response.json()
