"""
Manual notification service.

Staff can send a one-off reminder to a patient, either about a booked
appointment or about a free-form event, by email, SMS or both.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.constants import NOTIFICATION_CHANNELS
from models import Appointment, Patient
from services.audit_service import AuditService
from services.email_service import EmailService, NotificationDeliveryError
from services.sms_service import SmsService
from utils.datetime_utils import format_date_it, format_time_it, parse_datetime_to_local

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ["appointment", "event"]


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotificationService:
    """Service class for manual patient notifications."""

    @staticmethod
    def send_manual_notification(
        db: Session,
        actor,
        notification_type: str = "appointment",
        channel: str = "EMAIL",
        appointment_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        event_title: Optional[str] = None,
        event_at: Optional[datetime | str] = None,
        message: Optional[str] = None,
        email_subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a manual notification.

        When no message is given it is composed from the appointment or event:
        "Gentile {name}, promemoria: {label} il {date} alle {time}."

        Raises:
            HTTPException: 400 for missing input or missing patient contact,
                404 for unknown appointment/patient
            NotificationDeliveryError: the provider rejected the message
        """
        notification_type = (notification_type or "appointment").strip().lower()
        if notification_type not in NOTIFICATION_TYPES:
            raise _bad_request("Tipo di notifica non valido.")
        channel = (channel or "EMAIL").strip().upper()
        if channel not in NOTIFICATION_CHANNELS:
            raise _bad_request("Canale non valido.")

        text = (message or "").strip()
        subject = (email_subject or "").strip()
        event_date: Optional[datetime] = None

        if notification_type == "appointment":
            if not appointment_id:
                raise _bad_request("Seleziona un appuntamento.")
            appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
            if not appointment:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Appuntamento non trovato."
                )
            patient = appointment.patient
            label = appointment.title or "Appuntamento"
            event_date = appointment.starts_at
            subject = subject or "Promemoria appuntamento"
        else:
            if not patient_id:
                raise _bad_request("Seleziona un paziente.")
            patient = db.query(Patient).filter(Patient.id == patient_id).first()
            if not patient:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Paziente non trovato."
                )
            title = (event_title or "").strip()
            label = title or "Evento"
            if event_at:
                try:
                    event_date = parse_datetime_to_local(event_at)
                except ValueError:
                    event_date = None
            subject = subject or (f"Promemoria {title}" if title else "Promemoria evento")
            if not text and (not title or event_date is None):
                raise _bad_request("Inserisci un messaggio o i dettagli dell'evento.")

        if not text:
            if event_date is None:
                raise _bad_request("Inserisci un messaggio.")
            name = f"{patient.last_name or ''} {patient.first_name or ''}".strip() or "paziente"
            text = f"Gentile {name}, promemoria: {label} il {format_date_it(event_date)} alle {format_time_it(event_date)}."

        wants_email = channel in ("EMAIL", "BOTH")
        wants_sms = channel in ("SMS", "BOTH")
        if wants_email and not patient.email:
            raise _bad_request("Email del paziente mancante.")
        if wants_sms and not patient.phone:
            raise _bad_request("Numero di telefono del paziente mancante.")

        if wants_email:
            EmailService.send_email(patient.email, subject or "Promemoria", text)  # type: ignore[arg-type]
        if wants_sms:
            try:
                SmsService.send_sms(
                    db, patient.phone, text,
                    patient_id=patient.id,
                    user_id=getattr(actor, "user_id", None),
                )
            except NotificationDeliveryError as e:
                if wants_email:
                    # The email already went out
                    AuditService.log_audit(
                        db, actor, "notification.manual_sent", "Patient", patient.id,
                        {"channel": "EMAIL", "notificationType": notification_type, "smsError": str(e)},
                    )
                    db.commit()
                    logger.warning(f"Manual notification to patient {patient.id}: email sent, SMS failed: {e}")
                raise

        AuditService.log_audit(
            db, actor, "notification.manual_sent", "Patient", patient.id,
            {"channel": channel, "notificationType": notification_type},
        )
        db.commit()
        logger.info(f"Manual {notification_type} notification sent to patient {patient.id} via {channel}")
        return {"success": True, "message": "Notifica inviata con successo.", "body": text}
