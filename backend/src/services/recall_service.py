"""
Recall and appointment reminder service.

Two queues feed patient notifications:

- Recalls: follow-ups generated from recall rules, e.g. a hygiene check 180
  days after the last completed hygiene appointment.
- Appointment reminders: one message per upcoming appointment, timed by the
  singleton reminder rule.

`run_recall_job` enqueues both kinds and dispatches whatever is due. It runs
hourly from the scheduler and on demand from the cron endpoint.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from core.constants import (
    CLOSED_APPOINTMENT_STATUSES, DEFAULT_REMINDER_TIME_MINUTES, MAX_RECALL_BATCH,
    NOTIFICATION_CHANNELS, RECALL_ANY_SERVICE, RECALL_HORIZON_DAYS,
    REMINDABLE_APPOINTMENT_STATUSES,
)
from models import (
    Appointment, AppointmentReminder, AppointmentReminderRule, Patient, Recall, RecallRule,
)
from services.audit_service import AuditService
from services.email_service import EmailService, NotificationDeliveryError
from services.sms_service import SmsService
from services.template_service import EmailTemplateService
from utils.datetime_utils import (
    add_days, ensure_local, format_date_it, format_time_it, local_datetime,
    parse_datetime_to_local, practice_now,
)
from utils.template_utils import replace_placeholders

logger = logging.getLogger(__name__)

TIMING_TYPES = ["DAYS_BEFORE", "SAME_DAY_TIME"]
DEFAULT_REMINDER_TEMPLATE = "appointment-reminder"
DEFAULT_REMINDER_SUBJECT = "Promemoria appuntamento"
DEFAULT_REMINDER_BODY = (
    "Gentile {{patientName}}, promemoria per l'appuntamento del "
    "{{appointmentDate}} alle {{appointmentTime}} con {{doctorName}}."
)


def _normalize_channel(channel: Optional[str]) -> str:
    channel = (channel or "EMAIL").strip().upper()
    return channel if channel in NOTIFICATION_CHANNELS else "EMAIL"


def _patient_display_name(patient: Patient) -> str:
    return f"{patient.last_name or ''} {patient.first_name or ''}".strip() or "paziente"


def _deliver(
    db: Session,
    channel: str,
    patient: Patient,
    subject: str,
    body: str,
    html: Optional[str],
    log_label: str,
) -> bool:
    """
    Send over the requested channel(s).

    Returns:
        True if at least one message was delivered
    """
    delivered = False
    if channel in ("EMAIL", "BOTH") and patient.email:
        try:
            if html:
                EmailService.send_email_with_html(patient.email, subject, body, html)
            else:
                EmailService.send_email(patient.email, subject, body)
            delivered = True
        except NotificationDeliveryError as e:
            logger.error(f"{log_label}: email failed: {e}")
    if channel in ("SMS", "BOTH") and patient.phone:
        try:
            SmsService.send_sms(db, patient.phone, body, patient_id=patient.id)
            delivered = True
        except NotificationDeliveryError as e:
            logger.error(f"{log_label}: sms failed: {e}")
    return delivered


class RecallService:
    """Service class for recall rules, recalls and appointment reminders."""

    # Recall rules

    @staticmethod
    def list_rules(db: Session) -> List[RecallRule]:
        return db.query(RecallRule).order_by(RecallRule.name).all()

    @staticmethod
    def _validate_rule(name: Optional[str], service_type: Optional[str], interval_days: Any) -> tuple[str, str, int]:
        name = (name or "").strip()
        service_type = (service_type or "").strip()
        try:
            interval = int(interval_days)
        except (TypeError, ValueError):
            interval = 0
        if not name or not service_type or interval <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati regola non validi"
            )
        return name, service_type, interval

    @staticmethod
    def create_rule(
        db: Session,
        actor,
        name: str,
        service_type: str,
        interval_days: Any,
        message: Optional[str] = None,
        email_subject: Optional[str] = None,
        template_name: Optional[str] = None,
        channel: Optional[str] = None,
        enabled: bool = True,
    ) -> RecallRule:
        name, service_type, interval = RecallService._validate_rule(name, service_type, interval_days)
        rule = RecallRule(
            name=name,
            service_type=service_type,
            interval_days=interval,
            message=(message or "").strip() or None,
            email_subject=(email_subject or "").strip() or None,
            template_name=(template_name or "").strip() or None,
            channel=_normalize_channel(channel),
            enabled=enabled,
        )
        db.add(rule)
        db.flush()
        AuditService.log_audit(db, actor, "recallRule.created", "RecallRule", rule.id, {"name": name})
        db.commit()
        return rule

    @staticmethod
    def update_rule(
        db: Session,
        actor,
        rule_id: int,
        name: str,
        service_type: str,
        interval_days: Any,
        message: Optional[str] = None,
        email_subject: Optional[str] = None,
        template_name: Optional[str] = None,
        channel: Optional[str] = None,
        enabled: bool = True,
    ) -> RecallRule:
        name, service_type, interval = RecallService._validate_rule(name, service_type, interval_days)
        rule = db.query(RecallRule).filter(RecallRule.id == rule_id).first()
        if not rule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Regola non valida"
            )
        rule.name = name
        rule.service_type = service_type
        rule.interval_days = interval
        rule.message = (message or "").strip() or None
        rule.email_subject = (email_subject or "").strip() or None
        rule.template_name = (template_name or "").strip() or None
        rule.channel = _normalize_channel(channel)
        rule.enabled = enabled
        AuditService.log_audit(db, actor, "recallRule.updated", "RecallRule", rule.id, {"name": name})
        db.commit()
        return rule

    @staticmethod
    def delete_rule(db: Session, actor, rule_id: int) -> None:
        """Delete a rule together with every recall generated from it."""
        rule = db.query(RecallRule).filter(RecallRule.id == rule_id).first()
        if not rule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Regola non valida"
            )
        db.query(Recall).filter(Recall.rule_id == rule_id).delete(synchronize_session=False)
        db.delete(rule)
        AuditService.log_audit(db, actor, "recallRule.deleted", "RecallRule", rule_id, {"name": rule.name})
        db.commit()

    # Recalls

    @staticmethod
    def list_recalls(db: Session, recall_status: Optional[str] = None, limit: int = 200) -> List[Recall]:
        q = db.query(Recall).options(joinedload(Recall.patient), joinedload(Recall.rule))
        if recall_status:
            q = q.filter(Recall.status == recall_status.strip().upper())
        return q.order_by(Recall.due_at).limit(limit).all()

    @staticmethod
    def schedule_recall(
        db: Session,
        actor,
        patient_id: Optional[int],
        rule_id: Optional[int],
        due_at: Optional[datetime | str],
        notes: Optional[str] = None,
    ) -> Recall:
        """Queue a recall by hand."""
        if not patient_id or not rule_id or not due_at:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati mancanti"
            )
        try:
            due = parse_datetime_to_local(due_at)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati mancanti"
            )
        if not db.query(Patient.id).filter(Patient.id == patient_id).first():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Paziente non trovato"
            )
        if not db.query(RecallRule.id).filter(RecallRule.id == rule_id).first():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Regola non valida"
            )

        recall = Recall(
            patient_id=patient_id,
            rule_id=rule_id,
            due_at=due,
            status="PENDING",
            notes=(notes or "").strip() or None,
        )
        db.add(recall)
        db.flush()
        AuditService.log_audit(
            db, actor, "recall.scheduled", "Recall", recall.id,
            {"patientId": patient_id, "ruleId": rule_id, "dueAt": due.isoformat()},
        )
        db.commit()
        return recall

    @staticmethod
    def delete_recall(db: Session, actor, recall_id: int) -> None:
        recall = db.query(Recall).filter(Recall.id == recall_id).first()
        if not recall:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Richiamo non valido"
            )
        db.delete(recall)
        AuditService.log_audit(db, actor, "recall.deleted", "Recall", recall_id)
        db.commit()

    # Appointment reminder rule

    @staticmethod
    def get_reminder_rule(db: Session) -> Optional[AppointmentReminderRule]:
        return db.query(AppointmentReminderRule).order_by(AppointmentReminderRule.id).first()

    @staticmethod
    def save_reminder_rule(
        db: Session,
        actor,
        days_before: Any,
        enabled: bool = True,
        timing_type: Optional[str] = None,
        time_of_day_minutes: Optional[int] = None,
        channel: Optional[str] = None,
        template_name: Optional[str] = None,
        message: Optional[str] = None,
        email_subject: Optional[str] = None,
    ) -> AppointmentReminderRule:
        """Create or update the single reminder rule."""
        try:
            days = int(days_before)
        except (TypeError, ValueError):
            days = 0
        if days <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Intervallo non valido"
            )
        timing = (timing_type or "DAYS_BEFORE").strip().upper()
        if timing not in TIMING_TYPES:
            timing = "DAYS_BEFORE"
        if time_of_day_minutes is not None and not 0 <= time_of_day_minutes < 24 * 60:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Orario non valido (usa HH:MM)."
            )

        rule = RecallService.get_reminder_rule(db)
        if rule is None:
            rule = AppointmentReminderRule()
            db.add(rule)
        rule.enabled = enabled
        rule.timing_type = timing
        rule.days_before = days
        rule.time_of_day_minutes = time_of_day_minutes
        rule.channel = _normalize_channel(channel)
        rule.template_name = (template_name or "").strip() or None
        rule.message = (message or "").strip() or None
        rule.email_subject = (email_subject or "").strip() or None
        db.flush()

        AuditService.log_audit(
            db, actor, "appointmentReminderRule.saved", "AppointmentReminderRule", rule.id,
            {"enabled": enabled, "timingType": timing, "daysBefore": days},
        )
        db.commit()
        return rule

    @staticmethod
    def list_reminders(db: Session, reminder_status: Optional[str] = None, limit: int = 200) -> List[AppointmentReminder]:
        q = db.query(AppointmentReminder).options(
            joinedload(AppointmentReminder.appointment),
            joinedload(AppointmentReminder.patient),
        )
        if reminder_status:
            q = q.filter(AppointmentReminder.status == reminder_status.strip().upper())
        return q.order_by(AppointmentReminder.due_at).limit(limit).all()

    # Queue builders

    @staticmethod
    def enqueue_recurring_recalls(db: Session, now: Optional[datetime] = None) -> int:
        """
        Create the next PENDING recall for each patient of each enabled rule.

        The next due date is interval_days after the last completed matching
        visit, or after the last recall of the rule when that recall is more
        recent than the visit. Dates in the past are clamped to now; dates
        beyond the horizon are left for a later run.

        Returns:
            Number of recalls created
        """
        now = ensure_local(now) or practice_now()
        horizon = add_days(now, RECALL_HORIZON_DAYS)
        created = 0

        for rule in db.query(RecallRule).filter(RecallRule.enabled.is_(True)).all():
            visits_q = db.query(Appointment.patient_id, func.max(Appointment.starts_at)).filter(
                Appointment.status == "COMPLETED",
                Appointment.starts_at <= now,
            )
            if rule.service_type != RECALL_ANY_SERVICE:
                visits_q = visits_q.filter(Appointment.service_type == rule.service_type)
            last_visits = visits_q.group_by(Appointment.patient_id).all()

            last_recalls = dict(
                db.query(Recall.patient_id, func.max(Recall.due_at))
                .filter(Recall.rule_id == rule.id)
                .group_by(Recall.patient_id)
                .all()
            )
            pending = {
                patient_id for (patient_id,) in db.query(Recall.patient_id).filter(
                    Recall.rule_id == rule.id,
                    Recall.status == "PENDING",
                ).distinct().all()
            }

            for patient_id, last_visit in last_visits:
                if last_visit is None or patient_id in pending:
                    continue
                last_visit = ensure_local(last_visit)
                next_due = add_days(last_visit, rule.interval_days)

                last_recall_due = ensure_local(last_recalls.get(patient_id))
                if last_recall_due is not None and last_recall_due >= last_visit:
                    next_due = add_days(last_recall_due, rule.interval_days)

                if next_due < now:
                    next_due = now
                if next_due > horizon:
                    continue

                db.add(Recall(patient_id=patient_id, rule_id=rule.id, due_at=next_due, status="PENDING"))
                created += 1

        db.commit()
        if created:
            logger.info(f"Enqueued {created} recurring recalls")
        return created

    @staticmethod
    def enqueue_appointment_reminders(db: Session, now: Optional[datetime] = None) -> int:
        """
        Queue one reminder per upcoming appointment according to the enabled rule.

        Returns:
            Number of reminders created
        """
        now = ensure_local(now) or practice_now()
        horizon = add_days(now, RECALL_HORIZON_DAYS)
        rule = db.query(AppointmentReminderRule).filter(
            AppointmentReminderRule.enabled.is_(True)
        ).order_by(AppointmentReminderRule.id).first()
        if rule is None:
            return 0

        timing = rule.timing_type if rule.timing_type in TIMING_TYPES else "SAME_DAY_TIME"
        time_of_day = rule.time_of_day_minutes if rule.time_of_day_minutes is not None else DEFAULT_REMINDER_TIME_MINUTES
        upper_bound = add_days(horizon, rule.days_before) if timing == "DAYS_BEFORE" else horizon

        appointments = db.query(Appointment).filter(
            Appointment.starts_at > now,
            Appointment.starts_at <= upper_bound,
            Appointment.status.in_(REMINDABLE_APPOINTMENT_STATUSES),
        ).all()
        if not appointments:
            return 0

        already_queued = {
            appointment_id for (appointment_id,) in db.query(AppointmentReminder.appointment_id).filter(
                AppointmentReminder.appointment_id.in_([a.id for a in appointments])
            ).all()
        }

        created = 0
        for appointment in appointments:
            if appointment.id in already_queued:
                continue
            starts_at = ensure_local(appointment.starts_at)
            assert starts_at is not None
            if timing == "SAME_DAY_TIME":
                due = local_datetime(starts_at.date(), time_of_day // 60, time_of_day % 60)
            else:
                due = add_days(starts_at, -rule.days_before)
            if due < now:
                due = now
            if due > horizon:
                continue
            db.add(AppointmentReminder(
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                rule_id=rule.id,
                due_at=due,
                status="PENDING",
                channel=rule.channel,
            ))
            created += 1

        db.commit()
        if created:
            logger.info(f"Enqueued {created} appointment reminders")
        return created

    # Dispatch

    @staticmethod
    def dispatch_due_recalls(db: Session, now: Optional[datetime] = None) -> int:
        """
        Send due recalls, at most MAX_RECALL_BATCH per run.

        A recall becomes CONTACTED when at least one message went out,
        SKIPPED otherwise (e.g. no email for an EMAIL rule).

        Returns:
            Number of recalls processed
        """
        now = ensure_local(now) or practice_now()
        due_recalls = db.query(Recall).options(
            joinedload(Recall.patient),
            joinedload(Recall.rule),
        ).filter(
            Recall.status == "PENDING",
            Recall.due_at <= now,
        ).order_by(Recall.due_at).limit(MAX_RECALL_BATCH).all()

        for recall in due_recalls:
            patient = recall.patient
            rule = recall.rule
            service_label = "il prossimo controllo" if rule.service_type == RECALL_ANY_SERVICE else rule.service_type
            data = {
                "patientName": _patient_display_name(patient),
                "patientFirstName": patient.first_name or "",
                "patientLastName": patient.last_name or "",
                "serviceType": service_label,
                "button": "",
            }

            template = EmailTemplateService.get_by_name(db, rule.template_name) if rule.template_name else None
            html = None
            if template is not None:
                rendered = EmailTemplateService.render(template, data)
                subject, body, html = rendered["subject"], rendered["body"], rendered["html"]
            else:
                subject = replace_placeholders(rule.email_subject or f"Promemoria {service_label}", data)
                body = replace_placeholders(
                    rule.message or f"Gentile {{{{patientName}}}}, promemoria per {service_label}.", data
                )

            delivered = _deliver(db, _normalize_channel(rule.channel), patient, subject, body, html, f"Recall {recall.id}")
            recall.status = "CONTACTED" if delivered else "SKIPPED"
            recall.last_contact_at = practice_now()
            db.commit()

        if due_recalls:
            logger.info(f"Dispatched {len(due_recalls)} recalls")
        return len(due_recalls)

    @staticmethod
    def dispatch_due_reminders(db: Session, now: Optional[datetime] = None) -> int:
        """
        Send due appointment reminders, at most MAX_RECALL_BATCH per run.

        Reminders for appointments that already started, or were cancelled,
        missed or completed, are SKIPPED without sending.

        Returns:
            Number of reminders processed
        """
        now = ensure_local(now) or practice_now()
        due_reminders = db.query(AppointmentReminder).options(
            joinedload(AppointmentReminder.patient),
            joinedload(AppointmentReminder.appointment).joinedload(Appointment.doctor),
            joinedload(AppointmentReminder.rule),
        ).filter(
            AppointmentReminder.status == "PENDING",
            AppointmentReminder.due_at <= now,
        ).order_by(AppointmentReminder.due_at).limit(MAX_RECALL_BATCH).all()

        for reminder in due_reminders:
            appointment = reminder.appointment
            patient = reminder.patient
            rule = reminder.rule
            starts_at = ensure_local(appointment.starts_at)
            assert starts_at is not None

            if starts_at <= now or appointment.status in CLOSED_APPOINTMENT_STATUSES:
                reminder.status = "SKIPPED"
                reminder.last_contact_at = practice_now()
                db.commit()
                continue

            data = {
                "patientName": _patient_display_name(patient),
                "appointmentDate": format_date_it(starts_at),
                "appointmentTime": format_time_it(starts_at),
                "doctorName": appointment.doctor.full_name if appointment.doctor else "lo staff",
                "button": "",
            }
            template_name = (rule.template_name if rule else None) or DEFAULT_REMINDER_TEMPLATE
            template = EmailTemplateService.get_by_name(db, template_name)
            html = None
            if template is not None:
                rendered = EmailTemplateService.render(template, data)
                subject, body, html = rendered["subject"], rendered["body"], rendered["html"]
            else:
                subject = replace_placeholders((rule.email_subject if rule else None) or DEFAULT_REMINDER_SUBJECT, data)
                body = replace_placeholders((rule.message if rule else None) or DEFAULT_REMINDER_BODY, data)

            channel = _normalize_channel(rule.channel if rule else reminder.channel)
            delivered = _deliver(db, channel, patient, subject, body, html, f"Appointment reminder {reminder.id}")
            reminder.status = "CONTACTED" if delivered else "SKIPPED"
            reminder.last_contact_at = practice_now()
            db.commit()

        if due_reminders:
            logger.info(f"Dispatched {len(due_reminders)} appointment reminders")
        return len(due_reminders)

    @staticmethod
    def run_recall_job(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        """Enqueue recalls and reminders, then dispatch what is due."""
        now = ensure_local(now) or practice_now()
        recalls_enqueued = RecallService.enqueue_recurring_recalls(db, now)
        reminders_enqueued = RecallService.enqueue_appointment_reminders(db, now)
        processed = RecallService.dispatch_due_recalls(db, now)
        reminders_processed = RecallService.dispatch_due_reminders(db, now)
        return {
            "recalls_enqueued": recalls_enqueued,
            "reminders_enqueued": reminders_enqueued,
            "processed": processed,
            "appointment_reminders": reminders_processed,
        }
