"""
Recurring message service: holiday greetings, closure notices and birthday wishes.

Each run computes the messages due "now" and sends them by email. Every
occurrence carries a dedupe key stored on its RecurringMessageLog row, so a
message that was SENT (or SKIPPED) is never sent again however often the job
runs. FAILED rows are retried on later runs while the occurrence is still due.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.constants import CLOSURE_LOOKBACK_DAYS, MAX_RECURRING_SEND, RECURRING_SEND_HOUR
from models import Patient, PracticeClosure, RecurringMessageConfig, RecurringMessageLog
from services.audit_service import AuditService
from services.email_service import EmailService, NotificationDeliveryError
from utils.datetime_utils import add_days, ensure_local, format_date_long_it, local_datetime, practice_now
from utils.holidays import get_italian_holidays
from utils.template_utils import replace_placeholders

logger = logging.getLogger(__name__)

RECURRING_KINDS = ["HOLIDAY", "CLOSURE", "BIRTHDAY"]

RECURRING_MESSAGE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "HOLIDAY": {
        "subject": "Auguri per {{holidayName}}",
        "body": "Lo studio vi augura una serena {{holidayName}}. Restiamo a disposizione per ogni necessità.",
        "days_before": None,
    },
    "CLOSURE": {
        "subject": "Chiusura studio: {{closureTitle}}",
        "body": "Vi informiamo che lo studio resterà chiuso dal {{closureStart}} al {{closureEnd}} per {{closureTitle}}.",
        "days_before": 7,
    },
    "BIRTHDAY": {
        "subject": "Buon compleanno, {{firstName}}!",
        "body": "Da parte di tutto il team, tanti auguri di buon compleanno {{firstName}}.",
        "days_before": None,
    },
}

TEMPLATE_TOKENS = [
    "firstName",
    "lastName",
    "holidayName",
    "holidayDate",
    "closureTitle",
    "closureStart",
    "closureEnd",
    "birthdayDate",
]

DEFAULT_CLOSURE_TITLE = "chiusura programmata"


@dataclass
class RecurringConfig:
    kind: str
    enabled: bool
    subject: str
    body: str
    days_before: Optional[int] = None


@dataclass
class RecurringCandidate:
    """One message for one patient, not yet checked against the log."""
    kind: str
    patient_id: int
    email: str
    scheduled_for: datetime
    event_date: Optional[date]
    dedupe_key: str
    subject: str
    body: str
    template_vars: Dict[str, str] = field(default_factory=dict)


def normalize_birthday(birth_date: date, year: int) -> date:
    """Birthday in the given year; Feb 29 falls on Feb 28 in non-leap years."""
    if birth_date.month == 2 and birth_date.day == 29:
        return date(year, 2, 28)
    return date(year, birth_date.month, birth_date.day)


def _send_time(day: date) -> datetime:
    return local_datetime(day, RECURRING_SEND_HOUR)


def build_candidates(
    now: datetime,
    configs: Dict[str, RecurringConfig],
    patients: Iterable,
    closures: Iterable = (),
) -> List[RecurringCandidate]:
    """
    Compute the messages due at `now`.

    Pure function over already-loaded data. Patients without an email are
    ignored.

    Args:
        now: Current practice-local time
        configs: Effective configuration per kind
        patients: Objects with id, email, first_name, last_name, birth_date
        closures: Objects with id, title, starts_at, ends_at

    Returns:
        Candidates in holiday, closure, birthday order
    """
    now = ensure_local(now)  # type: ignore[assignment]
    recipients = [p for p in patients if p.email]
    candidates: List[RecurringCandidate] = []

    holiday_config = configs.get("HOLIDAY")
    if holiday_config and holiday_config.enabled:
        for holiday in get_italian_holidays(now.year):
            scheduled_for = _send_time(holiday.day)
            if not (scheduled_for <= now < add_days(scheduled_for, 1)):
                continue
            for patient in recipients:
                candidates.append(RecurringCandidate(
                    kind="HOLIDAY",
                    patient_id=patient.id,
                    email=patient.email,
                    scheduled_for=scheduled_for,
                    event_date=holiday.day,
                    dedupe_key=f"holiday:{holiday.key}:{holiday.day.year}:{patient.id}",
                    subject=holiday_config.subject,
                    body=holiday_config.body,
                    template_vars={
                        "firstName": patient.first_name or "",
                        "lastName": patient.last_name or "",
                        "holidayName": holiday.name,
                        "holidayDate": format_date_long_it(holiday.day),
                    },
                ))

    closure_config = configs.get("CLOSURE")
    if closure_config and closure_config.enabled:
        days_before = closure_config.days_before if closure_config.days_before is not None else 7
        lookback = now - timedelta(days=CLOSURE_LOOKBACK_DAYS)
        for closure in closures:
            starts_at = ensure_local(closure.starts_at)
            ends_at = ensure_local(closure.ends_at)
            assert starts_at is not None and ends_at is not None
            if starts_at < lookback:
                continue
            scheduled_for = _send_time(add_days(starts_at, -days_before).date())
            if not (scheduled_for <= now < starts_at):
                continue
            closure_title = (closure.title or "").strip() or DEFAULT_CLOSURE_TITLE
            for patient in recipients:
                candidates.append(RecurringCandidate(
                    kind="CLOSURE",
                    patient_id=patient.id,
                    email=patient.email,
                    scheduled_for=scheduled_for,
                    event_date=starts_at.date(),
                    dedupe_key=f"closure:{closure.id}:{patient.id}",
                    subject=closure_config.subject,
                    body=closure_config.body,
                    template_vars={
                        "firstName": patient.first_name or "",
                        "lastName": patient.last_name or "",
                        "closureTitle": closure_title,
                        "closureStart": format_date_long_it(starts_at),
                        "closureEnd": format_date_long_it(ends_at),
                    },
                ))

    birthday_config = configs.get("BIRTHDAY")
    if birthday_config and birthday_config.enabled:
        for patient in recipients:
            if not patient.birth_date:
                continue
            birthday = normalize_birthday(patient.birth_date, now.year)
            scheduled_for = _send_time(birthday)
            if not (scheduled_for <= now < add_days(scheduled_for, 1)):
                continue
            candidates.append(RecurringCandidate(
                kind="BIRTHDAY",
                patient_id=patient.id,
                email=patient.email,
                scheduled_for=scheduled_for,
                event_date=birthday,
                dedupe_key=f"birthday:{birthday.year}:{patient.id}",
                subject=birthday_config.subject,
                body=birthday_config.body,
                template_vars={
                    "firstName": patient.first_name or "",
                    "lastName": patient.last_name or "",
                    "birthdayDate": format_date_long_it(birthday),
                },
            ))

    return candidates


class RecurringMessageService:
    """Service class for recurring message configuration and dispatch."""

    @staticmethod
    def get_configs(db: Session) -> Dict[str, RecurringConfig]:
        """Effective configuration per kind: stored values over defaults."""
        stored = {row.kind: row for row in db.query(RecurringMessageConfig).all()}
        configs: Dict[str, RecurringConfig] = {}
        for kind, defaults in RECURRING_MESSAGE_DEFAULTS.items():
            row = stored.get(kind)
            configs[kind] = RecurringConfig(
                kind=kind,
                enabled=row.enabled if row is not None else True,
                subject=(row.subject if row is not None and row.subject else defaults["subject"]),
                body=(row.body if row is not None and row.body else defaults["body"]),
                days_before=(
                    row.days_before if row is not None and row.days_before is not None
                    else defaults["days_before"]
                ),
            )
        return configs

    @staticmethod
    def save_config(
        db: Session,
        actor,
        kind: str,
        subject: str,
        body: str,
        enabled: bool = True,
        days_before: Optional[int] = None,
    ) -> RecurringMessageConfig:
        """Upsert the configuration of one kind."""
        kind = (kind or "").strip().upper()
        subject = (subject or "").strip()
        body = (body or "").strip()
        if kind not in RECURRING_KINDS or not subject or not body:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Configurazione non valida"
            )
        if days_before is not None and days_before < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Configurazione non valida"
            )

        row = db.query(RecurringMessageConfig).filter(RecurringMessageConfig.kind == kind).first()
        if row is None:
            row = RecurringMessageConfig(kind=kind)
            db.add(row)
        row.enabled = enabled
        row.subject = subject
        row.body = body
        if days_before is not None:
            row.days_before = days_before
        db.flush()

        AuditService.log_audit(
            db, actor, "recurringMessageConfig.saved", "RecurringMessageConfig", row.id,
            {"kind": kind, "enabled": enabled},
        )
        db.commit()
        return row

    @staticmethod
    def list_logs(db: Session, limit: int = 200) -> List[RecurringMessageLog]:
        return db.query(RecurringMessageLog).order_by(
            RecurringMessageLog.created_at.desc(), RecurringMessageLog.id.desc()
        ).limit(limit).all()

    @staticmethod
    def dispatch_recurring_messages(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Send the due recurring messages, at most MAX_RECURRING_SEND per run.

        Returns:
            {"processed": number of send attempts}
        """
        now = ensure_local(now) or practice_now()
        configs = RecurringMessageService.get_configs(db)
        patients = db.query(Patient).filter(Patient.email.isnot(None), Patient.email != "").all()
        closures = db.query(PracticeClosure).filter(
            PracticeClosure.starts_at >= now - timedelta(days=CLOSURE_LOOKBACK_DAYS)
        ).all()

        candidates = build_candidates(now, configs, patients, closures)
        if not candidates:
            return {"processed": 0}

        existing = {
            row.dedupe_key: row
            for row in db.query(RecurringMessageLog).filter(
                RecurringMessageLog.dedupe_key.in_([c.dedupe_key for c in candidates])
            ).all()
        }

        processed = 0
        for candidate in candidates:
            if processed >= MAX_RECURRING_SEND:
                break
            previous = existing.get(candidate.dedupe_key)
            if previous is not None and previous.status in ("SENT", "SKIPPED"):
                continue

            subject = replace_placeholders(candidate.subject, candidate.template_vars)
            body = replace_placeholders(candidate.body, candidate.template_vars)

            log_status = "SENT"
            error: Optional[str] = None
            sent_at: Optional[datetime] = practice_now()
            try:
                EmailService.send_email(candidate.email, subject, body)
            except NotificationDeliveryError as e:
                log_status = "FAILED"
                error = str(e)
                sent_at = None
                logger.warning(f"Recurring message {candidate.dedupe_key} failed: {e}")

            if previous is not None:
                previous.status = log_status
                previous.error = error
                previous.sent_at = sent_at
            else:
                row = RecurringMessageLog(
                    kind=candidate.kind,
                    patient_id=candidate.patient_id,
                    scheduled_for=candidate.scheduled_for,
                    event_date=candidate.event_date,
                    dedupe_key=candidate.dedupe_key,
                    status=log_status,
                    error=error,
                    sent_at=sent_at,
                )
                db.add(row)
                existing[candidate.dedupe_key] = row
            db.commit()
            processed += 1

        logger.info(f"Recurring messages processed: {processed}")
        return {"processed": processed}
