"""
Patient service for patient records, dental records and clinical notes.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from models import (
    Patient, Appointment, AppointmentReminder, CashAdvance, ClinicalNote, Consent,
    DentalRecord, FinanceEntry, PatientConsent, Recall, RecurringMessageLog, SmsLog,
    StockMovement,
)
from services.audit_service import AuditService
from services.email_service import NotificationDeliveryError
from utils.datetime_utils import practice_now, parse_datetime_to_local
from utils.name_utils import normalize_person_name
from utils.phone_validator import normalize_italian_phone

logger = logging.getLogger(__name__)

DEFAULT_CONSENT_TYPES = ["PRIVACY", "TREATMENT"]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class PatientService:
    """
    Service class for patient operations.

    Contains business logic for patient management shared by the patient,
    finance, inventory and GDPR endpoints.
    """

    @staticmethod
    def get_patient(db: Session, patient_id: int) -> Patient:
        """
        Raises:
            HTTPException: 404 if the patient does not exist
        """
        patient = db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Paziente non trovato"
            )
        return patient

    @staticmethod
    def list_patients(db: Session, query: Optional[str] = None, limit: int = 200) -> List[Patient]:
        """List patients by last name, optionally filtered on name, email or phone."""
        q = db.query(Patient)
        term = (query or "").strip()
        if term:
            pattern = f"%{term}%"
            q = q.filter(or_(
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.email.ilike(pattern),
                Patient.phone.ilike(pattern),
            ))
        return q.order_by(Patient.last_name, Patient.first_name).limit(limit).all()

    @staticmethod
    def create_patient(
        db: Session,
        actor,
        first_name: str,
        last_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        birth_date: Optional[date] = None,
        tax_id: Optional[str] = None,
        address: Optional[str] = None,
        city: Optional[str] = None,
        notes: Optional[str] = None,
        send_welcome: bool = True,
    ) -> Patient:
        """
        Create a patient with the default privacy and treatment consents.

        A welcome email is sent when an email is given; delivery failures are
        logged and do not undo the creation.

        Raises:
            HTTPException: 400 if first or last name is missing
        """
        first = normalize_person_name(first_name)
        last = normalize_person_name(last_name)
        if not first or not last:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome e cognome sono obbligatori"
            )

        normalized_email = _clean(email)
        patient = Patient(
            first_name=first,
            last_name=last,
            email=normalized_email.lower() if normalized_email else None,
            phone=normalize_italian_phone(phone),
            birth_date=birth_date,
            tax_id=_clean(tax_id).upper() if _clean(tax_id) else None,
            address=_clean(address),
            city=_clean(city),
            notes=_clean(notes),
        )
        db.add(patient)
        db.flush()

        now = practice_now()
        for consent_type in DEFAULT_CONSENT_TYPES:
            db.add(Consent(
                patient_id=patient.id,
                type=consent_type,
                status="GRANTED",
                channel="form",
                given_at=now,
            ))

        AuditService.log_audit(
            db, actor, "patient.created", "Patient", patient.id,
            {"name": patient.full_name},
        )
        db.commit()
        db.refresh(patient)
        logger.info(f"Created patient {patient.id}")

        if patient.email and send_welcome:
            PatientService._send_welcome_email(db, patient)

        return patient

    @staticmethod
    def _send_welcome_email(db: Session, patient: Patient) -> None:
        # Imported here to avoid a circular import with template_service
        from services.template_service import EmailTemplateService
        try:
            EmailTemplateService.send_email_template(
                db,
                patient.email,  # type: ignore[arg-type]
                "welcome",
                {"patientName": f"{patient.first_name} {patient.last_name}".strip()},
            )
        except (NotificationDeliveryError, HTTPException) as e:
            logger.warning(f"Welcome email for patient {patient.id} not sent: {e}")

    @staticmethod
    def update_patient(db: Session, actor, patient_id: int, changes: Dict[str, Any]) -> Patient:
        """
        Update the given fields of a patient.

        Only keys present in `changes` are touched, so explicit None clears a field.
        """
        patient = PatientService.get_patient(db, patient_id)

        if "first_name" in changes:
            first = normalize_person_name(changes["first_name"])
            if not first:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Nome e cognome sono obbligatori"
                )
            patient.first_name = first
        if "last_name" in changes:
            last = normalize_person_name(changes["last_name"])
            if not last:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Nome e cognome sono obbligatori"
                )
            patient.last_name = last
        if "email" in changes:
            email = _clean(changes["email"])
            patient.email = email.lower() if email else None
        if "phone" in changes:
            patient.phone = normalize_italian_phone(changes["phone"])
        if "birth_date" in changes:
            patient.birth_date = changes["birth_date"]
        if "tax_id" in changes:
            tax_id = _clean(changes["tax_id"])
            patient.tax_id = tax_id.upper() if tax_id else None
        for field in ("address", "city", "notes"):
            if field in changes:
                setattr(patient, field, _clean(changes[field]))

        AuditService.log_audit(db, actor, "patient.updated", "Patient", patient.id, {"fields": sorted(changes.keys())})
        db.commit()
        return patient

    @staticmethod
    def delete_patient(db: Session, actor, patient_id: int) -> None:
        """
        Delete a patient and every record that references them.

        Finance entries only lose the patient link; the ledger keeps its history.
        """
        patient = PatientService.get_patient(db, patient_id)
        name = patient.full_name

        appointment_ids = [a_id for (a_id,) in db.query(Appointment.id).filter(Appointment.patient_id == patient_id).all()]
        if appointment_ids:
            db.query(AppointmentReminder).filter(
                AppointmentReminder.appointment_id.in_(appointment_ids)
            ).delete(synchronize_session=False)
        db.query(AppointmentReminder).filter(AppointmentReminder.patient_id == patient_id).delete(synchronize_session=False)

        for model in (DentalRecord, ClinicalNote, Recall, Appointment, StockMovement, Consent,
                      PatientConsent, SmsLog, RecurringMessageLog, CashAdvance):
            db.query(model).filter(model.patient_id == patient_id).delete(synchronize_session=False)
        db.query(FinanceEntry).filter(FinanceEntry.patient_id == patient_id).update(
            {FinanceEntry.patient_id: None}, synchronize_session=False
        )

        # Drop collections loaded before the bulk deletes
        db.expire(patient)
        db.delete(patient)
        AuditService.log_audit(db, actor, "patient.deleted", "Patient", patient_id, {"name": name})
        db.commit()
        logger.info(f"Deleted patient {patient_id} and related records")

    # Dental records

    @staticmethod
    def list_dental_records(db: Session, patient_id: int) -> List[DentalRecord]:
        PatientService.get_patient(db, patient_id)
        return db.query(DentalRecord).filter(
            DentalRecord.patient_id == patient_id
        ).order_by(DentalRecord.tooth_number).all()

    @staticmethod
    def upsert_dental_record(
        db: Session,
        actor,
        patient_id: int,
        tooth_number: int,
        procedure: str,
        notes: Optional[str] = None,
        performed_at: Optional[datetime | str] = None,
    ) -> DentalRecord:
        """Create or replace the record of one tooth."""
        PatientService.get_patient(db, patient_id)
        procedure = (procedure or "").strip()
        if not procedure or not (11 <= tooth_number <= 85):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati non validi"
            )
        when = parse_datetime_to_local(performed_at) if performed_at else practice_now()

        record = db.query(DentalRecord).filter(
            DentalRecord.patient_id == patient_id,
            DentalRecord.tooth_number == tooth_number,
        ).first()
        if record is None:
            record = DentalRecord(patient_id=patient_id, tooth_number=tooth_number)
            db.add(record)
        record.procedure = procedure
        record.notes = _clean(notes)
        record.performed_at = when
        db.flush()

        AuditService.log_audit(
            db, actor, "dentalRecord.saved", "DentalRecord", record.id,
            {"patientId": patient_id, "tooth": tooth_number, "procedure": procedure},
        )
        db.commit()
        return record

    @staticmethod
    def delete_dental_record(db: Session, actor, patient_id: int, record_id: int) -> None:
        """
        Raises:
            HTTPException: 404 if the record does not exist or belongs to another patient
        """
        record = db.query(DentalRecord).filter(DentalRecord.id == record_id).first()
        if not record or record.patient_id != patient_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Record non trovato"
            )
        db.delete(record)
        AuditService.log_audit(db, actor, "dentalRecord.deleted", "DentalRecord", record_id, {"patientId": patient_id})
        db.commit()

    # Clinical notes

    @staticmethod
    def list_clinical_notes(db: Session, patient_id: int) -> List[ClinicalNote]:
        PatientService.get_patient(db, patient_id)
        return db.query(ClinicalNote).filter(
            ClinicalNote.patient_id == patient_id
        ).order_by(ClinicalNote.created_at.desc(), ClinicalNote.id.desc()).all()

    @staticmethod
    def add_clinical_note(db: Session, actor, patient_id: int, title: str, content: str) -> ClinicalNote:
        PatientService.get_patient(db, patient_id)
        title = (title or "").strip()
        content = (content or "").strip()
        if not title or not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Titolo e contenuto sono obbligatori"
            )
        note = ClinicalNote(
            patient_id=patient_id,
            title=title,
            content=content,
            user_id=getattr(actor, "user_id", None),
        )
        db.add(note)
        db.flush()
        AuditService.log_audit(db, actor, "clinicalNote.created", "ClinicalNote", note.id, {"patientId": patient_id})
        db.commit()
        return note

    @staticmethod
    def delete_clinical_note(db: Session, actor, patient_id: int, note_id: int) -> None:
        note = db.query(ClinicalNote).filter(ClinicalNote.id == note_id).first()
        if not note or note.patient_id != patient_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Nota non trovata"
            )
        db.delete(note)
        AuditService.log_audit(db, actor, "clinicalNote.deleted", "ClinicalNote", note_id, {"patientId": patient_id})
        db.commit()
