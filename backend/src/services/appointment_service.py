"""
Appointment service for agenda operations.

Create and update return the scheduling warning next to the saved appointment;
the warning never blocks the save.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from core.constants import APPOINTMENT_STATUSES
from models import Appointment, AppointmentReminder, Doctor
from services.audit_service import AuditService
from services.patient_service import PatientService
from services.scheduling_warnings import load_scheduling_warning
from utils.datetime_utils import parse_datetime_to_local

logger = logging.getLogger(__name__)


def _parse_range(starts_at: datetime | str, ends_at: datetime | str) -> tuple[datetime, datetime]:
    try:
        start = parse_datetime_to_local(starts_at)
        end = parse_datetime_to_local(ends_at)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Formato data non valido"
        )
    if end <= start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="L'orario di fine deve essere dopo l'inizio."
        )
    return start, end


class AppointmentService:
    """
    Service class for appointment operations.

    Contains the business logic shared by the agenda endpoints and the
    manual notification flow.
    """

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Appointment:
        appointment = db.query(Appointment).options(
            joinedload(Appointment.patient),
            joinedload(Appointment.doctor),
        ).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appuntamento non trovato"
            )
        return appointment

    @staticmethod
    def _check_doctor(db: Session, doctor_id: Optional[int]) -> None:
        if doctor_id is None:
            return
        if not db.query(Doctor.id).filter(Doctor.id == doctor_id).first():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Medico non trovato."
            )

    @staticmethod
    def _check_status(value: str) -> str:
        value = (value or "").strip().upper()
        if value not in APPOINTMENT_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Stato non valido"
            )
        return value

    @staticmethod
    def list_appointments(
        db: Session,
        doctor_id: Optional[int] = None,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
        status_filter: Optional[str] = None,
        patient_id: Optional[int] = None,
    ) -> List[Appointment]:
        """List appointments overlapping [range_start, range_end), ordered by start."""
        q = db.query(Appointment).options(
            joinedload(Appointment.patient),
            joinedload(Appointment.doctor),
        )
        if doctor_id is not None:
            q = q.filter(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            q = q.filter(Appointment.patient_id == patient_id)
        if range_start is not None:
            q = q.filter(Appointment.ends_at > range_start)
        if range_end is not None:
            q = q.filter(Appointment.starts_at < range_end)
        if status_filter:
            q = q.filter(Appointment.status == status_filter.strip().upper())
        return q.order_by(Appointment.starts_at).all()

    @staticmethod
    def create_appointment(
        db: Session,
        actor,
        patient_id: int,
        title: str,
        service_type: str,
        starts_at: datetime | str,
        ends_at: datetime | str,
        doctor_id: Optional[int] = None,
        notes: Optional[str] = None,
        appointment_status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an appointment.

        Returns:
            Dict with the saved `appointment` and the scheduling `warning` (or None)

        Raises:
            HTTPException: 400 for missing fields or an invalid range, 404 for unknown patient/doctor
        """
        title = (title or "").strip()
        service_type = (service_type or "").strip()
        if not title or not service_type:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Dati appuntamento non validi"
            )
        start, end = _parse_range(starts_at, ends_at)
        PatientService.get_patient(db, patient_id)
        AppointmentService._check_doctor(db, doctor_id)

        appointment = Appointment(
            title=title,
            service_type=service_type,
            starts_at=start,
            ends_at=end,
            status=AppointmentService._check_status(appointment_status) if appointment_status else "TO_CONFIRM",
            notes=(notes or "").strip() or None,
            patient_id=patient_id,
            doctor_id=doctor_id,
        )
        db.add(appointment)
        db.flush()
        AuditService.log_audit(
            db, actor, "appointment.created", "Appointment", appointment.id,
            {"patientId": patient_id, "doctorId": doctor_id, "startsAt": start.isoformat()},
        )
        db.commit()
        logger.info(f"Created appointment {appointment.id} for patient {patient_id}")

        warning = load_scheduling_warning(db, start, end, doctor_id)
        return {"appointment": AppointmentService.get_appointment(db, appointment.id), "warning": warning}

    @staticmethod
    def update_appointment(
        db: Session,
        actor,
        appointment_id: int,
        changes: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Update the given fields of an appointment.

        Only keys present in `changes` are applied. `doctor_id=None` unassigns the doctor.
        """
        appointment = AppointmentService.get_appointment(db, appointment_id)

        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Dati appuntamento non validi"
                )
            appointment.title = title
        if "service_type" in changes:
            service_type = (changes["service_type"] or "").strip()
            if not service_type:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Dati appuntamento non validi"
                )
            appointment.service_type = service_type
        if "starts_at" in changes or "ends_at" in changes:
            start, end = _parse_range(
                changes.get("starts_at") or appointment.starts_at,
                changes.get("ends_at") or appointment.ends_at,
            )
            appointment.starts_at = start
            appointment.ends_at = end
        if "doctor_id" in changes:
            AppointmentService._check_doctor(db, changes["doctor_id"])
            appointment.doctor_id = changes["doctor_id"]
        if "patient_id" in changes:
            PatientService.get_patient(db, changes["patient_id"])
            appointment.patient_id = changes["patient_id"]
        if "status" in changes:
            appointment.status = AppointmentService._check_status(changes["status"])
        if "notes" in changes:
            appointment.notes = (changes["notes"] or "").strip() or None

        AuditService.log_audit(
            db, actor, "appointment.updated", "Appointment", appointment.id,
            {"fields": sorted(changes.keys())},
        )
        db.commit()

        warning = load_scheduling_warning(db, appointment.starts_at, appointment.ends_at, appointment.doctor_id)
        return {"appointment": AppointmentService.get_appointment(db, appointment.id), "warning": warning}

    @staticmethod
    def update_status(db: Session, actor, appointment_id: int, new_status: str) -> Appointment:
        appointment = AppointmentService.get_appointment(db, appointment_id)
        previous = appointment.status
        appointment.status = AppointmentService._check_status(new_status)
        AuditService.log_audit(
            db, actor, "appointment.status_updated", "Appointment", appointment.id,
            {"from": previous, "to": appointment.status},
        )
        db.commit()
        return appointment

    @staticmethod
    def delete_appointment(db: Session, actor, appointment_id: int) -> None:
        appointment = AppointmentService.get_appointment(db, appointment_id)
        db.query(AppointmentReminder).filter(
            AppointmentReminder.appointment_id == appointment_id
        ).delete(synchronize_session=False)
        db.delete(appointment)
        AuditService.log_audit(
            db, actor, "appointment.deleted", "Appointment", appointment_id,
            {"patientId": appointment.patient_id},
        )
        db.commit()

    @staticmethod
    def check_conflict(
        db: Session,
        doctor_id: Optional[int],
        starts_at: Optional[str],
        ends_at: Optional[str],
        exclude_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Count the doctor's appointments overlapping a proposed range.

        Never raises for bad input: the answer carries a message instead.
        """
        if not doctor_id or not starts_at or not ends_at:
            return {"conflict": False, "message": "Dati insufficienti"}
        try:
            start = parse_datetime_to_local(starts_at)
            end = parse_datetime_to_local(ends_at)
        except ValueError:
            return {"conflict": False, "message": "Formato data non valido"}

        q = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.starts_at < end,
            Appointment.ends_at > start,
        )
        if exclude_id is not None:
            q = q.filter(Appointment.id != exclude_id)
        count = q.count()
        return {"conflict": count > 0, "count": count}
