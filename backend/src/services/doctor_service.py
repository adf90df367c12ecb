"""
Doctor service for doctors and their weekly availability windows.
"""

import logging
import re
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import Appointment, CashAdvance, Doctor, DoctorAvailabilityWindow, FinanceEntry
from services.audit_service import AuditService
from utils.datetime_utils import format_minutes, parse_hhmm

logger = logging.getLogger(__name__)

DEFAULT_SPECIALTY = "Odontoiatra"
HEX_COLOR_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_hex_color(value: Optional[str]) -> Optional[str]:
    """
    Normalize '#abc' / 'AABBCC' to '#aabbcc'.

    Returns None for empty input.

    Raises:
        ValueError: If the value is not a 3 or 6 digit hex colour
    """
    if value is None or not value.strip():
        return None
    match = HEX_COLOR_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Colore non valido.")
    digits = match.group(1).lower()
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits}"


class DoctorService:
    """Service class for doctors."""

    @staticmethod
    def get_doctor(db: Session, doctor_id: int) -> Doctor:
        doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Medico non trovato."
            )
        return doctor

    @staticmethod
    def list_doctors(db: Session) -> List[Doctor]:
        return db.query(Doctor).order_by(Doctor.full_name).all()

    @staticmethod
    def _color_or_400(value: Optional[str]) -> Optional[str]:
        try:
            return normalize_hex_color(value)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    @staticmethod
    def create_doctor(
        db: Session,
        actor,
        name: str,
        last_name: Optional[str] = None,
        specialty: Optional[str] = None,
        color: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Doctor:
        full_name = " ".join(part.strip() for part in (name or "", last_name or "") if part and part.strip())
        if not full_name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome del medico obbligatorio."
            )
        doctor = Doctor(
            full_name=full_name,
            specialty=(specialty or "").strip() or DEFAULT_SPECIALTY,
            color=DoctorService._color_or_400(color),
            email=(email or "").strip().lower() or None,
            phone=(phone or "").strip() or None,
        )
        db.add(doctor)
        db.flush()
        AuditService.log_audit(db, actor, "doctor.created", "Doctor", doctor.id, {"fullName": full_name})
        db.commit()
        return doctor

    @staticmethod
    def update_doctor(
        db: Session,
        actor,
        doctor_id: int,
        full_name: Optional[str] = None,
        specialty: Optional[str] = None,
        color: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Doctor:
        doctor = DoctorService.get_doctor(db, doctor_id)
        if full_name is not None:
            if not full_name.strip():
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Nome del medico obbligatorio."
                )
            doctor.full_name = full_name.strip()
        if specialty is not None:
            doctor.specialty = specialty.strip() or DEFAULT_SPECIALTY
        if color is not None:
            doctor.color = DoctorService._color_or_400(color)
        if email is not None:
            doctor.email = email.strip().lower() or None
        if phone is not None:
            doctor.phone = phone.strip() or None
        AuditService.log_audit(db, actor, "doctor.updated", "Doctor", doctor.id, {"fullName": doctor.full_name})
        db.commit()
        return doctor

    @staticmethod
    def delete_doctor(db: Session, actor, doctor_id: int) -> None:
        """
        Delete a doctor.

        Appointments and finance entries keep existing without a doctor; cash
        advances recorded for the doctor are removed.
        """
        doctor = DoctorService.get_doctor(db, doctor_id)
        name = doctor.full_name
        db.query(Appointment).filter(Appointment.doctor_id == doctor_id).update(
            {Appointment.doctor_id: None}, synchronize_session=False
        )
        db.query(FinanceEntry).filter(FinanceEntry.doctor_id == doctor_id).update(
            {FinanceEntry.doctor_id: None}, synchronize_session=False
        )
        db.query(CashAdvance).filter(CashAdvance.doctor_id == doctor_id).delete(synchronize_session=False)
        db.delete(doctor)
        AuditService.log_audit(db, actor, "doctor.deleted", "Doctor", doctor_id, {"fullName": name})
        db.commit()
        logger.info(f"Deleted doctor {doctor_id}")


class AvailabilityWindowService:
    """Service class for doctor weekly availability windows."""

    @staticmethod
    def _validate(
        db: Session,
        doctor_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        color: Optional[str],
    ) -> tuple[int, int, Optional[str]]:
        if not isinstance(day_of_week, int) or not 1 <= day_of_week <= 7:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Giorno della settimana non valido."
            )
        start_minute = parse_hhmm(start_time)
        end_minute = parse_hhmm(end_time)
        if start_minute is None or end_minute is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Orario non valido (usa HH:MM)."
            )
        normalized_color = DoctorService._color_or_400(color)
        if end_minute <= start_minute:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="L'orario di fine deve essere dopo l'inizio."
            )
        DoctorService.get_doctor(db, doctor_id)
        return start_minute, end_minute, normalized_color

    @staticmethod
    def list_windows(db: Session, doctor_id: Optional[int] = None) -> List[DoctorAvailabilityWindow]:
        q = db.query(DoctorAvailabilityWindow)
        if doctor_id is not None:
            q = q.filter(DoctorAvailabilityWindow.doctor_id == doctor_id)
        return q.order_by(
            DoctorAvailabilityWindow.doctor_id,
            DoctorAvailabilityWindow.day_of_week,
            DoctorAvailabilityWindow.start_minute,
        ).all()

    @staticmethod
    def create_window(
        db: Session,
        actor,
        doctor_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        color: Optional[str] = None,
    ) -> DoctorAvailabilityWindow:
        start_minute, end_minute, normalized_color = AvailabilityWindowService._validate(
            db, doctor_id, day_of_week, start_time, end_time, color
        )
        window = DoctorAvailabilityWindow(
            doctor_id=doctor_id,
            day_of_week=day_of_week,
            start_minute=start_minute,
            end_minute=end_minute,
            color=normalized_color,
        )
        db.add(window)
        db.flush()
        AuditService.log_audit(
            db, actor, "doctorAvailabilityWindow.created", "DoctorAvailabilityWindow", window.id,
            {"doctorId": doctor_id, "dayOfWeek": day_of_week,
             "start": format_minutes(start_minute), "end": format_minutes(end_minute)},
        )
        db.commit()
        return window

    @staticmethod
    def update_window(
        db: Session,
        actor,
        window_id: int,
        doctor_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        color: Optional[str] = None,
    ) -> DoctorAvailabilityWindow:
        window = db.query(DoctorAvailabilityWindow).filter(DoctorAvailabilityWindow.id == window_id).first()
        if not window:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Disponibilità non trovata."
            )
        start_minute, end_minute, normalized_color = AvailabilityWindowService._validate(
            db, doctor_id, day_of_week, start_time, end_time, color
        )
        window.doctor_id = doctor_id
        window.day_of_week = day_of_week
        window.start_minute = start_minute
        window.end_minute = end_minute
        window.color = normalized_color
        AuditService.log_audit(
            db, actor, "doctorAvailabilityWindow.updated", "DoctorAvailabilityWindow", window.id,
            {"doctorId": doctor_id, "dayOfWeek": day_of_week,
             "start": format_minutes(start_minute), "end": format_minutes(end_minute)},
        )
        db.commit()
        return window

    @staticmethod
    def delete_window(db: Session, actor, window_id: int) -> None:
        window = db.query(DoctorAvailabilityWindow).filter(DoctorAvailabilityWindow.id == window_id).first()
        if not window:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Disponibilità non trovata."
            )
        doctor_id = window.doctor_id
        db.delete(window)
        AuditService.log_audit(
            db, actor, "doctorAvailabilityWindow.deleted", "DoctorAvailabilityWindow", window_id,
            {"doctorId": doctor_id},
        )
        db.commit()
