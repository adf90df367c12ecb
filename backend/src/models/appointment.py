"""
Appointment model representing scheduled visits.

Each appointment links a patient and, optionally, a doctor for a time range.
Overlapping appointments for the same doctor are allowed but surfaced by the
conflict check so the user can confirm.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Appointment(Base):
    """
    Scheduled visit between a patient and a doctor.

    Status lifecycle: TO_CONFIRM -> CONFIRMED -> IN_WAITING -> IN_PROGRESS ->
    COMPLETED, with CANCELLED and NO_SHOW as terminal alternatives.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the appointment."""

    title: Mapped[str] = mapped_column(String(255))
    """Short description shown in the agenda, e.g. 'Controllo'."""

    service_type: Mapped[str] = mapped_column(String(120))
    """Kind of service (e.g. 'Igiene', 'Otturazione'). Matched by recall rules."""

    starts_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """Start of the appointment."""

    ends_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """End of the appointment (after starts_at)."""

    status: Mapped[str] = mapped_column(String(20), default="TO_CONFIRM")
    """Current status, one of APPOINTMENT_STATUSES."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Internal notes."""

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"))
    """Patient the appointment is booked for."""

    doctor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True)
    """Doctor performing the visit. NULL when not yet assigned or after the doctor is removed."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    """Patient the appointment is booked for."""

    doctor = relationship("Doctor")
    """Doctor performing the visit."""

    __table_args__ = (
        Index('idx_appointments_doctor_start', 'doctor_id', 'starts_at'),
        Index('idx_appointments_patient', 'patient_id'),
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, starts_at={self.starts_at}, status='{self.status}')>"
