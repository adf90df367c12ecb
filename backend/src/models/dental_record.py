"""
Clinical record models: per-tooth dental records and free-form clinical notes.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class DentalRecord(Base):
    """
    Latest procedure performed on one tooth of a patient.

    One row per (patient, tooth); saving again for the same tooth updates it.
    Income entries reference dental records to describe what was paid.
    """

    __tablename__ = "dental_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    """Patient the record belongs to."""

    tooth_number: Mapped[int] = mapped_column()
    """FDI tooth number (11-48, 51-85 for deciduous teeth)."""

    procedure: Mapped[str] = mapped_column(String(255))
    """Procedure performed, e.g. 'Otturazione'."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Optional clinical notes."""

    performed_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """When the procedure was performed."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    patient = relationship("Patient", back_populates="dental_records")

    __table_args__ = (
        UniqueConstraint('patient_id', 'tooth_number', name='uq_dental_records_patient_tooth'),
    )


class ClinicalNote(Base):
    """Free-form clinical diary entry."""

    __tablename__ = "clinical_notes"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
