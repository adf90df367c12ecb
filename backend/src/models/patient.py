"""
Patient model representing individuals treated at the practice.

Patients are the center of the data model: appointments, dental records,
consents, recalls, stock movements of implanted devices and payments all
reference a patient.
"""

from datetime import datetime, date
from typing import Optional

from sqlalchemy import String, Text, TIMESTAMP, Date, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Patient(Base):
    """
    Patient entity with contact details used for notifications.

    Names are stored normalized (title case), emails lowercase and phone numbers
    in international format.
    """

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the patient."""

    first_name: Mapped[str] = mapped_column(String(255))
    """Given name."""

    last_name: Mapped[str] = mapped_column(String(255), default="")
    """Family name. May be empty for patients created from stock imports with a single name."""

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Contact email. Patients without email never receive recurring messages."""

    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Contact phone in international format (e.g. +393331234567)."""

    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """Date of birth, used for birthday greetings."""

    tax_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    """Italian fiscal code (codice fiscale)."""

    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Postal address."""

    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    """City of residence."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Free-text notes (anamnesis summary, preferences)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """Timestamp when the patient was first created."""

    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp of the last change."""

    # Relationships
    appointments = relationship("Appointment", back_populates="patient")
    """All appointments booked for this patient."""

    consents = relationship("Consent", back_populates="patient")
    """Consent records (privacy, treatment, marketing...)."""

    dental_records = relationship("DentalRecord", back_populates="patient")
    """Per-tooth treatment records."""

    __table_args__ = (
        Index('idx_patients_name', 'last_name', 'first_name'),
    )

    @property
    def full_name(self) -> str:
        """Name as shown in lists: last name first."""
        return f"{self.last_name} {self.first_name}".strip()

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.full_name}')>"
