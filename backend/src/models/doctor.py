"""
Doctor model and weekly availability windows.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Doctor(Base):
    """
    A clinician appointments can be booked with.

    Doctors are not login accounts; staff users manage their calendars.
    """

    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the doctor."""

    full_name: Mapped[str] = mapped_column(String(255))
    """Display name, e.g. 'Dr. Giulia Bianchi'."""

    specialty: Mapped[str] = mapped_column(String(120), default="Odontoiatra")
    """Specialty shown in the agenda."""

    color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    """Calendar colour in #rrggbb form."""

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    availability_windows = relationship(
        "DoctorAvailabilityWindow", back_populates="doctor", cascade="all, delete-orphan"
    )
    """Weekly windows during which the doctor can be booked."""

    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, name='{self.full_name}')>"


class DoctorAvailabilityWindow(Base):
    """
    Weekly recurring time-of-day range during which a doctor may be booked.

    Multiple windows per day are allowed (e.g. morning and afternoon sessions).
    A doctor without any window is treated as always available.
    """

    __tablename__ = "doctor_availability_windows"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    """Doctor the window belongs to."""

    day_of_week: Mapped[int] = mapped_column(Integer)
    """ISO day of week (1=Monday ... 7=Sunday)."""

    start_minute: Mapped[int] = mapped_column(Integer)
    """Window start, minutes since midnight."""

    end_minute: Mapped[int] = mapped_column(Integer)
    """Window end, minutes since midnight (exclusive upper bound for appointment end)."""

    color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    """Optional colour used to draw the window in the calendar."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    doctor = relationship("Doctor", back_populates="availability_windows")

    __table_args__ = (
        Index('idx_availability_doctor_day', 'doctor_id', 'day_of_week'),
    )
