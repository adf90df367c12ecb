"""
Recall and appointment reminder models.

- RecallRule: recurrence rule, e.g. hygiene every 180 days after the last visit.
- Recall: one queued follow-up for a patient generated from a rule (or by hand).
- AppointmentReminderRule: singleton configuration of pre-appointment reminders.
- AppointmentReminder: one queued reminder for an upcoming appointment.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, Integer, Boolean, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class RecallRule(Base):
    """Recurrence rule for follow-up recalls."""

    __tablename__ = "recall_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(255))
    """Rule label, e.g. 'Igiene semestrale'."""

    service_type: Mapped[str] = mapped_column(String(120))
    """Appointment service type the rule follows. 'ANY' matches every service."""

    interval_days: Mapped[int] = mapped_column(Integer)
    """Days between the last visit (or last recall) and the next recall."""

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Message body; placeholders {{patientName}} and {{serviceType}} are available."""

    email_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    template_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Email template to use instead of subject/message."""

    channel: Mapped[str] = mapped_column(String(10), default="EMAIL")
    """'EMAIL', 'SMS' or 'BOTH'."""

    enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class Recall(Base):
    """Queued follow-up for one patient."""

    __tablename__ = "recalls"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("recall_rules.id"), index=True)

    due_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """When the recall should be sent."""

    status: Mapped[str] = mapped_column(String(20), default="PENDING")
    """'PENDING', 'CONTACTED' or 'SKIPPED'."""

    last_contact_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """When dispatch last processed this recall."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    patient = relationship("Patient")
    rule = relationship("RecallRule")

    __table_args__ = (
        Index('idx_recalls_status_due', 'status', 'due_at'),
    )


class AppointmentReminderRule(Base):
    """
    Configuration of pre-appointment reminders (a single row).

    timing_type:
    - DAYS_BEFORE: send `days_before` days before the start time
    - SAME_DAY_TIME: send on the appointment day at `time_of_day_minutes`
    """

    __tablename__ = "appointment_reminder_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    timing_type: Mapped[str] = mapped_column(String(20), default="DAYS_BEFORE")
    days_before: Mapped[int] = mapped_column(Integer, default=1)
    time_of_day_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    channel: Mapped[str] = mapped_column(String(10), default="EMAIL")
    template_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class AppointmentReminder(Base):
    """Queued reminder for one appointment (at most one per appointment)."""

    __tablename__ = "appointment_reminders"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id"), unique=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    rule_id: Mapped[Optional[int]] = mapped_column(ForeignKey("appointment_reminder_rules.id", ondelete="SET NULL"), nullable=True)

    due_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    status: Mapped[str] = mapped_column(String(20), default="PENDING")
    """'PENDING', 'CONTACTED' or 'SKIPPED'."""

    channel: Mapped[str] = mapped_column(String(10), default="EMAIL")
    last_contact_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    appointment = relationship("Appointment")
    patient = relationship("Patient")
    rule = relationship("AppointmentReminderRule")

    __table_args__ = (
        Index('idx_appointment_reminders_status_due', 'status', 'due_at'),
    )
