"""
Recurring message models (holiday, closure and birthday emails).
"""

from datetime import datetime, date
from typing import Optional

from sqlalchemy import String, Text, Integer, Boolean, Date, ForeignKey, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class RecurringMessageConfig(Base):
    """
    Stored overrides for one message kind.

    NULL columns fall back to the built-in defaults of the kind.
    """

    __tablename__ = "recurring_message_configs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    kind: Mapped[str] = mapped_column(String(20), unique=True)
    """'HOLIDAY', 'CLOSURE' or 'BIRTHDAY'."""

    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    days_before: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Closure notices only: days before the closure start."""

    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class RecurringMessageLog(Base):
    """
    Delivery record of one recurring message occurrence for one patient.

    `dedupe_key` identifies the occurrence (e.g. 'holiday:natale:2025:42');
    its uniqueness is what prevents a second send.
    """

    __tablename__ = "recurring_message_logs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(20))
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)

    scheduled_for: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """When the message became due."""

    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """Holiday, closure start or birthday date."""

    dedupe_key: Mapped[str] = mapped_column(String(255), unique=True)

    status: Mapped[str] = mapped_column(String(20))
    """'SENT', 'FAILED' or 'SKIPPED'."""

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
