"""
SMS delivery log.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class SmsLog(Base):
    """
    One SMS delivery attempt.

    Written for every attempt, including simulated sends when the provider is
    not configured and failed sends.
    """

    __tablename__ = "sms_logs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    to: Mapped[str] = mapped_column(String(50))
    """Recipient phone number."""

    body: Mapped[str] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String(20))
    """'SENT', 'SIMULATED' or 'FAILED'."""

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Provider error for FAILED attempts."""

    template_id: Mapped[Optional[int]] = mapped_column(ForeignKey("sms_templates.id", ondelete="SET NULL"), nullable=True)
    patient_id: Mapped[Optional[int]] = mapped_column(ForeignKey("patients.id"), nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    __table_args__ = (
        Index('idx_sms_logs_created_at', 'created_at'),
    )
