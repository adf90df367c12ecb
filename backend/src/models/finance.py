"""
Finance models: ledger entries and cash advances.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Boolean, Numeric, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class FinanceEntry(Base):
    """
    Income or expense line in the practice ledger.

    Descriptions are composed by the finance service from the linked patient,
    dental record, supplier and product so the ledger reads on its own.
    """

    __tablename__ = "finance_entries"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    type: Mapped[str] = mapped_column(String(10))
    """'INCOME' or 'EXPENSE'."""

    description: Mapped[str] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    occurred_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """When the payment happened."""

    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    patient_id: Mapped[Optional[int]] = mapped_column(ForeignKey("patients.id"), nullable=True)
    doctor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True)

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    """Archived entries are hidden from the default ledger view."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    __table_args__ = (
        Index('idx_finance_entries_occurred', 'occurred_at'),
    )


class CashAdvance(Base):
    """Advance payment (acconto) received from a patient."""

    __tablename__ = "cash_advances"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    doctor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("doctors.id"), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    issued_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    patient = relationship("Patient")
