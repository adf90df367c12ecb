"""
Service catalogue model (treatments offered with their base cost).
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Numeric, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class PracticeService(Base):
    """Treatment offered by the practice."""

    __tablename__ = "practice_services"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_basis: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    """Base price before discounts."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
