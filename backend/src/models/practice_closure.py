"""
Practice closure models.

- PracticeClosure: a dated closure period (holiday, time off).
- PracticeWeeklyClosure: a weekday on which the practice is always closed.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class PracticeClosure(Base):
    """Closure period between two instants."""

    __tablename__ = "practice_closures"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    type: Mapped[str] = mapped_column(String(20), default="HOLIDAY")
    """'HOLIDAY' or 'TIME_OFF'."""

    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Optional label, e.g. 'Ferie estive'."""

    starts_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), index=True)
    """Start of the closure."""

    ends_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """End of the closure (after starts_at)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class PracticeWeeklyClosure(Base):
    """Weekday on which the practice is closed every week."""

    __tablename__ = "practice_weekly_closures"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    day_of_week: Mapped[int] = mapped_column(Integer, unique=True)
    """ISO day of week (1=Monday ... 7=Sunday)."""

    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Optional label shown in warnings."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    """Inactive rows are ignored."""
