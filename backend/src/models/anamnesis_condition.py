"""
Anamnesis condition model.
"""

from datetime import datetime

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class AnamnesisCondition(Base):
    """A medical condition offered in the patient anamnesis checklist."""

    __tablename__ = "anamnesis_conditions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    label: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
