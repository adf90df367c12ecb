"""
Audit log model recording who changed what.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, ForeignKey, TIMESTAMP, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class AuditLog(Base):
    """
    Append-only record of a user action.

    Entries are written by services after a successful change and are
    removed only by the GDPR retention cleanup.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the entry."""

    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    """Acting user. NULL for system jobs or when the user was deleted."""

    role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """Role of the acting user at the time of the action."""

    action: Mapped[str] = mapped_column(String(100))
    """Dotted action name, e.g. 'patient.created'."""

    entity: Mapped[str] = mapped_column(String(100))
    """Affected entity type, e.g. 'Patient'."""

    entity_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Identifier of the affected entity."""

    metadata_json: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    """Free-form details of the action."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """Timestamp of the action."""

    user = relationship("User")

    __table_args__ = (
        Index('idx_audit_logs_created_at', 'created_at'),
    )
