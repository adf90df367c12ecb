"""
Consent models.

- Consent: a typed consent (privacy, treatment, marketing...) granted by a patient.
- ConsentModule: configurable consent text shown to patients for signature.
- PatientConsent: a patient's signature of a consent module.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, Boolean, Integer, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Consent(Base):
    """Typed consent, unique per patient and type."""

    __tablename__ = "consents"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    """Patient who gave the consent."""

    type: Mapped[str] = mapped_column(String(50))
    """Consent type: 'PRIVACY', 'TREATMENT', 'MARKETING', 'RECALL_SMS'..."""

    status: Mapped[str] = mapped_column(String(20), default="GRANTED")
    """'GRANTED' or 'REVOKED'."""

    channel: Mapped[str] = mapped_column(String(50), default="manual")
    """How the consent was collected: 'manual', 'form', 'signature'..."""

    given_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """When the consent was given."""

    expires_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Optional expiry."""

    revoked_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Set when the consent is revoked."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    patient = relationship("Patient", back_populates="consents")

    __table_args__ = (
        UniqueConstraint('patient_id', 'type', name='uq_consents_patient_type'),
    )


class ConsentModule(Base):
    """Consent text configured by administrators."""

    __tablename__ = "consent_modules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(255))
    """Title shown to the patient."""

    content: Mapped[str] = mapped_column(Text)
    """Full consent text."""

    active: Mapped[bool] = mapped_column(Boolean, default=True)
    """Inactive modules are hidden from new signatures."""

    required: Mapped[bool] = mapped_column(Boolean, default=False)
    """Whether every patient must sign this module."""

    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    """Display order (ascending)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class PatientConsent(Base):
    """A patient's signature of a consent module."""

    __tablename__ = "patient_consents"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), index=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("consent_modules.id"), index=True)

    signed_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """When the module was signed."""

    signed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Name of the signer (patient or legal guardian)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    module = relationship("ConsentModule")
