"""
Consent service for typed patient consents and configurable consent modules.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import Consent, ConsentModule, PatientConsent
from services.audit_service import AuditService
from services.patient_service import PatientService
from utils.datetime_utils import practice_now, parse_datetime_to_local

logger = logging.getLogger(__name__)

CONSENT_TYPES = ["PRIVACY", "TREATMENT", "MARKETING", "RECALL_SMS", "RECALL_EMAIL", "PHOTO"]


class ConsentService:
    """Service class for patient consents."""

    @staticmethod
    def list_consents(db: Session, patient_id: int) -> List[Consent]:
        PatientService.get_patient(db, patient_id)
        return db.query(Consent).filter(Consent.patient_id == patient_id).order_by(Consent.type).all()

    @staticmethod
    def add_consent(
        db: Session,
        actor,
        patient_id: int,
        consent_type: str,
        channel: Optional[str] = None,
        expires_at: Optional[datetime | str] = None,
    ) -> Consent:
        """
        Record a granted consent.

        Raises:
            HTTPException: 400 for unknown types, 409 if the patient already has one of this type
        """
        PatientService.get_patient(db, patient_id)
        consent_type = (consent_type or "").strip().upper()
        if consent_type not in CONSENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tipo di consenso non valido."
            )

        existing = db.query(Consent).filter(
            Consent.patient_id == patient_id,
            Consent.type == consent_type,
        ).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esiste già un consenso di questo tipo per questo paziente."
            )

        consent = Consent(
            patient_id=patient_id,
            type=consent_type,
            status="GRANTED",
            channel=(channel or "").strip() or "manual",
            given_at=practice_now(),
            expires_at=parse_datetime_to_local(expires_at) if expires_at else None,
        )
        db.add(consent)
        db.flush()
        AuditService.log_audit(
            db, actor, "consent.created", "Consent", consent.id,
            {"patientId": patient_id, "type": consent_type},
        )
        db.commit()
        return consent

    @staticmethod
    def revoke_consent(db: Session, actor, patient_id: int, consent_id: int) -> Consent:
        consent = db.query(Consent).filter(Consent.id == consent_id).first()
        if not consent or consent.patient_id != patient_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Consenso non trovato"
            )
        consent.status = "REVOKED"
        consent.revoked_at = practice_now()
        AuditService.log_audit(
            db, actor, "consent.revoked", "Consent", consent.id,
            {"patientId": patient_id, "type": consent.type},
        )
        db.commit()
        return consent


class ConsentModuleService:
    """Service class for consent modules and their signatures."""

    @staticmethod
    def list_modules(db: Session, active_only: bool = False) -> List[ConsentModule]:
        q = db.query(ConsentModule)
        if active_only:
            q = q.filter(ConsentModule.active.is_(True))
        return q.order_by(ConsentModule.sort_order, ConsentModule.name).all()

    @staticmethod
    def save_module(
        db: Session,
        actor,
        name: str,
        content: str,
        active: bool = True,
        required: bool = False,
        sort_order: int = 0,
        module_id: Optional[int] = None,
    ) -> ConsentModule:
        """Create a module, or update it when module_id is given."""
        name = (name or "").strip()
        content = (content or "").strip()
        if not name or not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nome e contenuto sono obbligatori."
            )

        if module_id is not None:
            module = db.query(ConsentModule).filter(ConsentModule.id == module_id).first()
            if not module:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Modulo non trovato."
                )
        else:
            module = ConsentModule()
            db.add(module)

        module.name = name
        module.content = content
        module.active = active
        module.required = required
        module.sort_order = sort_order
        db.flush()

        AuditService.log_audit(
            db, actor, "consentModule.saved", "ConsentModule", module.id,
            {"name": name, "active": active, "required": required},
        )
        db.commit()
        return module

    @staticmethod
    def delete_module(db: Session, actor, module_id: int) -> None:
        """Delete a module together with the signatures collected for it."""
        module = db.query(ConsentModule).filter(ConsentModule.id == module_id).first()
        if not module:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Modulo non trovato."
            )
        db.query(PatientConsent).filter(PatientConsent.module_id == module_id).delete(synchronize_session=False)
        db.delete(module)
        AuditService.log_audit(db, actor, "consentModule.deleted", "ConsentModule", module_id, {"name": module.name})
        db.commit()

    @staticmethod
    def list_signed(db: Session, patient_id: int) -> List[PatientConsent]:
        PatientService.get_patient(db, patient_id)
        return db.query(PatientConsent).filter(
            PatientConsent.patient_id == patient_id
        ).order_by(PatientConsent.signed_at.desc()).all()

    @staticmethod
    def sign_module(
        db: Session,
        actor,
        patient_id: int,
        module_id: int,
        signed_by: Optional[str] = None,
    ) -> PatientConsent:
        PatientService.get_patient(db, patient_id)
        module = db.query(ConsentModule).filter(ConsentModule.id == module_id).first()
        if not module or not module.active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Modulo non trovato."
            )
        signature = PatientConsent(
            patient_id=patient_id,
            module_id=module_id,
            signed_at=practice_now(),
            signed_by=(signed_by or "").strip() or None,
        )
        db.add(signature)
        db.flush()
        AuditService.log_audit(
            db, actor, "consentModule.signed", "PatientConsent", signature.id,
            {"patientId": patient_id, "moduleId": module_id},
        )
        db.commit()
        return signature
