"""
Anamnesis checklist configuration.

The practice can replace the built-in list of medical conditions shown on
the patient anamnesis. With no stored conditions the defaults apply.
"""

import logging
from typing import List

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import AnamnesisCondition
from services.audit_service import AuditService

logger = logging.getLogger(__name__)

DEFAULT_ANAMNESIS_CONDITIONS = [
    "Affezioni cardiache",
    "Ipertensione arteriosa",
    "Malattie renali",
    "Malattie oculari",
    "Malattie ematiche",
    "Diabete",
    "Asma/Allergie",
    "Farmacoterapia",
    "Operazioni chirurgiche",
    "Fumatore",
    "Malattie infettive (es. Epatite, HIV)",
    "Malattie epatiche",
    "Malattie reumatiche",
    "Anomalie della coagulazione",
    "Gravidanza",
]


def _clean_label(label: str) -> str:
    label = (label or "").strip()
    if not label:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nome condizione obbligatorio"
        )
    return label


class AnamnesisService:
    """Service class for the anamnesis condition list."""

    @staticmethod
    def list_conditions(db: Session) -> List[AnamnesisCondition]:
        """Stored conditions, newest first, as edited by the admin."""
        return db.query(AnamnesisCondition).order_by(
            AnamnesisCondition.created_at.desc(), AnamnesisCondition.id.desc()
        ).all()

    @staticmethod
    def get_conditions(db: Session) -> List[str]:
        """
        Labels offered on the anamnesis, in insertion order.

        Blank and duplicate labels are dropped; the defaults apply when
        nothing usable is stored.
        """
        rows = db.query(AnamnesisCondition).order_by(
            AnamnesisCondition.created_at.asc(), AnamnesisCondition.id.asc()
        ).all()
        labels: List[str] = []
        for row in rows:
            label = (row.label or "").strip()
            if label and label not in labels:
                labels.append(label)
        return labels or list(DEFAULT_ANAMNESIS_CONDITIONS)

    @staticmethod
    def create_condition(db: Session, actor, label: str) -> AnamnesisCondition:
        condition = AnamnesisCondition(label=_clean_label(label))
        db.add(condition)
        db.flush()
        AuditService.log_audit(db, actor, "anamnesis_condition.created", "AnamnesisCondition", condition.id,
                               {"label": condition.label})
        db.commit()
        return condition

    @staticmethod
    def update_condition(db: Session, actor, condition_id: int, label: str) -> AnamnesisCondition:
        label = _clean_label(label)
        condition = AnamnesisService._get(db, condition_id)
        condition.label = label
        AuditService.log_audit(db, actor, "anamnesis_condition.updated", "AnamnesisCondition", condition.id,
                               {"label": label})
        db.commit()
        return condition

    @staticmethod
    def delete_condition(db: Session, actor, condition_id: int) -> None:
        condition = AnamnesisService._get(db, condition_id)
        db.delete(condition)
        AuditService.log_audit(db, actor, "anamnesis_condition.deleted", "AnamnesisCondition", condition_id)
        db.commit()
        logger.info(f"Anamnesis condition {condition_id} deleted")

    @staticmethod
    def _get(db: Session, condition_id: int) -> AnamnesisCondition:
        condition = db.query(AnamnesisCondition).filter(AnamnesisCondition.id == condition_id).first()
        if not condition:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Condizione non valida"
            )
        return condition
