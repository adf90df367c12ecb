"""
GDPR service: retention cleanup and data exports.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.constants import GDPR_RETENTION_DAYS
from models import (
    AnamnesisCondition, Appointment, AppointmentReminder, AuditLog, CashAdvance, ClinicalNote, Consent,
    DentalRecord, Doctor, FinanceEntry, Patient, PatientConsent, Product, Recall, RecallRule,
    RecurringMessageLog, SmsLog, SmsProviderConfig, SmsTemplate, StockMovement, Supplier, User,
)
from utils.datetime_utils import ensure_local, practice_now
from utils.dict_utils import model_to_dict, models_to_list

logger = logging.getLogger(__name__)

RETENTION_MODELS = {
    "audit_logs": AuditLog,
    "sms_logs": SmsLog,
    "recurring_message_logs": RecurringMessageLog,
    "appointment_reminders": AppointmentReminder,
}

# Tables available to the full export, with their models
EXPORT_TABLES: Dict[str, Any] = {
    "users": User,
    "doctors": Doctor,
    "patients": Patient,
    "consents": Consent,
    "appointments": Appointment,
    "clinical_notes": ClinicalNote,
    "sms_templates": SmsTemplate,
    "sms_logs": SmsLog,
    "sms_provider_configs": SmsProviderConfig,
    "audit_logs": AuditLog,
    "suppliers": Supplier,
    "products": Product,
    "stock_movements": StockMovement,
    "finance_entries": FinanceEntry,
    "cash_advances": CashAdvance,
    "recall_rules": RecallRule,
    "recalls": Recall,
    "anamnesis_conditions": AnamnesisCondition,
}

# Never exported
SENSITIVE_COLUMNS = {"password_hash", "api_key"}


class GdprService:
    def __init__(self, db: Session):
        self.db = db

    def apply_retention_cleanup(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Delete log rows older than their retention period.

        Returns the number of deleted rows per table.
        """
        now = ensure_local(now) or practice_now()
        deleted: Dict[str, int] = {}
        for table, model in RETENTION_MODELS.items():
            cutoff = now - timedelta(days=GDPR_RETENTION_DAYS[table])
            deleted[table] = self.db.query(model).filter(
                model.created_at < cutoff
            ).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Retention cleanup deleted: {deleted}")
        return deleted

    def build_patient_export(self, patient_id: int) -> Dict[str, Any]:
        """Everything stored about one patient, as JSON-ready dicts."""
        patient = self.db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Paziente non trovato"
            )

        def rows(model: Any, order_by: Any) -> List[Dict[str, Any]]:
            return models_to_list(
                self.db.query(model).filter(model.patient_id == patient_id).order_by(order_by.desc()).all()
            )

        signed_modules = []
        for signature in self.db.query(PatientConsent).filter(
            PatientConsent.patient_id == patient_id
        ).order_by(PatientConsent.signed_at.desc()).all():
            item = model_to_dict(signature)
            item["module"] = model_to_dict(signature.module) if signature.module else None
            signed_modules.append(item)

        return {
            "exported_at": practice_now().isoformat(),
            "patient_id": patient_id,
            "data": {
                "patient": model_to_dict(patient),
                "consents": rows(Consent, Consent.given_at),
                "signed_modules": signed_modules,
                "appointments": rows(Appointment, Appointment.starts_at),
                "appointment_reminders": rows(AppointmentReminder, AppointmentReminder.due_at),
                "clinical_notes": rows(ClinicalNote, ClinicalNote.created_at),
                "dental_records": rows(DentalRecord, DentalRecord.performed_at),
                "recalls": rows(Recall, Recall.due_at),
                "recurring_message_logs": rows(RecurringMessageLog, RecurringMessageLog.scheduled_for),
                "stock_movements": rows(StockMovement, StockMovement.created_at),
                "sms_logs": rows(SmsLog, SmsLog.created_at),
                "cash_advances": rows(CashAdvance, CashAdvance.issued_at),
            },
        }

    def build_full_export(self, tables: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Export the selected tables (all when none are given).

        Raises:
            HTTPException: 400 if any requested table is unknown
        """
        requested = [t for t in (tables or []) if t]
        unknown = [t for t in requested if t not in EXPORT_TABLES]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Tabelle non valide: {', '.join(unknown)}"
            )
        selected = requested or list(EXPORT_TABLES.keys())

        data: Dict[str, Any] = {}
        for table in selected:
            model = EXPORT_TABLES[table]
            data[table] = models_to_list(
                self.db.query(model).order_by(model.id).all(),
                exclude=SENSITIVE_COLUMNS,
            )
        return {
            "exported_at": practice_now().isoformat(),
            "tables": selected,
            "data": data,
        }


def run_retention_job(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    return GdprService(db).apply_retention_cleanup(now)
