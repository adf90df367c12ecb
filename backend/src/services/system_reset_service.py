"""
Danger zone: wipe the practice data.
"""

import logging
from typing import Dict

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import (
    Appointment, AppointmentReminder, AuditLog, CashAdvance, ClinicalNote, Consent, ConsentModule,
    DentalRecord, Doctor, DoctorAvailabilityWindow, FinanceEntry, Patient, PatientConsent, Product,
    Recall, RecallRule, RecurringMessageLog, SmsLog, SmsProviderConfig, SmsTemplate, StockMovement,
    Supplier, User,
)
from services.audit_service import AuditService

logger = logging.getLogger(__name__)

RESET_CONFIRMATION = "Si, confermo"

# Children before parents so foreign keys never dangle mid-way
RESET_MODELS = [
    ("sms_logs", SmsLog),
    ("sms_templates", SmsTemplate),
    ("sms_provider_configs", SmsProviderConfig),
    ("audit_logs", AuditLog),
    ("stock_movements", StockMovement),
    ("finance_entries", FinanceEntry),
    ("cash_advances", CashAdvance),
    ("dental_records", DentalRecord),
    ("appointment_reminders", AppointmentReminder),
    ("appointments", Appointment),
    ("clinical_notes", ClinicalNote),
    ("patient_consents", PatientConsent),
    ("consents", Consent),
    ("recurring_message_logs", RecurringMessageLog),
    ("recalls", Recall),
    ("recall_rules", RecallRule),
    ("patients", Patient),
    ("consent_modules", ConsentModule),
    ("doctor_availability_windows", DoctorAvailabilityWindow),
    ("doctors", Doctor),
    ("products", Product),
    ("suppliers", Supplier),
]


class SystemResetService:
    """Service class for the full data wipe."""

    @staticmethod
    def reset_system(db: Session, actor, confirmation: str) -> Dict[str, int]:
        """
        Delete all patient, clinical, agenda, inventory, finance and messaging
        data, and every user except the acting admin.

        Practice configuration (email templates, closures, reminder rules,
        recurring message texts, services catalogue, feature access and the
        anamnesis list) is kept.

        Returns:
            Number of deleted rows per table

        Raises:
            HTTPException: 400 when the confirmation phrase does not match
        """
        if (confirmation or "").strip() != RESET_CONFIRMATION:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Devi digitare '{RESET_CONFIRMATION}' per procedere."
            )

        deleted: Dict[str, int] = {}
        for table, model in RESET_MODELS:
            deleted[table] = db.query(model).delete(synchronize_session=False)
        deleted["users"] = db.query(User).filter(User.id != actor.user_id).delete(synchronize_session=False)
        db.expire_all()

        AuditService.log_audit(db, actor, "admin.reset_system", "System", "reset", deleted)
        db.commit()
        logger.warning(f"System reset by user {actor.user_id}: {deleted}")
        return deleted
