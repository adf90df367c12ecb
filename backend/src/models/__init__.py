# Package initialization
# Import all models to ensure relationships are properly established
from .user import User
from .role_feature_access import RoleFeatureAccess
from .audit_log import AuditLog
from .patient import Patient
from .consent import Consent, ConsentModule, PatientConsent
from .doctor import Doctor, DoctorAvailabilityWindow
from .practice_closure import PracticeClosure, PracticeWeeklyClosure
from .appointment import Appointment
from .dental_record import DentalRecord, ClinicalNote
from .inventory import Supplier, Product, StockMovement
from .finance import FinanceEntry, CashAdvance
from .practice_service import PracticeService
from .email_template import EmailTemplate, SmsTemplate
from .sms_log import SmsLog
from .recall import RecallRule, Recall, AppointmentReminderRule, AppointmentReminder
from .recurring_message import RecurringMessageConfig, RecurringMessageLog
from .sms_provider_config import SmsProviderConfig
from .anamnesis_condition import AnamnesisCondition

__all__ = [
    "User",
    "RoleFeatureAccess",
    "AuditLog",
    "Patient",
    "Consent",
    "ConsentModule",
    "PatientConsent",
    "Doctor",
    "DoctorAvailabilityWindow",
    "PracticeClosure",
    "PracticeWeeklyClosure",
    "Appointment",
    "DentalRecord",
    "ClinicalNote",
    "Supplier",
    "Product",
    "StockMovement",
    "FinanceEntry",
    "CashAdvance",
    "PracticeService",
    "EmailTemplate",
    "SmsTemplate",
    "SmsLog",
    "RecallRule",
    "Recall",
    "AppointmentReminderRule",
    "AppointmentReminder",
    "RecurringMessageConfig",
    "RecurringMessageLog",
    "SmsProviderConfig",
    "AnamnesisCondition",
]
