"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across multiple API endpoints and the background scheduler.
"""

from .patient_service import PatientService
from .appointment_service import AppointmentService
from .doctor_service import DoctorService, AvailabilityWindowService
from .closure_service import ClosureService
from .consent_service import ConsentService, ConsentModuleService
from .inventory_service import InventoryService
from .finance_service import FinanceService
from .recall_service import RecallService
from .recurring_message_service import RecurringMessageService
from .notification_service import NotificationService

__all__ = [
    "PatientService",
    "AppointmentService",
    "DoctorService",
    "AvailabilityWindowService",
    "ClosureService",
    "ConsentService",
    "ConsentModuleService",
    "InventoryService",
    "FinanceService",
    "RecallService",
    "RecurringMessageService",
    "NotificationService",
]
