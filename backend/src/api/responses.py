"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
Models are built from ORM objects with `Model.model_validate(obj)`.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.datetime_utils import ensure_local


class OrmResponse(BaseModel):
    """Base for responses read from ORM objects."""
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="before")
    @classmethod
    def localize_datetimes(cls, v: Any) -> Any:
        # SQLite hands back naive wall-clock values
        if isinstance(v, datetime):
            return ensure_local(v)
        return v


class UserResponse(OrmResponse):
    """Response model for a staff or patient account."""
    id: int
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime


class PatientResponse(OrmResponse):
    """Response model for patient information."""
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None  # E.164, e.g. +393331234567
    birth_date: Optional[date] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class PatientListResponse(BaseModel):
    """Response model for listing patients."""
    patients: List[PatientResponse]


class DentalRecordResponse(OrmResponse):
    id: int
    patient_id: int
    tooth_number: int
    procedure: str
    notes: Optional[str] = None
    performed_at: datetime


class ClinicalNoteResponse(OrmResponse):
    id: int
    patient_id: int
    title: str
    content: str
    user_id: Optional[int] = None
    created_at: datetime


class ConsentResponse(OrmResponse):
    id: int
    patient_id: int
    type: str
    status: str
    channel: str
    given_at: datetime
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None


class ConsentModuleResponse(OrmResponse):
    id: int
    name: str
    content: str
    active: bool
    required: bool
    sort_order: int


class PatientConsentResponse(OrmResponse):
    """A consent module signed by a patient."""
    id: int
    patient_id: int
    module_id: int
    signed_at: datetime
    signed_by: Optional[str] = None


class DoctorResponse(OrmResponse):
    id: int
    full_name: str
    specialty: str
    color: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class AvailabilityWindowResponse(OrmResponse):
    """Weekly availability window; minutes are counted from midnight."""
    id: int
    doctor_id: int
    day_of_week: int  # ISO: 1=Monday ... 7=Sunday
    start_minute: int
    end_minute: int
    color: Optional[str] = None


class ClosureResponse(OrmResponse):
    id: int
    type: str
    title: Optional[str] = None
    starts_at: datetime
    ends_at: datetime


class WeeklyClosureResponse(OrmResponse):
    id: int
    day_of_week: int
    title: Optional[str] = None
    is_active: bool


class AppointmentResponse(OrmResponse):
    """Response model for appointment information."""
    id: int
    title: str
    service_type: str
    starts_at: datetime
    ends_at: datetime
    status: str
    notes: Optional[str] = None
    patient_id: int
    doctor_id: Optional[int] = None


class AppointmentWithWarningResponse(BaseModel):
    """Appointment plus the scheduling warning computed on save."""
    appointment: AppointmentResponse
    warning: Optional[str] = None


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]


class SupplierResponse(OrmResponse):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class ProductResponse(OrmResponse):
    id: int
    name: str
    sku: Optional[str] = None
    service_type: Optional[str] = None
    udi_di: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    min_threshold: int
    supplier_id: Optional[int] = None


class StockMovementResponse(OrmResponse):
    id: int
    product_id: int
    movement: str
    quantity: int
    note: Optional[str] = None
    user_id: Optional[int] = None
    patient_id: Optional[int] = None
    udi_pi: Optional[str] = None
    intervention_date: Optional[date] = None
    intervention_site: Optional[str] = None
    purchase_date: Optional[date] = None
    created_at: datetime


class StockLevelResponse(BaseModel):
    product_id: int
    name: str
    sku: Optional[str] = None
    service_type: Optional[str] = None
    supplier: Optional[str] = None
    min_threshold: int
    quantity: int
    below_threshold: bool


class FinanceEntryResponse(OrmResponse):
    id: int
    type: str
    description: str
    amount: Decimal
    occurred_at: datetime
    user_id: Optional[int] = None
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    is_archived: bool


class CashAdvanceResponse(OrmResponse):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    amount: Decimal
    issued_at: datetime
    note: Optional[str] = None


class FinanceSummaryResponse(BaseModel):
    income: Decimal
    expenses: Decimal
    balance: Decimal


class PracticeServiceResponse(OrmResponse):
    id: int
    name: str
    description: Optional[str] = None
    cost_basis: Decimal


class EmailTemplateResponse(OrmResponse):
    id: int
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    subject: str
    body: str
    button_color: Optional[str] = None


class SmsTemplateResponse(OrmResponse):
    id: int
    name: str
    body: str


class SmsLogResponse(OrmResponse):
    id: int
    to: str
    body: str
    status: str
    error: Optional[str] = None
    template_id: Optional[int] = None
    patient_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: datetime


class RecallRuleResponse(OrmResponse):
    id: int
    name: str
    service_type: str
    interval_days: int
    message: Optional[str] = None
    email_subject: Optional[str] = None
    template_name: Optional[str] = None
    channel: str
    enabled: bool


class RecallResponse(OrmResponse):
    id: int
    patient_id: int
    rule_id: int
    due_at: datetime
    status: str
    last_contact_at: Optional[datetime] = None
    notes: Optional[str] = None


class ReminderRuleResponse(OrmResponse):
    id: int
    enabled: bool
    timing_type: str
    days_before: int
    time_of_day_minutes: Optional[int] = None
    channel: str
    template_name: Optional[str] = None
    message: Optional[str] = None
    email_subject: Optional[str] = None


class AppointmentReminderResponse(OrmResponse):
    id: int
    appointment_id: int
    patient_id: int
    rule_id: Optional[int] = None
    due_at: datetime
    status: str
    channel: str
    last_contact_at: Optional[datetime] = None


class RecurringConfigResponse(BaseModel):
    kind: str
    enabled: bool
    subject: str
    body: str
    days_before: Optional[int] = None


class RecurringMessageLogResponse(OrmResponse):
    id: int
    kind: str
    patient_id: int
    scheduled_for: datetime
    event_date: Optional[date] = None
    dedupe_key: str
    status: str
    error: Optional[str] = None
    sent_at: Optional[datetime] = None


class AuditLogResponse(OrmResponse):
    id: int
    user_id: Optional[int] = None
    role: Optional[str] = None
    action: str
    entity: str
    entity_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class AnamnesisConditionResponse(OrmResponse):
    id: int
    label: str
    created_at: datetime


class ErrorReportResponse(OrmResponse):
    """An 'error.reported' audit entry flattened for the error viewer."""
    code: Optional[str] = None
    message: Optional[str] = None
    source: Optional[str] = None
    path: Optional[str] = None
    error_message: Optional[str] = None
    actor: Optional[str] = None
    role: Optional[str] = None
    created_at: datetime
