# pyright: reportMissingTypeStubs=false
"""
Patient Management API endpoints.

Patients, their dental chart, clinical notes, consents and signed consent
modules, plus the GDPR export of a single patient.
"""

import logging
from datetime import date as date_type
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_admin_or_manager, require_staff
from auth.permissions import require_feature
from services import ConsentModuleService, ConsentService, PatientService
from services.anamnesis_service import AnamnesisService
from services.audit_service import AuditService
from services.gdpr_service import GdprService
from api.responses import (
    ClinicalNoteResponse,
    ConsentResponse,
    DentalRecordResponse,
    PatientConsentResponse,
    PatientListResponse,
    PatientResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("patients"))])


class PatientCreateRequest(BaseModel):
    """Request model for creating a patient."""
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[date_type] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None


class PatientUpdateRequest(BaseModel):
    """Only the fields sent are updated; an explicit null clears a field."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[date_type] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None


class DentalRecordRequest(BaseModel):
    tooth_number: int
    procedure: str
    notes: Optional[str] = None
    performed_at: Optional[datetime] = None


class ClinicalNoteRequest(BaseModel):
    title: str
    content: str


class ConsentCreateRequest(BaseModel):
    type: str
    channel: Optional[str] = None
    expires_at: Optional[datetime] = None


class ConsentSignRequest(BaseModel):
    module_id: int
    signed_by: Optional[str] = None


# ===== Patients =====

@router.get("", summary="List patients")
async def list_patients(
    q: Optional[str] = Query(None, description="Search by name, email or phone"),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> PatientListResponse:
    patients = PatientService.list_patients(db, q)
    return PatientListResponse(patients=[PatientResponse.model_validate(p) for p in patients])


@router.get("/anamnesis-conditions", summary="Conditions offered on the anamnesis checklist")
async def list_anamnesis_conditions(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[str]:
    return AnamnesisService.get_conditions(db)


@router.post("", summary="Create a patient", status_code=status.HTTP_201_CREATED)
async def create_patient(
    request: PatientCreateRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> PatientResponse:
    patient = PatientService.create_patient(db, current_user, **request.model_dump())
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}", summary="Get a patient")
async def get_patient(
    patient_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> PatientResponse:
    return PatientResponse.model_validate(PatientService.get_patient(db, patient_id))


@router.put("/{patient_id}", summary="Update a patient")
async def update_patient(
    patient_id: int,
    request: PatientUpdateRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> PatientResponse:
    patient = PatientService.update_patient(db, current_user, patient_id, request.model_dump(exclude_unset=True))
    return PatientResponse.model_validate(patient)


@router.delete("/{patient_id}", summary="Delete a patient and all related data", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    PatientService.delete_patient(db, current_user, patient_id)


@router.get("/{patient_id}/export", summary="Export all data of a patient (GDPR)")
async def export_patient(
    patient_id: int,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> JSONResponse:
    """
    Download everything stored about a patient as a JSON attachment.

    The export is recorded in the audit log as 'gdpr.exported'.
    """
    export = GdprService(db).build_patient_export(patient_id)
    AuditService.log_audit(db, current_user, "gdpr.exported", "Patient", patient_id)
    db.commit()
    return JSONResponse(
        content=export,
        headers={"Content-Disposition": f'attachment; filename="paziente-{patient_id}-export.json"'},
    )


# ===== Dental records =====

@router.get("/{patient_id}/dental-records", summary="List dental records")
async def list_dental_records(
    patient_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[DentalRecordResponse]:
    PatientService.get_patient(db, patient_id)
    return [DentalRecordResponse.model_validate(r) for r in PatientService.list_dental_records(db, patient_id)]


@router.put("/{patient_id}/dental-records", summary="Create or update the record of a tooth")
async def upsert_dental_record(
    patient_id: int,
    request: DentalRecordRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> DentalRecordResponse:
    record = PatientService.upsert_dental_record(
        db, current_user, patient_id,
        tooth_number=request.tooth_number,
        procedure=request.procedure,
        notes=request.notes,
        performed_at=request.performed_at,
    )
    return DentalRecordResponse.model_validate(record)


@router.delete("/{patient_id}/dental-records/{record_id}", summary="Delete a dental record", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dental_record(
    patient_id: int,
    record_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> None:
    PatientService.delete_dental_record(db, current_user, patient_id, record_id)


# ===== Clinical notes =====

@router.get("/{patient_id}/notes", summary="List clinical notes")
async def list_clinical_notes(
    patient_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[ClinicalNoteResponse]:
    PatientService.get_patient(db, patient_id)
    return [ClinicalNoteResponse.model_validate(n) for n in PatientService.list_clinical_notes(db, patient_id)]


@router.post("/{patient_id}/notes", summary="Add a clinical note", status_code=status.HTTP_201_CREATED)
async def add_clinical_note(
    patient_id: int,
    request: ClinicalNoteRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> ClinicalNoteResponse:
    note = PatientService.add_clinical_note(db, current_user, patient_id, request.title, request.content)
    return ClinicalNoteResponse.model_validate(note)


@router.delete("/{patient_id}/notes/{note_id}", summary="Delete a clinical note", status_code=status.HTTP_204_NO_CONTENT)
async def delete_clinical_note(
    patient_id: int,
    note_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> None:
    PatientService.delete_clinical_note(db, current_user, patient_id, note_id)


# ===== Consents =====

@router.get("/{patient_id}/consents", summary="List consents")
async def list_consents(
    patient_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[ConsentResponse]:
    return [ConsentResponse.model_validate(c) for c in ConsentService.list_consents(db, patient_id)]


@router.post("/{patient_id}/consents", summary="Record a consent", status_code=status.HTTP_201_CREATED)
async def add_consent(
    patient_id: int,
    request: ConsentCreateRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> ConsentResponse:
    consent = ConsentService.add_consent(
        db, current_user, patient_id,
        consent_type=request.type,
        channel=request.channel,
        expires_at=request.expires_at,
    )
    return ConsentResponse.model_validate(consent)


@router.post("/{patient_id}/consents/{consent_id}/revoke", summary="Revoke a consent")
async def revoke_consent(
    patient_id: int,
    consent_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> ConsentResponse:
    consent = ConsentService.revoke_consent(db, current_user, patient_id, consent_id)
    return ConsentResponse.model_validate(consent)


@router.get("/{patient_id}/consent-modules", summary="List consent modules signed by the patient")
async def list_signed_modules(
    patient_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[PatientConsentResponse]:
    PatientService.get_patient(db, patient_id)
    return [PatientConsentResponse.model_validate(s) for s in ConsentModuleService.list_signed(db, patient_id)]


@router.post("/{patient_id}/consent-modules", summary="Sign a consent module", status_code=status.HTTP_201_CREATED)
async def sign_consent_module(
    patient_id: int,
    request: ConsentSignRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> PatientConsentResponse:
    signature = ConsentModuleService.sign_module(
        db, current_user, patient_id, request.module_id, signed_by=request.signed_by
    )
    return PatientConsentResponse.model_validate(signature)
