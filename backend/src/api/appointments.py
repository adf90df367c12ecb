# pyright: reportMissingTypeStubs=false
"""
Appointment API endpoints.

Create and update return the appointment together with a scheduling
warning (doctor unavailable or practice closed). The warning never blocks
the save; the caller decides whether to keep the appointment.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_staff
from auth.permissions import require_feature
from services import AppointmentService
from services.scheduling_warnings import load_scheduling_warning
from utils.datetime_utils import ensure_local
from api.responses import (
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentWithWarningResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("agenda"))])


class AppointmentCreateRequest(BaseModel):
    patient_id: int
    title: str
    service_type: str
    starts_at: datetime
    ends_at: datetime
    doctor_id: Optional[int] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class AppointmentUpdateRequest(BaseModel):
    """Only the fields sent are updated; doctor_id null unassigns the doctor."""
    patient_id: Optional[int] = None
    title: Optional[str] = None
    service_type: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    doctor_id: Optional[int] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class AppointmentStatusRequest(BaseModel):
    status: str


class SchedulingWarningResponse(BaseModel):
    warning: Optional[str] = None


def _with_warning(result: Dict[str, Any]) -> AppointmentWithWarningResponse:
    return AppointmentWithWarningResponse(
        appointment=AppointmentResponse.model_validate(result["appointment"]),
        warning=result["warning"],
    )


@router.get("", summary="List appointments")
async def list_appointments(
    doctor_id: Optional[int] = Query(None),
    patient_id: Optional[int] = Query(None),
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> AppointmentListResponse:
    appointments = AppointmentService.list_appointments(
        db,
        doctor_id=doctor_id,
        range_start=ensure_local(from_),
        range_end=ensure_local(to),
        status_filter=status_filter,
        patient_id=patient_id,
    )
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments]
    )


@router.get("/check-conflict", summary="Check a doctor's overlapping appointments")
async def check_conflict(
    doctor_id: Optional[int] = Query(None, alias="doctorId"),
    starts_at: Optional[str] = Query(None, alias="startsAt"),
    ends_at: Optional[str] = Query(None, alias="endsAt"),
    exclude_id: Optional[int] = Query(None, alias="excludeId"),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Answer whether the doctor already has appointments in the range.

    Missing or malformed input yields `conflict: false` with a message
    rather than an error.
    """
    return AppointmentService.check_conflict(db, doctor_id, starts_at, ends_at, exclude_id)


@router.get("/scheduling-warning", summary="Preview the scheduling warning for a range")
async def scheduling_warning(
    starts_at: Optional[str] = Query(None, alias="startsAt"),
    ends_at: Optional[str] = Query(None, alias="endsAt"),
    doctor_id: Optional[int] = Query(None, alias="doctorId"),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> SchedulingWarningResponse:
    return SchedulingWarningResponse(warning=load_scheduling_warning(db, starts_at, ends_at, doctor_id))


@router.post("", summary="Create an appointment", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: AppointmentCreateRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> AppointmentWithWarningResponse:
    result = AppointmentService.create_appointment(
        db, current_user,
        patient_id=request.patient_id,
        title=request.title,
        service_type=request.service_type,
        starts_at=request.starts_at,
        ends_at=request.ends_at,
        doctor_id=request.doctor_id,
        notes=request.notes,
        appointment_status=request.status,
    )
    return _with_warning(result)


@router.get("/{appointment_id}", summary="Get an appointment")
async def get_appointment(
    appointment_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    return AppointmentResponse.model_validate(AppointmentService.get_appointment(db, appointment_id))


@router.put("/{appointment_id}", summary="Update an appointment")
async def update_appointment(
    appointment_id: int,
    request: AppointmentUpdateRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> AppointmentWithWarningResponse:
    result = AppointmentService.update_appointment(
        db, current_user, appointment_id, request.model_dump(exclude_unset=True)
    )
    return _with_warning(result)


@router.put("/{appointment_id}/status", summary="Change the status of an appointment")
async def update_appointment_status(
    appointment_id: int,
    request: AppointmentStatusRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    appointment = AppointmentService.update_status(db, current_user, appointment_id, request.status)
    return AppointmentResponse.model_validate(appointment)


@router.delete("/{appointment_id}", summary="Delete an appointment", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> None:
    AppointmentService.delete_appointment(db, current_user, appointment_id)
