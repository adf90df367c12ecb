# pyright: reportMissingTypeStubs=false
"""
Doctor and availability window API endpoints.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_admin_or_manager, require_staff
from services import AvailabilityWindowService, DoctorService
from api.responses import AvailabilityWindowResponse, DoctorResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class DoctorCreateRequest(BaseModel):
    """The full name is built from name and last name."""
    name: str
    last_name: Optional[str] = None
    specialty: Optional[str] = None
    color: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class DoctorUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    specialty: Optional[str] = None
    color: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class AvailabilityWindowRequest(BaseModel):
    """Times are HH:MM strings, day_of_week is ISO (1=Monday)."""
    doctor_id: int
    day_of_week: int
    start_time: str
    end_time: str
    color: Optional[str] = None


# ===== Doctors =====

@router.get("", summary="List doctors")
async def list_doctors(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[DoctorResponse]:
    return [DoctorResponse.model_validate(d) for d in DoctorService.list_doctors(db)]


@router.post("", summary="Create a doctor", status_code=status.HTTP_201_CREATED)
async def create_doctor(
    request: DoctorCreateRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> DoctorResponse:
    doctor = DoctorService.create_doctor(db, current_user, **request.model_dump())
    return DoctorResponse.model_validate(doctor)


# Declared before /{doctor_id} so the path is not read as an id
@router.get("/availability", summary="List availability windows")
async def list_windows(
    doctor_id: Optional[int] = Query(None),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[AvailabilityWindowResponse]:
    windows = AvailabilityWindowService.list_windows(db, doctor_id)
    return [AvailabilityWindowResponse.model_validate(w) for w in windows]


@router.post("/availability", summary="Create an availability window", status_code=status.HTTP_201_CREATED)
async def create_window(
    request: AvailabilityWindowRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> AvailabilityWindowResponse:
    window = AvailabilityWindowService.create_window(db, current_user, **request.model_dump())
    return AvailabilityWindowResponse.model_validate(window)


@router.put("/availability/{window_id}", summary="Update an availability window")
async def update_window(
    window_id: int,
    request: AvailabilityWindowRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> AvailabilityWindowResponse:
    window = AvailabilityWindowService.update_window(db, current_user, window_id, **request.model_dump())
    return AvailabilityWindowResponse.model_validate(window)


@router.delete("/availability/{window_id}", summary="Delete an availability window", status_code=status.HTTP_204_NO_CONTENT)
async def delete_window(
    window_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    AvailabilityWindowService.delete_window(db, current_user, window_id)


@router.get("/{doctor_id}", summary="Get a doctor")
async def get_doctor(
    doctor_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> DoctorResponse:
    return DoctorResponse.model_validate(DoctorService.get_doctor(db, doctor_id))


@router.put("/{doctor_id}", summary="Update a doctor")
async def update_doctor(
    doctor_id: int,
    request: DoctorUpdateRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> DoctorResponse:
    doctor = DoctorService.update_doctor(db, current_user, doctor_id, **request.model_dump())
    return DoctorResponse.model_validate(doctor)


@router.delete("/{doctor_id}", summary="Delete a doctor", status_code=status.HTTP_204_NO_CONTENT)
async def delete_doctor(
    doctor_id: int,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> None:
    DoctorService.delete_doctor(db, current_user, doctor_id)
