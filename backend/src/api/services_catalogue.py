# pyright: reportMissingTypeStubs=false
"""
Services catalogue API endpoints (the treatments the practice offers).
"""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_staff
from services.service_management_service import ServiceManagementService
from api.responses import PracticeServiceResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class PracticeServiceRequest(BaseModel):
    """cost_basis accepts a comma as decimal separator, e.g. "80,50"."""
    name: str
    cost_basis: Optional[Decimal | str] = None
    description: Optional[str] = None


@router.get("", summary="List services")
async def list_services(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[PracticeServiceResponse]:
    return [PracticeServiceResponse.model_validate(s) for s in ServiceManagementService.list_services(db)]


@router.post("", summary="Create a service", status_code=status.HTTP_201_CREATED)
async def create_service(
    request: PracticeServiceRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> PracticeServiceResponse:
    service = ServiceManagementService.create_service(db, current_user, **request.model_dump())
    return PracticeServiceResponse.model_validate(service)


@router.put("/{service_id}", summary="Update a service")
async def update_service(
    service_id: int,
    request: PracticeServiceRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> PracticeServiceResponse:
    service = ServiceManagementService.update_service(db, current_user, service_id, **request.model_dump())
    return PracticeServiceResponse.model_validate(service)


@router.delete("/{service_id}", summary="Delete a service", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    ServiceManagementService.delete_service(db, current_user, service_id)
