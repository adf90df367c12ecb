# pyright: reportMissingTypeStubs=false
"""
Consent module API endpoints.

Staff can read the modules to show them to patients; only admins edit them.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_staff
from services import ConsentModuleService
from api.responses import ConsentModuleResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class ConsentModuleRequest(BaseModel):
    name: str
    content: str
    active: bool = True
    required: bool = False
    sort_order: int = 0


@router.get("", summary="List consent modules")
async def list_modules(
    active_only: bool = Query(False),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[ConsentModuleResponse]:
    modules = ConsentModuleService.list_modules(db, active_only=active_only)
    return [ConsentModuleResponse.model_validate(m) for m in modules]


@router.post("", summary="Create a consent module", status_code=status.HTTP_201_CREATED)
async def create_module(
    request: ConsentModuleRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ConsentModuleResponse:
    module = ConsentModuleService.save_module(db, current_user, **request.model_dump())
    return ConsentModuleResponse.model_validate(module)


@router.put("/{module_id}", summary="Update a consent module")
async def update_module(
    module_id: int,
    request: ConsentModuleRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ConsentModuleResponse:
    module = ConsentModuleService.save_module(db, current_user, module_id=module_id, **request.model_dump())
    return ConsentModuleResponse.model_validate(module)


@router.delete("/{module_id}", summary="Delete a consent module and its signatures", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module(
    module_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    ConsentModuleService.delete_module(db, current_user, module_id)
