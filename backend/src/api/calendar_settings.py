# pyright: reportMissingTypeStubs=false
"""
Calendar settings API endpoints: practice closures and weekly closing days.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_staff
from auth.permissions import require_feature
from services import ClosureService
from utils.datetime_utils import ensure_local
from api.responses import ClosureResponse, WeeklyClosureResponse

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("calendar"))])


class ClosureRequest(BaseModel):
    """Type is HOLIDAY or TIME_OFF."""
    starts_at: datetime
    ends_at: datetime
    type: str = "HOLIDAY"
    title: Optional[str] = None


class WeeklyClosureDay(BaseModel):
    day_of_week: int
    enabled: bool
    title: Optional[str] = None


class WeeklyClosuresRequest(BaseModel):
    days: List[WeeklyClosureDay]


@router.get("/closures", summary="List practice closures")
async def list_closures(
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[ClosureResponse]:
    closures = ClosureService.list_closures(db, ensure_local(from_), ensure_local(to))
    return [ClosureResponse.model_validate(c) for c in closures]


@router.post("/closures", summary="Create a practice closure", status_code=status.HTTP_201_CREATED)
async def create_closure(
    request: ClosureRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ClosureResponse:
    closure = ClosureService.create_closure(
        db, current_user,
        starts_at=request.starts_at,
        ends_at=request.ends_at,
        closure_type=request.type,
        title=request.title,
    )
    return ClosureResponse.model_validate(closure)


@router.put("/closures/{closure_id}", summary="Update a practice closure")
async def update_closure(
    closure_id: int,
    request: ClosureRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ClosureResponse:
    closure = ClosureService.update_closure(
        db, current_user, closure_id,
        starts_at=request.starts_at,
        ends_at=request.ends_at,
        closure_type=request.type,
        title=request.title,
    )
    return ClosureResponse.model_validate(closure)


@router.delete("/closures/{closure_id}", summary="Delete a practice closure", status_code=status.HTTP_204_NO_CONTENT)
async def delete_closure(
    closure_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    ClosureService.delete_closure(db, current_user, closure_id)


@router.get("/weekly-closures", summary="List weekly closing days")
async def list_weekly_closures(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[WeeklyClosureResponse]:
    return [WeeklyClosureResponse.model_validate(c) for c in ClosureService.list_weekly_closures(db)]


@router.put("/weekly-closures", summary="Save weekly closing days")
async def save_weekly_closures(
    request: WeeklyClosuresRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[WeeklyClosureResponse]:
    closures = ClosureService.save_weekly_closures(db, current_user, [d.model_dump() for d in request.days])
    return [WeeklyClosureResponse.model_validate(c) for c in closures]
