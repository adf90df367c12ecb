# pyright: reportMissingTypeStubs=false
"""
Finance API endpoints: income, expenses, cash advances and the summary.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin_or_manager
from auth.permissions import require_feature
from services import FinanceService
from utils.datetime_utils import ensure_local
from api.responses import CashAdvanceResponse, FinanceEntryResponse, FinanceSummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("finance"))])


class IncomeRequest(BaseModel):
    """Payment for a treatment already in the patient's dental record."""
    patient_id: Optional[int] = None
    dental_record_id: Optional[int] = None
    amount: Optional[Decimal | str] = None
    delivered_at: Optional[datetime] = None
    partial: bool = False


class ExpenseRequest(BaseModel):
    """kind is material|service, payment is cash|electronic."""
    description: Optional[str] = None
    amount: Optional[Decimal | str] = None
    purchase_date: Optional[datetime] = None
    kind: str = "service"
    payment: str = "electronic"
    supplier_id: Optional[int] = None
    product_id: Optional[int] = None
    note: Optional[str] = None


class CashAdvanceRequest(BaseModel):
    patient_id: Optional[int] = None
    amount: Optional[Decimal | str] = None
    issued_at: Optional[datetime] = None
    note: Optional[str] = None
    doctor_id: Optional[int] = None


class ArchiveRequest(BaseModel):
    archived: bool = True


@router.get("/entries", summary="List finance entries")
async def list_entries(
    entry_type: Optional[str] = Query(None, alias="type"),
    archived: bool = Query(False),
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> List[FinanceEntryResponse]:
    entries = FinanceService.list_entries(db, entry_type, archived, ensure_local(from_), ensure_local(to))
    return [FinanceEntryResponse.model_validate(e) for e in entries]


@router.post("/income", summary="Record a patient payment", status_code=status.HTTP_201_CREATED)
async def record_income(
    request: IncomeRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> FinanceEntryResponse:
    entry = FinanceService.record_income(db, current_user, **request.model_dump())
    return FinanceEntryResponse.model_validate(entry)


@router.post("/expenses", summary="Record an expense", status_code=status.HTTP_201_CREATED)
async def record_expense(
    request: ExpenseRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> FinanceEntryResponse:
    entry = FinanceService.record_expense(db, current_user, **request.model_dump())
    return FinanceEntryResponse.model_validate(entry)


@router.put("/entries/{entry_id}/archive", summary="Archive or restore an entry")
async def archive_entry(
    entry_id: int,
    request: ArchiveRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> FinanceEntryResponse:
    entry = FinanceService.archive_entry(db, current_user, entry_id, request.archived)
    return FinanceEntryResponse.model_validate(entry)


@router.get("/cash-advances", summary="List cash advances")
async def list_cash_advances(
    patient_id: Optional[int] = Query(None),
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> List[CashAdvanceResponse]:
    return [CashAdvanceResponse.model_validate(a) for a in FinanceService.list_cash_advances(db, patient_id)]


@router.post("/cash-advances", summary="Record a cash advance", status_code=status.HTTP_201_CREATED)
async def create_cash_advance(
    request: CashAdvanceRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> CashAdvanceResponse:
    advance = FinanceService.create_cash_advance(db, current_user, **request.model_dump())
    return CashAdvanceResponse.model_validate(advance)


@router.get("/summary", summary="Income, expenses and balance")
async def summary(
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> FinanceSummaryResponse:
    return FinanceSummaryResponse(**FinanceService.summary(db, ensure_local(from_), ensure_local(to)))
