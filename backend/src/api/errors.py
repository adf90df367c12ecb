# pyright: reportMissingTypeStubs=false
"""
Error report endpoint.

Open to anonymous callers so the login page can report too; a signed-in
user is recorded as the actor.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, get_optional_user
from services.error_report_service import ErrorReportService

logger = logging.getLogger(__name__)

router = APIRouter()


class ErrorReportRequest(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None
    source: Optional[str] = None
    path: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    error: Optional[Any] = None


@router.post("/report", summary="Report an error and get its support code")
async def report_error(
    request: ErrorReportRequest,
    current_user: Optional[UserContext] = Depends(get_optional_user),
    db: Session = Depends(get_db)
) -> JSONResponse:
    code = ErrorReportService.report_error(
        db, current_user,
        message=request.message,
        code=request.code,
        source=request.source or "client",
        path=request.path,
        context=request.context,
        error=request.error,
    )
    return JSONResponse(content={"code": code}, headers={"x-error-code": code})
