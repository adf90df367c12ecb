# pyright: reportMissingTypeStubs=false
"""
Email and SMS template API endpoints, plus SMS sending and its log.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_staff
from auth.permissions import require_feature
from services.sms_service import SmsService
from services.template_service import EmailTemplateService, SmsTemplateService
from utils.phone_validator import normalize_italian_phone
from api.responses import (
    EmailTemplateResponse,
    SmsLogResponse,
    SmsTemplateResponse,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("communications"))])


class EmailTemplateUpdateRequest(BaseModel):
    subject: str
    body: str
    button_color: Optional[str] = None


class TestEmailRequest(BaseModel):
    """Unsaved subject/body/colour let the editor preview changes."""
    to: str
    template_name: str
    subject: Optional[str] = None
    body: Optional[str] = None
    button_color: Optional[str] = None


class SmsTemplateRequest(BaseModel):
    name: str
    body: str


class SendSmsRequest(BaseModel):
    to: str
    body: str
    template_id: Optional[int] = None
    patient_id: Optional[int] = None


# ===== Email templates =====

@router.get("/email", summary="List email templates")
async def list_email_templates(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[EmailTemplateResponse]:
    return [EmailTemplateResponse.model_validate(t) for t in EmailTemplateService.list_templates(db)]


@router.put("/email/{name}", summary="Update an email template")
async def update_email_template(
    name: str,
    request: EmailTemplateUpdateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> EmailTemplateResponse:
    template = EmailTemplateService.update_template(
        db, current_user, name,
        subject=request.subject,
        body=request.body,
        button_color=request.button_color,
    )
    return EmailTemplateResponse.model_validate(template)


@router.post("/email/test", summary="Send a test email")
async def send_test_email(
    request: TestEmailRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> SuccessResponse:
    EmailTemplateService.send_test_email(
        db, request.to.strip(), request.template_name,
        subject=request.subject,
        body=request.body,
        button_color=request.button_color,
    )
    logger.info(f"Test email '{request.template_name}' sent by user {current_user.user_id}")
    return SuccessResponse(message="Email di prova inviata.")


# ===== SMS =====

@router.get("/sms", summary="List SMS templates")
async def list_sms_templates(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[SmsTemplateResponse]:
    return [SmsTemplateResponse.model_validate(t) for t in SmsTemplateService.list_templates(db)]


@router.post("/sms", summary="Create an SMS template", status_code=status.HTTP_201_CREATED)
async def create_sms_template(
    request: SmsTemplateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> SmsTemplateResponse:
    template = SmsTemplateService.create_template(db, current_user, request.name, request.body)
    return SmsTemplateResponse.model_validate(template)


@router.delete("/sms/{template_id}", summary="Delete an SMS template", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sms_template(
    template_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    SmsTemplateService.delete_template(db, current_user, template_id)


@router.post("/sms/send", summary="Send an SMS")
async def send_sms(
    request: SendSmsRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> SuccessResponse:
    sms_status = SmsService.send_sms(
        db,
        normalize_italian_phone(request.to),
        request.body,
        template_id=request.template_id,
        patient_id=request.patient_id,
        user_id=current_user.user_id,
    )
    return SuccessResponse(message=sms_status)


@router.get("/sms-logs", summary="List sent SMS")
async def list_sms_logs(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[SmsLogResponse]:
    return [SmsLogResponse.model_validate(log) for log in SmsService.list_logs(db)]
