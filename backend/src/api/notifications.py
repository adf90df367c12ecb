# pyright: reportMissingTypeStubs=false
"""
Notification API endpoints: recurring message settings and logs, manual
notifications, and the cron-triggered recurring dispatch (`jobs_router`).
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin, require_cron_secret, require_staff
from auth.permissions import require_feature
from services import NotificationService, RecurringMessageService
from services.recurring_message_service import TEMPLATE_TOKENS
from utils.datetime_utils import practice_now
from api.responses import RecurringConfigResponse, RecurringMessageLogResponse

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("communications"))])
jobs_router = APIRouter()


class RecurringConfigRequest(BaseModel):
    subject: str
    body: str
    enabled: bool = True
    days_before: Optional[int] = None


class RecurringConfigListResponse(BaseModel):
    configs: List[RecurringConfigResponse]
    tokens: List[str]


class ManualNotificationRequest(BaseModel):
    """
    type 'appointment' needs appointment_id; type 'event' needs patient_id,
    event_title and event_at. Channel is EMAIL, SMS or BOTH.
    """
    type: str = "appointment"
    channel: str = "EMAIL"
    appointment_id: Optional[int] = None
    patient_id: Optional[int] = None
    event_title: Optional[str] = None
    event_at: Optional[datetime] = None
    message: Optional[str] = None
    email_subject: Optional[str] = None


@router.get("/recurring/config", summary="Get recurring message settings")
async def get_recurring_configs(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> RecurringConfigListResponse:
    configs = RecurringMessageService.get_configs(db)
    return RecurringConfigListResponse(
        configs=[RecurringConfigResponse(**asdict(c)) for c in configs.values()],
        tokens=list(TEMPLATE_TOKENS),
    )


@router.put("/recurring/config/{kind}", summary="Save the settings of one recurring message kind")
async def save_recurring_config(
    kind: str,
    request: RecurringConfigRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> RecurringConfigResponse:
    RecurringMessageService.save_config(db, current_user, kind, **request.model_dump())
    config = RecurringMessageService.get_configs(db)[kind.strip().upper()]
    return RecurringConfigResponse(**asdict(config))


@router.get("/recurring/logs", summary="List recurring message sends")
async def list_recurring_logs(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[RecurringMessageLogResponse]:
    return [RecurringMessageLogResponse.model_validate(log) for log in RecurringMessageService.list_logs(db)]


@router.post("/manual", summary="Send a manual notification to a patient")
async def send_manual_notification(
    request: ManualNotificationRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return NotificationService.send_manual_notification(
        db, current_user,
        notification_type=request.type,
        channel=request.channel,
        appointment_id=request.appointment_id,
        patient_id=request.patient_id,
        event_title=request.event_title,
        event_at=request.event_at,
        message=request.message,
        email_subject=request.email_subject,
    )


@jobs_router.post("/recurring", summary="Dispatch due holiday, closure and birthday messages")
async def dispatch_recurring(
    _: None = Depends(require_cron_secret),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    result = RecurringMessageService.dispatch_recurring_messages(db, practice_now())
    logger.info(f"Recurring messages via HTTP: {result}")
    return result
