# pyright: reportMissingTypeStubs=false
"""
Recall and appointment reminder API endpoints.

`jobs_router` holds the cron-triggered dispatch, guarded by the cron secret
instead of a user token.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import (
    UserContext, require_admin, require_admin_or_manager, require_cron_secret, require_staff,
)
from auth.permissions import require_feature
from services import RecallService
from utils.datetime_utils import practice_now
from api.responses import (
    AppointmentReminderResponse,
    RecallResponse,
    RecallRuleResponse,
    ReminderRuleResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_feature("communications"))])
jobs_router = APIRouter()


class RecallRuleRequest(BaseModel):
    """service_type ANY matches every completed appointment."""
    name: str
    service_type: str
    interval_days: int
    message: Optional[str] = None
    email_subject: Optional[str] = None
    template_name: Optional[str] = None
    channel: Optional[str] = None
    enabled: bool = True


class RecallScheduleRequest(BaseModel):
    patient_id: Optional[int] = None
    rule_id: Optional[int] = None
    due_at: Optional[datetime] = None
    notes: Optional[str] = None


class ReminderRuleRequest(BaseModel):
    """timing_type is DAYS_BEFORE or SAME_DAY_TIME."""
    days_before: int
    enabled: bool = True
    timing_type: Optional[str] = None
    time_of_day_minutes: Optional[int] = None
    channel: Optional[str] = None
    template_name: Optional[str] = None
    message: Optional[str] = None
    email_subject: Optional[str] = None


# ===== Rules =====

@router.get("/rules", summary="List recall rules")
async def list_rules(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[RecallRuleResponse]:
    return [RecallRuleResponse.model_validate(r) for r in RecallService.list_rules(db)]


@router.post("/rules", summary="Create a recall rule", status_code=status.HTTP_201_CREATED)
async def create_rule(
    request: RecallRuleRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> RecallRuleResponse:
    rule = RecallService.create_rule(db, current_user, **request.model_dump())
    return RecallRuleResponse.model_validate(rule)


@router.put("/rules/{rule_id}", summary="Update a recall rule")
async def update_rule(
    rule_id: int,
    request: RecallRuleRequest,
    current_user: UserContext = Depends(require_admin_or_manager),
    db: Session = Depends(get_db)
) -> RecallRuleResponse:
    rule = RecallService.update_rule(db, current_user, rule_id, **request.model_dump())
    return RecallRuleResponse.model_validate(rule)


@router.delete("/rules/{rule_id}", summary="Delete a recall rule and its recalls", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    RecallService.delete_rule(db, current_user, rule_id)


# ===== Recalls =====

@router.get("", summary="List recalls")
async def list_recalls(
    recall_status: Optional[str] = Query(None, alias="status"),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[RecallResponse]:
    return [RecallResponse.model_validate(r) for r in RecallService.list_recalls(db, recall_status)]


@router.post("", summary="Schedule a recall", status_code=status.HTTP_201_CREATED)
async def schedule_recall(
    request: RecallScheduleRequest,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> RecallResponse:
    recall = RecallService.schedule_recall(db, current_user, **request.model_dump())
    return RecallResponse.model_validate(recall)


@router.delete("/{recall_id}", summary="Delete a recall", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recall(
    recall_id: int,
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> None:
    RecallService.delete_recall(db, current_user, recall_id)


# ===== Appointment reminders =====

@router.get("/reminder-rule", summary="Get the appointment reminder rule")
async def get_reminder_rule(
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> Optional[ReminderRuleResponse]:
    rule = RecallService.get_reminder_rule(db)
    return ReminderRuleResponse.model_validate(rule) if rule else None


@router.put("/reminder-rule", summary="Save the appointment reminder rule")
async def save_reminder_rule(
    request: ReminderRuleRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ReminderRuleResponse:
    rule = RecallService.save_reminder_rule(db, current_user, **request.model_dump())
    return ReminderRuleResponse.model_validate(rule)


@router.get("/reminders", summary="List queued appointment reminders")
async def list_reminders(
    reminder_status: Optional[str] = Query(None, alias="status"),
    current_user: UserContext = Depends(require_staff),
    db: Session = Depends(get_db)
) -> List[AppointmentReminderResponse]:
    reminders = RecallService.list_reminders(db, reminder_status)
    return [AppointmentReminderResponse.model_validate(r) for r in reminders]


# ===== Cron =====

@jobs_router.post("/send", summary="Enqueue and dispatch recalls and reminders")
async def send_recalls(
    _: None = Depends(require_cron_secret),
    db: Session = Depends(get_db)
) -> Dict[str, int]:
    """
    Run the recall job once. Called by an external cron when the in-process
    scheduler is disabled.
    """
    result = RecallService.run_recall_job(db, practice_now())
    logger.info(f"Recall job via HTTP: {result}")
    return result
