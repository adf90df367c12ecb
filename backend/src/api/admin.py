# pyright: reportMissingTypeStubs=false
"""
Administration API endpoints.

User management, role feature access, the audit and error log viewers,
the SMS provider settings, the anamnesis checklist, the data reset and the
GDPR tools (full export and on-demand retention cleanup). Admin only.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import UserContext, require_admin
from auth.permissions import require_feature
from services.anamnesis_service import AnamnesisService
from services.audit_service import AuditService
from services.error_report_service import ErrorReportService
from services.feature_access_service import FEATURES, FeatureAccessService
from services.gdpr_service import GdprService
from services.sms_service import SmsService, mask_secret
from services.system_reset_service import SystemResetService
from services.user_service import UserService
from utils.datetime_utils import practice_now
from api.responses import AnamnesisConditionResponse, AuditLogResponse, ErrorReportResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class UserCreateRequest(BaseModel):
    """Create a user, or update the one with the same email."""
    email: str
    role: str
    name: Optional[str] = None
    password: Optional[str] = None


class UserStatusRequest(BaseModel):
    is_active: bool


class UserRoleRequest(BaseModel):
    role: str


class UserDetailsRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class FeatureAccessResponse(BaseModel):
    features: List[str]
    roles: Dict[str, List[str]]


class FeatureAccessRequest(BaseModel):
    """Role -> allowed features. Roles not listed keep their current access."""
    roles: Dict[str, List[str]]


class ClickSendConfigRequest(BaseModel):
    username: str
    api_key: str
    sender: Optional[str] = None


class ClickSendConfigResponse(BaseModel):
    """Current credentials with the API key masked."""
    configured: bool
    source: Optional[str] = None
    username: Optional[str] = None
    api_key: Optional[str] = None
    sender: Optional[str] = None


class AnamnesisConditionRequest(BaseModel):
    label: str


class ResetRequest(BaseModel):
    """The confirmation must read exactly 'Si, confermo'."""
    confirm: str


# ===== Users =====

@router.get("/users", summary="List users")
async def list_users(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[UserResponse]:
    return [UserResponse.model_validate(u) for u in UserService.list_users(db)]


@router.post("/users", summary="Create or update a user by email", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: UserCreateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> UserResponse:
    user = UserService.upsert_user(
        db, current_user,
        email=request.email,
        role=request.role,
        name=request.name,
        password=request.password,
    )
    return UserResponse.model_validate(user)


@router.put("/users/{user_id}/status", summary="Activate or deactivate a user")
async def set_user_status(
    user_id: int,
    request: UserStatusRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> UserResponse:
    user = UserService.set_status(db, current_user, user_id, request.is_active)
    return UserResponse.model_validate(user)


@router.put("/users/{user_id}/role", summary="Change a user's role")
async def set_user_role(
    user_id: int,
    request: UserRoleRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> UserResponse:
    user = UserService.set_role(db, current_user, user_id, request.role)
    return UserResponse.model_validate(user)


@router.put("/users/{user_id}", summary="Update a user's name, email or password")
async def update_user_details(
    user_id: int,
    request: UserDetailsRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> UserResponse:
    user = UserService.update_details(
        db, current_user, user_id,
        name=request.name,
        email=request.email,
        password=request.password,
    )
    return UserResponse.model_validate(user)


@router.delete("/users/{user_id}", summary="Delete a user", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    UserService.delete_user(db, current_user, user_id)


# ===== Feature access =====

@router.get("/feature-access", summary="Get role feature access")
async def get_feature_access(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> FeatureAccessResponse:
    return FeatureAccessResponse(
        features=list(FEATURES),
        roles=FeatureAccessService.get_feature_access(db),
    )


@router.put("/feature-access", summary="Save role feature access")
async def save_feature_access(
    request: FeatureAccessRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> FeatureAccessResponse:
    roles = FeatureAccessService.save_feature_access(db, current_user, request.roles)
    return FeatureAccessResponse(features=list(FEATURES), roles=roles)


# ===== Audit =====

@router.get("/audit", summary="Search the audit log")
async def list_audit_logs(
    q: Optional[str] = Query(None, description="Matches action, entity, entity id, user email or name"),
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[AuditLogResponse]:
    return [AuditLogResponse.model_validate(entry) for entry in AuditService.list_logs(db, q)]


@router.get("/errors", summary="Browse reported errors")
async def list_error_reports(
    q: Optional[str] = Query(None, description="Matches code, message, source, path or error message"),
    day: Optional[date] = Query(None, alias="date", description="Only errors reported on this day"),
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[ErrorReportResponse]:
    return [ErrorReportResponse.model_validate(e) for e in ErrorReportService.list_errors(db, q, day)]


# ===== SMS provider =====

def _clicksend_response(db: Session) -> ClickSendConfigResponse:
    credentials = SmsService.get_credentials(db)
    if credentials is None:
        return ClickSendConfigResponse(configured=False)
    return ClickSendConfigResponse(
        configured=True,
        source=credentials.source,
        username=credentials.username,
        api_key=mask_secret(credentials.api_key),
        sender=credentials.sender,
    )


@router.get("/clicksend", summary="Get the ClickSend settings")
async def get_clicksend_config(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ClickSendConfigResponse:
    return _clicksend_response(db)


@router.put("/clicksend", summary="Save the ClickSend credentials")
async def save_clicksend_config(
    request: ClickSendConfigRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ClickSendConfigResponse:
    SmsService.save_config(db, current_user, request.username, request.api_key, request.sender)
    return _clicksend_response(db)


# ===== Anamnesis checklist =====

@router.get("/anamnesis", summary="List stored anamnesis conditions")
async def list_anamnesis_conditions(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[AnamnesisConditionResponse]:
    return [AnamnesisConditionResponse.model_validate(c) for c in AnamnesisService.list_conditions(db)]


@router.post("/anamnesis", summary="Add an anamnesis condition", status_code=status.HTTP_201_CREATED)
async def create_anamnesis_condition(
    request: AnamnesisConditionRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> AnamnesisConditionResponse:
    condition = AnamnesisService.create_condition(db, current_user, request.label)
    return AnamnesisConditionResponse.model_validate(condition)


@router.put("/anamnesis/{condition_id}", summary="Rename an anamnesis condition")
async def update_anamnesis_condition(
    condition_id: int,
    request: AnamnesisConditionRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> AnamnesisConditionResponse:
    condition = AnamnesisService.update_condition(db, current_user, condition_id, request.label)
    return AnamnesisConditionResponse.model_validate(condition)


@router.delete("/anamnesis/{condition_id}", summary="Delete an anamnesis condition",
               status_code=status.HTTP_204_NO_CONTENT)
async def delete_anamnesis_condition(
    condition_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> None:
    AnamnesisService.delete_condition(db, current_user, condition_id)


# ===== Danger zone =====

@router.post("/reset", summary="Wipe the practice data",
             dependencies=[Depends(require_feature("danger-zone"))])
async def reset_system(
    request: ResetRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return {"deleted": SystemResetService.reset_system(db, current_user, request.confirm)}


# ===== GDPR =====

@router.get("/export", summary="Export database tables as JSON")
async def export_tables(
    tables: Optional[str] = Query(None, description="Comma-separated table names; all when omitted"),
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    selected = [t.strip() for t in (tables or "").split(",") if t.strip()]
    export = GdprService(db).build_full_export(selected)
    AuditService.log_audit(db, current_user, "gdpr.full_export", "Database", None, {"tables": export["tables"]})
    db.commit()
    return export


@router.post("/gdpr/retention", summary="Run the retention cleanup now")
async def run_retention_cleanup(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    deleted = GdprService(db).apply_retention_cleanup(practice_now())
    AuditService.log_audit(db, current_user, "gdpr.retention_cleanup", "Database", None, deleted)
    db.commit()
    return {"deleted": deleted}
