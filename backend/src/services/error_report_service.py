"""
Error reports with support codes.

A reported error is stored as an 'error.reported' audit entry keyed by a
short code. The code is returned to the client so a user can quote it when
asking for help, and the admin error viewer looks entries up by it.
"""

import logging
import random
import string
import time
import traceback
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from core.constants import AUDIT_LOG_PAGE_SIZE
from models import AuditLog
from services.audit_service import AuditService
from utils.datetime_utils import local_datetime

logger = logging.getLogger(__name__)

ERROR_ACTION = "error.reported"
_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    digits = ""
    while value:
        value, rem = divmod(value, 36)
        digits = _BASE36[rem] + digits
    return digits or "0"


def generate_error_code() -> str:
    """Code such as 'ERR-MGX3K2Q1-7F2A': millisecond timestamp plus four random characters."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36, k=4))
    return f"ERR-{stamp}-{suffix}"


def serialize_error(error: Any) -> Optional[Dict[str, Any]]:
    """JSON-ready description of an exception or of a client-sent error object."""
    if error is None:
        return None
    if isinstance(error, BaseException):
        return {
            "name": type(error).__name__,
            "message": str(error),
            "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            "cause": serialize_error(error.__cause__) if error.__cause__ else None,
        }
    if isinstance(error, dict):
        message = error.get("message")
        return {
            "name": error.get("name") if isinstance(error.get("name"), str) else None,
            "message": message if isinstance(message, str) else str(message if message is not None else error),
            "stack": error.get("stack") if isinstance(error.get("stack"), str) else None,
            "details": error.get("details"),
        }
    return {"message": str(error)}


class ErrorReportService:
    """Service class for error reports."""

    @staticmethod
    def report_error(
        db: Session,
        actor: Any,
        message: Optional[str],
        code: Optional[str] = None,
        source: Optional[str] = None,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Any = None,
    ) -> str:
        """
        Store an error report and return its code.

        Args:
            actor: UserContext of the user who hit the error, or None
            message: Human readable summary
            code: Client-generated code; a new one is generated when missing
            source: Where the error happened, e.g. 'client' or 'server'
            path: Request path or page
            context: Free-form details
            error: Exception or error object to serialize
        """
        code = (code or "").strip() or generate_error_code()
        message = (message or "").strip() or "Errore non specificato"
        AuditService.log_audit(db, actor, ERROR_ACTION, "System", code, {
            "code": code,
            "message": message,
            "source": source,
            "path": path,
            "context": context,
            "error": serialize_error(error),
        })
        db.commit()
        logger.warning(f"Error reported [{code}] from {source or 'unknown'}: {message}")
        return code

    @staticmethod
    def list_errors(db: Session, query: Optional[str] = None, day: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        Latest error reports, optionally limited to one calendar day and
        filtered by a case-insensitive search over code, message, source,
        path and the error message.
        """
        q = db.query(AuditLog).options(joinedload(AuditLog.user)).filter(AuditLog.action == ERROR_ACTION)
        if day is not None:
            start = local_datetime(day)
            q = q.filter(AuditLog.created_at >= start, AuditLog.created_at < start + timedelta(days=1))
        rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(AUDIT_LOG_PAGE_SIZE).all()

        entries = []
        for row in rows:
            meta = row.metadata_json or {}
            error = meta.get("error") or {}
            entries.append({
                "code": row.entity_id,
                "message": meta.get("message"),
                "source": meta.get("source"),
                "path": meta.get("path"),
                "error_message": error.get("message") if isinstance(error, dict) else None,
                "actor": (row.user.name or row.user.email) if row.user else None,
                "role": row.role,
                "created_at": row.created_at,
            })

        term = (query or "").strip().lower()
        if not term:
            return entries
        fields = ("code", "message", "source", "path", "error_message")
        return [e for e in entries if any(term in (e[f] or "").lower() for f in fields)]
