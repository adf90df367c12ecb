"""
Audit service for recording and browsing user actions.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from core.constants import AUDIT_LOG_PAGE_SIZE
from models import AuditLog, User

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for audit log operations."""

    @staticmethod
    def log_audit(
        db: Session,
        actor: Any,
        action: str,
        entity: str,
        entity_id: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Add an audit entry to the current transaction.

        The entry is committed together with the change it describes, so a
        rolled-back change leaves no audit trail.

        Args:
            db: Database session
            actor: UserContext (or None for system jobs)
            action: Dotted action name, e.g. 'patient.created'
            entity: Entity type, e.g. 'Patient'
            entity_id: Identifier of the affected entity
            metadata: Optional JSON-serializable details
        """
        entry = AuditLog(
            user_id=getattr(actor, "user_id", None),
            role=getattr(actor, "role", None),
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            metadata_json=metadata,
        )
        db.add(entry)
        logger.debug(f"Audit: {action} {entity}#{entity_id}")
        return entry

    @staticmethod
    def list_logs(db: Session, query: Optional[str] = None, limit: int = AUDIT_LOG_PAGE_SIZE) -> List[AuditLog]:
        """
        Latest audit entries, optionally filtered by a case-insensitive search
        over action, entity, entity id and the acting user's email or name.
        """
        q = db.query(AuditLog).options(joinedload(AuditLog.user)).outerjoin(User, AuditLog.user_id == User.id)
        term = (query or "").strip()
        if term:
            pattern = f"%{term}%"
            q = q.filter(or_(
                AuditLog.action.ilike(pattern),
                AuditLog.entity.ilike(pattern),
                AuditLog.entity_id.ilike(pattern),
                User.email.ilike(pattern),
                User.name.ilike(pattern),
            ))
        return q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
