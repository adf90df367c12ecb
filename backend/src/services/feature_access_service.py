"""
Feature access service.

Maps roles to the functional areas they may open. Stored rows override the
built-in defaults per role; admins always keep every feature so they cannot
lock themselves out.
"""

import logging
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from core.constants import ALL_ROLES, ROLE_ADMIN
from models import RoleFeatureAccess
from services.audit_service import AuditService

logger = logging.getLogger(__name__)

FEATURES = [
    "agenda",
    "calendar",
    "patients",
    "inventory",
    "finance",
    "communications",
    "audit",
    "users",
    "danger-zone",
]

FALLBACK_PERMISSIONS: Dict[str, List[str]] = {
    "admin": list(FEATURES),
    "manager": ["agenda", "calendar", "patients", "inventory", "finance", "communications"],
    "secretary": ["agenda", "calendar", "patients", "communications"],
    "patient": [],
}


class FeatureAccessService:
    """Service class for role feature access."""

    @staticmethod
    def get_feature_access(db: Session) -> Dict[str, List[str]]:
        """
        Effective role -> features map.

        Roles without stored rows use FALLBACK_PERMISSIONS.
        """
        stored: Dict[str, List[str]] = {}
        for row in db.query(RoleFeatureAccess).all():
            stored.setdefault(row.role, []).append(row.feature)

        result: Dict[str, List[str]] = {}
        for role in ALL_ROLES:
            if role == ROLE_ADMIN:
                result[role] = list(FEATURES)
            elif role in stored:
                result[role] = [f for f in FEATURES if f in stored[role]]
            else:
                result[role] = list(FALLBACK_PERMISSIONS.get(role, []))
        return result

    @staticmethod
    def user_can_access(db: Session, role: str, feature: str) -> bool:
        """Whether a role may open a feature."""
        if role == ROLE_ADMIN:
            return True
        return feature in FeatureAccessService.get_feature_access(db).get(role, [])

    @staticmethod
    def save_feature_access(db: Session, actor, mapping: Dict[str, Iterable[str]]) -> Dict[str, List[str]]:
        """
        Replace stored features for every role present in mapping.

        Unknown roles and features are ignored; the admin role is not editable.
        """
        saved_roles: List[str] = []
        for role, features in mapping.items():
            if role not in ALL_ROLES or role == ROLE_ADMIN:
                continue
            allowed = [f for f in FEATURES if f in set(features)]
            db.query(RoleFeatureAccess).filter(RoleFeatureAccess.role == role).delete()
            for feature in allowed:
                db.add(RoleFeatureAccess(role=role, feature=feature))
            saved_roles.append(role)

        AuditService.log_audit(
            db, actor, "featureAccess.saved", "RoleFeatureAccess",
            metadata={role: list(mapping.get(role, [])) for role in saved_roles},
        )
        db.commit()
        logger.info(f"Saved feature access for roles: {saved_roles}")
        return FeatureAccessService.get_feature_access(db)
