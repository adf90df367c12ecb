# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for user authentication and
role-based access control.
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.config import CRON_SECRET
from core.constants import ROLE_ADMIN, ROLE_MANAGER, STAFF_ROLES
from core.database import get_db
from services.jwt_service import jwt_service, TokenPayload
from models import User

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(
        self,
        user_id: int,
        email: str,
        role: str,
        name: Optional[str] = None,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.name = name

    def has_role(self, *roles: str) -> bool:
        """Check if the user has one of the given roles."""
        return self.role in roles

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self) -> str:
        return f"UserContext(user_id={self.user_id}, email='{self.email}', role='{self.role}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None

    return jwt_service.verify_token(credentials.credentials)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> UserContext:
    """
    Get authenticated user context from JWT token.

    The user is re-read from the database so deactivation and role changes
    take effect immediately, without waiting for the token to expire.
    """
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account disattivato, contatta l'amministratore"
        )

    return UserContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.name,
    )


def get_optional_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> Optional[UserContext]:
    """Like get_current_user, but anonymous or inactive callers yield None."""
    if not payload:
        return None
    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user or not user.is_active:
        return None
    return UserContext(user_id=user.id, email=user.email, role=user.role, name=user.name)


def require_roles(*roles: str) -> Callable[..., UserContext]:
    """
    Dependency factory that ensures the user has one of the given roles.

    Usage:
        user: UserContext = Depends(require_roles(ROLE_ADMIN, ROLE_MANAGER))
    """
    def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not user.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permesso negato"
            )
        return user

    return dependency


def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require admin role."""
    if not user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permesso negato"
        )
    return user


def require_admin_or_manager(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require admin or manager role."""
    if not user.has_role(ROLE_ADMIN, ROLE_MANAGER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permesso negato"
        )
    return user


def require_staff(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require a staff role (admin, manager or secretary)."""
    if not user.is_staff():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permesso negato"
        )
    return user


def require_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """
    Guard for job endpoints called by an external cron.

    When CRON_SECRET is not configured the endpoints are open.
    """
    if CRON_SECRET and x_cron_secret != CRON_SECRET:
        logger.warning("Rejected job trigger with invalid cron secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
