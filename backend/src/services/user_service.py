"""
User service for authentication and user administration.
"""

import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from core.constants import ALL_ROLES
from models import User
from services.audit_service import AuditService
from services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase an email address."""
    return (email or "").strip().lower()


class UserService:
    """
    Service class for user operations.

    Admin operations are audited as 'admin.user.<operation>'.
    """

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User:
        """
        Check credentials for an email/password login.

        Raises:
            HTTPException: 401 for unknown, inactive or wrong-password users
        """
        normalized = normalize_email(email)
        user = db.query(User).filter(User.email == normalized).first()
        if not user or not user.is_active or not jwt_service.verify_password(password or "", user.password_hash):
            logger.info(f"Failed login attempt for {normalized}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Credenziali non valide"
            )
        return user

    @staticmethod
    def create_access_token(user: User) -> str:
        payload = TokenPayload(
            sub=str(user.id),
            user_id=user.id,
            email=user.email,
            role=user.role,
            name=user.name,
        )
        return jwt_service.create_access_token(payload)

    @staticmethod
    def _validate_role(role: str) -> str:
        if role not in ALL_ROLES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ruolo non valido"
            )
        return role

    @staticmethod
    def _get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Utente non trovato"
            )
        return user

    @staticmethod
    def list_users(db: Session) -> List[User]:
        return db.query(User).order_by(User.email).all()

    @staticmethod
    def upsert_user(
        db: Session,
        actor,
        email: str,
        role: str,
        name: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """
        Create a user, or update name/role/password of an existing user with the same email.
        """
        normalized = normalize_email(email)
        if not normalized or "@" not in normalized:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email non valida"
            )
        UserService._validate_role(role)

        user = db.query(User).filter(User.email == normalized).first()
        created = user is None
        if user is None:
            user = User(email=normalized, role=role, name=name, is_active=True)
            db.add(user)
        else:
            user.role = role
            if name is not None:
                user.name = name
        if password:
            user.password_hash = jwt_service.hash_password(password)

        db.flush()
        AuditService.log_audit(
            db, actor, "admin.user.created" if created else "admin.user.updated", "User", user.id,
            {"email": normalized, "role": role},
        )
        db.commit()
        db.refresh(user)
        logger.info(f"{'Created' if created else 'Updated'} user {user.id} ({normalized})")
        return user

    @staticmethod
    def set_status(db: Session, actor, user_id: int, is_active: bool) -> User:
        user = UserService._get_user(db, user_id)
        if actor is not None and user.id == actor.user_id and not is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Non puoi disattivare il tuo account"
            )
        user.is_active = is_active
        AuditService.log_audit(db, actor, "admin.user.status", "User", user.id, {"is_active": is_active})
        db.commit()
        return user

    @staticmethod
    def set_role(db: Session, actor, user_id: int, role: str) -> User:
        UserService._validate_role(role)
        user = UserService._get_user(db, user_id)
        user.role = role
        AuditService.log_audit(db, actor, "admin.user.role", "User", user.id, {"role": role})
        db.commit()
        return user

    @staticmethod
    def update_details(
        db: Session,
        actor,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """
        Update name, email and password.

        Raises:
            HTTPException: 409 if the email belongs to another user
        """
        user = UserService._get_user(db, user_id)
        if email is not None:
            normalized = normalize_email(email)
            if not normalized:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email non valida"
                )
            existing = db.query(User).filter(User.email == normalized, User.id != user.id).first()
            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Email già in uso"
                )
            user.email = normalized
        if name is not None:
            user.name = name.strip() or None
        if password:
            user.password_hash = jwt_service.hash_password(password)

        AuditService.log_audit(
            db, actor, "admin.user.details", "User", user.id,
            {"email": user.email, "name": user.name},
        )
        db.commit()
        return user

    @staticmethod
    def delete_user(db: Session, actor, user_id: int) -> None:
        user = UserService._get_user(db, user_id)
        if actor is not None and user.id == actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Non puoi eliminare il tuo account"
            )
        email = user.email
        db.delete(user)
        AuditService.log_audit(db, actor, "admin.user.deleted", "User", user_id, {"email": email})
        db.commit()
        logger.info(f"Deleted user {user_id}")
