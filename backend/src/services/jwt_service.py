"""
JWT and password service.

Provides access token creation and validation, and bcrypt password hashing
for email/password authentication.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from pydantic import BaseModel

from core.config import JWT_SECRET_KEY, JWT_ACCESS_TOKEN_EXPIRE_MINUTES


class TokenPayload(BaseModel):
    """Payload structure for JWT tokens."""
    sub: str  # User ID as string
    user_id: int
    email: str
    role: str  # "admin", "manager", "secretary" or "patient"
    name: Optional[str] = None
    iat: Optional[int] = None  # Set by JWT service
    exp: Optional[int] = None  # Set by JWT service


class JWTService:
    """Service for JWT token and password operations."""

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    @classmethod
    def create_access_token(cls, payload: TokenPayload) -> str:
        """Create a JWT access token."""
        to_encode = payload.model_dump(exclude={"iat", "exp"})
        now = datetime.now(timezone.utc)
        to_encode.update({
            "exp": now + timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES),
            "iat": now,
        })
        return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """Verify and decode a JWT token. Returns None for expired or invalid tokens."""
        try:
            payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[cls.ALGORITHM])
            return TokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def hash_password(cls, password: str) -> str:
        """
        Hash a password with bcrypt.

        The password is pre-hashed with SHA-256 to stay within bcrypt's 72-byte limit.
        """
        digest = hashlib.sha256(password.encode('utf-8')).hexdigest().encode('utf-8')
        return bcrypt.hashpw(digest, bcrypt.gensalt()).decode('utf-8')

    @classmethod
    def verify_password(cls, password: str, hashed_password: Optional[str]) -> bool:
        """Check a password against its stored hash."""
        if not hashed_password:
            return False
        digest = hashlib.sha256(password.encode('utf-8')).hexdigest().encode('utf-8')
        try:
            return bcrypt.checkpw(digest, hashed_password.encode('utf-8'))
        except ValueError:
            # Malformed stored hash
            return False


# Global JWT service instance
jwt_service = JWTService()
