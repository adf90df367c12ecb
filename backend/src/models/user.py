"""
User model representing staff accounts and patient portal accounts.

Every authenticated request is made by a User. Staff users (admin, manager,
secretary) operate the practice; patient users can only read their own data.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class User(Base):
    """
    User account authenticated with email and password.

    Emails are stored normalized (trimmed, lowercase) and are unique. Only
    active users can log in.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the user."""

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    """Normalized login email."""

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Display name."""

    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """bcrypt hash of the password. NULL means the user cannot log in with a password yet."""

    role: Mapped[str] = mapped_column(String(20), default="secretary")
    """Role: 'admin', 'manager', 'secretary' or 'patient'."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    """Inactive users are rejected at login and on every authenticated request."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """Timestamp when the account was created."""

    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp of the last change."""

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
